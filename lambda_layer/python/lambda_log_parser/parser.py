# lambda_layer/python/lambda_log_parser/parser.py
"""
Splits one CloudWatch log line written by a Lambda runtime into its fields.

Detection order:
  1. '[LEVEL]' followed by a tab -> PYTHON
  2. ISO timestamp then request id -> NODE
  3. Anything else -> RAW (the whole line is the message)

Detection only looks at the shape of the line. The caller does not need to
know which runtime produced it.
"""
import re
from typing import Optional, Tuple

from .models import LogFormat, ParsedRecord, to_datetime

# A single tab, or any run of two or more spaces/tabs.
_DELIMITER_RE = re.compile(r"[ \t]{2,}|\t")

# The patterns below are used with fullmatch() so a trailing newline never matches.
_BRACKETED_LEVEL_RE = re.compile(r"\[([A-Z]+)\]")

_ISO_INSTANT_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{1,9})?(?:[Zz]|[+-]\d{2}:\d{2})"
)

_UUID_RE = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


def is_iso_instant(text: str) -> bool:
    """True when text is a strict ISO-8601 instant that names a real date and time."""
    if not _ISO_INSTANT_RE.fullmatch(text):
        return False
    try:
        to_datetime(text)
    except ValueError:
        return False
    return True


def is_request_id(text: str) -> bool:
    return bool(_UUID_RE.fullmatch(text))


def _split_python_header(rest: str) -> Optional[Tuple[str, str, str]]:
    """
    Splits what follows '[LEVEL]\t' into (timestamp, request id, message).

    Fields are tab separated and the message is everything after the tab that
    ends the request id, kept verbatim. Some runtime versions pad between the
    timestamp and the request id with spaces instead of a tab.
    """
    fields = rest.split("\t", 2)
    if len(fields) == 3 and is_iso_instant(fields[0]) and is_request_id(fields[1]):
        return fields[0], fields[1], fields[2]

    header, sep, message = rest.partition("\t")
    if not sep:
        return None
    ids = _DELIMITER_RE.split(header, maxsplit=1)
    if len(ids) != 2:
        return None
    return ids[0], ids[1], message


def _parse_python(line: str) -> Optional[ParsedRecord]:
    """
    Parse lines like:
      [INFO]\t2020-11-18T23:52:30.128Z\t6e48723a-1596-4313-a9af-e4da9214d637\tHello
    """
    head, sep, rest = line.partition("\t")
    if not sep:
        return None
    m = _BRACKETED_LEVEL_RE.fullmatch(head.strip())
    if not m:
        return None

    fields = _split_python_header(rest)
    if not fields:
        return None
    timestamp, request_id, message = fields
    if not (is_iso_instant(timestamp) and is_request_id(request_id)):
        return None

    return ParsedRecord(
        format=LogFormat.PYTHON,
        timestamp=timestamp,
        request_id=request_id,
        level=m.group(1),
        message=message,
    )


def _parse_node(line: str) -> Optional[ParsedRecord]:
    """
    Parse lines like:
      2020-11-18T23:52:30.128Z  6e48723a-1596-4313-a9af-e4da9214d637  INFO  Hello
    """
    fields = _DELIMITER_RE.split(line, maxsplit=3)
    if len(fields) < 4:
        return None
    timestamp, request_id, level, message = fields
    if not (is_iso_instant(timestamp) and is_request_id(request_id)):
        return None

    return ParsedRecord(
        format=LogFormat.NODE,
        timestamp=timestamp,
        request_id=request_id,
        level=level,
        message=message,
    )


def parse(line: str) -> ParsedRecord:
    """
    Parse a single log line, auto-detecting the runtime format.

    Never raises: lines that match no known shape come back as RAW with the
    line, unmodified, as the message. A whitespace-only line gives a RAW
    record with an empty message.
    """
    stripped = line.strip()
    if not stripped:
        return ParsedRecord(format=LogFormat.RAW, message="")

    for attempt in (_parse_python, _parse_node):
        record = attempt(stripped)
        if record:
            return record

    return ParsedRecord(format=LogFormat.RAW, message=line)

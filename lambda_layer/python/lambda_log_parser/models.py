# lambda_layer/python/lambda_log_parser/models.py
"""
Plain-dataclass models for parsed Lambda log lines.
"""
import json
import re
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

# Fractions longer than microseconds are cut down before datetime parsing.
_FRACTION_RE = re.compile(r"\.(\d+)")


class LogFormat(str, Enum):
    """The runtime convention a log line matched."""
    NODE = "NODE"
    PYTHON = "PYTHON"
    RAW = "RAW"

    def __str__(self) -> str:
        return self.value


def to_datetime(timestamp: str) -> datetime:
    """
    Converts an ISO-8601 instant such as '2020-11-18T23:52:30.128Z' into a
    timezone-aware datetime.

    Raises:
        ValueError: If the text is not a valid date and time.
    """
    text = timestamp.replace("Z", "+00:00").replace("z", "+00:00")
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class ParsedRecord:
    """
    One log line split into the fields its runtime wrote.
    RAW records only carry the message.
    """
    format: LogFormat
    message: str
    timestamp: Optional[str] = None
    request_id: Optional[str] = None
    level: Optional[str] = None

    @property
    def instant(self) -> Optional[datetime]:
        """The timestamp as a timezone-aware datetime, or None for RAW records."""
        if self.timestamp is None:
            return None
        return to_datetime(self.timestamp)

    def json_payload(self) -> Any:
        """
        Returns the message decoded as JSON, or None when it isn't JSON.
        Runtimes that log structured data usually emit one JSON object per line.
        """
        try:
            return json.loads(self.message)
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        """Converts the record to a dict, dropping absent fields for cleaner JSON."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data["format"] = self.format.value
        return data

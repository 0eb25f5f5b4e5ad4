# lambda_layer/python/lambda_log_parser/records.py
"""
Envelope handling for the two ways Lambda log lines arrive in bulk:

- Lambda Logs API batches: a JSON array of {"time", "type", "record"} objects.
- CloudWatch Logs subscription events: {"awslogs": {"data": <base64 gzip JSON>}}.
"""
import base64
import binascii
import gzip
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple, Union

from pydantic import BaseModel, ValidationError

from .models import ParsedRecord
from .parser import parse

FUNCTION_RECORD_TYPE = "function"


class InvalidEventError(ValueError):
    """Raised when a Lambda event can't be decoded into log lines."""
    pass


class RawCloudWatchLog(BaseModel):
    """One entry of a Lambda Logs API batch."""
    time: str = ""
    type: str
    record: Any = None


class SubscriptionLogEvent(BaseModel):
    """One entry of the logEvents list in a CloudWatch Logs subscription payload."""
    id: str = ""
    timestamp: int
    message: str


@dataclass
class StructuredLog:
    """
    A parsed log line together with the time its envelope was stamped with.
    """
    time: str
    record: ParsedRecord

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, **self.record.to_dict()}


def parse_records(
    logs: Iterable[Union[Dict[str, Any], RawCloudWatchLog]],
    function_records_only: bool = True,
) -> List[StructuredLog]:
    """
    Parses a Lambda Logs API batch.

    Records that aren't function output (platform.start, platform.report, ...)
    are skipped unless function_records_only is False. Records whose payload
    isn't a string can't be a log line and are skipped with a warning.

    Args:
        logs: Envelope dicts as received, or already validated models.
        function_records_only: Drop non-"function" records when True.

    Returns:
        One StructuredLog per parsed line, in input order.
    """
    parsed = []
    for raw in logs:
        try:
            log = raw if isinstance(raw, RawCloudWatchLog) else RawCloudWatchLog.model_validate(raw)
        except ValidationError as e:
            print(f"⚠️ Skipping malformed log record: {e.error_count()} validation error(s)")
            continue

        if function_records_only and log.type != FUNCTION_RECORD_TYPE:
            print(f"ℹ️ Skipping '{log.type}' record from {log.time or 'unknown time'}")
            continue

        if not isinstance(log.record, str):
            print(f"⚠️ Expected a string record but got {type(log.record).__name__}: {log.record!r}")
            continue

        parsed.append(StructuredLog(time=log.time, record=parse(log.record)))
    return parsed


def decode_subscription_event(event: Dict[str, Any]) -> List[Tuple[int, str]]:
    """
    Decodes a CloudWatch Logs subscription event.

    Args:
        event: The Lambda event with an 'awslogs.data' field.

    Returns:
        A list of (timestamp in epoch milliseconds, message) pairs. Entries
        without an integer timestamp and a string message are skipped.

    Raises:
        InvalidEventError: If the payload isn't base64 gzip JSON or logEvents isn't a list.
    """
    try:
        data = event["awslogs"]["data"]
        payload = json.loads(gzip.decompress(base64.b64decode(data)))
    except (KeyError, TypeError) as e:
        raise InvalidEventError(f"Missing awslogs data: {e}") from e
    except (binascii.Error, OSError, EOFError, ValueError) as e:
        raise InvalidEventError(f"Could not decode awslogs data: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidEventError("awslogs data is not a JSON object")

    # CONTROL_MESSAGE is sent once when a subscription is created.
    if payload.get("messageType") == "CONTROL_MESSAGE":
        return []

    log_events = payload.get("logEvents", [])
    if not isinstance(log_events, list):
        raise InvalidEventError("awslogs logEvents is not a list")

    decoded = []
    for raw in log_events:
        try:
            log_event = SubscriptionLogEvent.model_validate(raw)
        except ValidationError as e:
            print(f"⚠️ Skipping malformed log event: {e.error_count()} validation error(s)")
            continue
        decoded.append((log_event.timestamp, log_event.message))
    return decoded

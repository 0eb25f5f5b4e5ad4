"""Parse CloudWatch log lines written by AWS Lambda runtimes."""
from .models import LogFormat, ParsedRecord
from .parser import parse
from .records import (
    InvalidEventError,
    RawCloudWatchLog,
    StructuredLog,
    decode_subscription_event,
    parse_records,
)

__all__ = [
    "InvalidEventError",
    "LogFormat",
    "ParsedRecord",
    "RawCloudWatchLog",
    "StructuredLog",
    "decode_subscription_event",
    "parse",
    "parse_records",
]

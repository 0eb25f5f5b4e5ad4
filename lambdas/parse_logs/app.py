# lambdas/parse_logs/app.py
import base64
import json
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List

import boto3
from botocore.exceptions import ClientError

# Import from lambda layer
from lambda_log_parser import (
    InvalidEventError,
    LogFormat,
    StructuredLog,
    decode_subscription_event,
    parse,
    parse_records,
)
from lambda_log_parser.settings import get_settings

_FIREHOSE_CLIENT = None


def get_firehose_client():
    """Creates the Firehose client on first use so it's reused by warm invocations."""
    global _FIREHOSE_CLIENT
    if _FIREHOSE_CLIENT is None:
        _FIREHOSE_CLIENT = boto3.client('firehose', region_name=get_settings().aws_region)
    return _FIREHOSE_CLIENT


def build_response(status_code: int, body: dict) -> dict:
    """Helper function to build the API Gateway proxy response."""
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def _epoch_ms_to_iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat(timespec='milliseconds')


def _parse_lines(text: str) -> List[StructuredLog]:
    """Parses newline separated text, one record per non-empty line."""
    return [StructuredLog(time="", record=parse(line)) for line in text.splitlines() if line.strip()]


def extract_structured_logs(event: Any) -> List[StructuredLog]:
    """
    Turns any supported Lambda event into parsed log records.

    Supported events:
        - CloudWatch Logs subscription: {"awslogs": {"data": ...}}
        - Lambda Logs API batch: a list of {"time", "type", "record"} or {"records": [...]}
        - API Gateway proxy request whose body is newline separated log lines
          or a JSON Logs API batch.

    Raises:
        InvalidEventError: If the event shape isn't recognised or the body is empty.
    """
    function_records_only = get_settings().function_records_only

    if isinstance(event, list):
        return parse_records(event, function_records_only)

    if not isinstance(event, dict):
        raise InvalidEventError(f"Unsupported event type: {type(event).__name__}")

    if 'awslogs' in event:
        return [
            StructuredLog(time=_epoch_ms_to_iso(ts), record=parse(message))
            for ts, message in decode_subscription_event(event)
        ]

    if isinstance(event.get('records'), list):
        return parse_records(event['records'], function_records_only)

    if 'body' in event:
        body = event.get('body')
        if not body:
            raise InvalidEventError("Request body cannot be empty.")
        if event.get('isBase64Encoded'):
            body = base64.b64decode(body).decode('utf-8')
        if body.lstrip().startswith('['):
            try:
                return parse_records(json.loads(body), function_records_only)
            except json.JSONDecodeError:
                # A bracketed first line isn't necessarily a JSON batch.
                pass
        return _parse_lines(body)

    raise InvalidEventError("Unrecognized event: expected awslogs, records or body.")


class FirehoseDeliveryError(Exception):
    """Raised when Firehose keeps rejecting records after every retry."""
    pass


def chunk_records(records: List[dict], max_count: int, max_bytes: int) -> Iterator[List[dict]]:
    """
    Groups Firehose records into PutRecordBatch calls, starting a new call
    before either the record count or the total data size would exceed its limit.
    """
    batch, batch_bytes = [], 0
    for record in records:
        size = len(record["Data"])
        if batch and (len(batch) >= max_count or batch_bytes + size > max_bytes):
            yield batch
            batch, batch_bytes = [], 0
        batch.append(record)
        batch_bytes += size
    if batch:
        yield batch


def _put_batch(client, stream_name: str, records: List[dict]) -> None:
    """
    Puts one batch, re-sending the records Firehose reports as failed.

    Raises:
        FirehoseDeliveryError: If records are still rejected after the last attempt.
    """
    settings = get_settings()
    pending = records
    for attempt in range(1, settings.forward_max_attempts + 1):
        response = client.put_record_batch(DeliveryStreamName=stream_name, Records=pending)
        if not response.get('FailedPutCount', 0):
            return

        results = response.get('RequestResponses', [])
        if len(results) == len(pending):
            pending = [record for record, result in zip(pending, results) if result.get('ErrorCode')]
        print(f"⚠️ Firehose rejected {len(pending)} records (attempt {attempt}/{settings.forward_max_attempts}).")
        if not pending:
            return
        if attempt < settings.forward_max_attempts:
            time.sleep(settings.forward_retry_delay_seconds * attempt)

    raise FirehoseDeliveryError(
        f"Firehose rejected {len(pending)} records after {settings.forward_max_attempts} attempts."
    )


def forward_to_firehose(logs: List[StructuredLog]) -> int:
    """
    Puts the parsed records into the configured Kinesis Firehose stream.

    Returns:
        The number of records forwarded.

    Raises:
        ClientError: If the boto3 call to Firehose fails.
        FirehoseDeliveryError: If Firehose keeps rejecting some of the records.
    """
    settings = get_settings()
    if not settings.delivery_stream or not logs:
        return 0

    client = get_firehose_client()
    # Firehose expects records to be newline-terminated.
    records = [{"Data": (json.dumps(log.to_dict()) + "\n").encode('utf-8')} for log in logs]
    for batch in chunk_records(records, settings.forward_batch_size, settings.forward_batch_bytes):
        _put_batch(client, settings.delivery_stream, batch)
    print(f"✅ Forwarded {len(records)} parsed records to {settings.delivery_stream}.")
    return len(records)


def summarize(logs: List[StructuredLog]) -> Dict[str, int]:
    """Counts records per format, always listing every format."""
    counts = Counter(log.record.format.value for log in logs)
    return {fmt.value: counts.get(fmt.value, 0) for fmt in LogFormat}


def handler(event: Any, context: object) -> dict:
    """
    Main Lambda handler. Parses every log line in the event, optionally
    forwards the results to Firehose, and returns them with per-format totals.
    """
    print("--- Parse Logs Lambda Triggered ---")

    try:
        logs = extract_structured_logs(event)
        forwarded = forward_to_firehose(logs)

        result_body = {
            "total_lines": len(logs),
            "formats": summarize(logs),
            "forwarded": forwarded,
            "records": [log.to_dict() for log in logs],
        }
        return build_response(200, result_body)

    except InvalidEventError as e:
        print(f"⚠️ Bad Request: {e}")
        return build_response(400, {'error': str(e)})

    except (ClientError, FirehoseDeliveryError) as e:
        print(f"❌ Failed to forward records to Firehose: {e}")
        # Re-raise so the invocation is retried instead of dropping the batch
        raise

    except Exception as e:
        print(f"❌ An unexpected error occurred while parsing logs: {e}")
        return build_response(500, {'error': 'Failed to parse logs.'})

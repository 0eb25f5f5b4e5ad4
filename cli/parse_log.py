# cli/parse_log.py
import os
import sys
import json
import argparse
from collections import Counter
from typing import Iterable, List, Optional

import requests
from dotenv import load_dotenv

from lambda_log_parser import LogFormat, ParsedRecord, parse

# Load environment variables from a .env file for local testing
load_dotenv()


def parse_lines(lines: Iterable[str], only_format: Optional[str] = None) -> List[ParsedRecord]:
    """
    Parses each non-empty line, keeping only records of only_format when given.
    """
    records = []
    for line in lines:
        if not line.strip():
            continue
        record = parse(line.rstrip("\r\n"))
        if only_format and record.format.value != only_format:
            continue
        records.append(record)
    return records


def format_summary(records: List[ParsedRecord]) -> str:
    """Builds a one-line count of records per format, e.g. 'NODE=2 PYTHON=0 RAW=1'."""
    counts = Counter(record.format.value for record in records)
    return " ".join(f"{fmt.value}={counts.get(fmt.value, 0)}" for fmt in LogFormat)


def push_records(records: List[ParsedRecord], endpoint: Optional[str] = None) -> bool:
    """
    Sends the parsed records to the API as newline separated JSON.

    Returns:
        True when the API accepted the batch.
    """
    endpoint = endpoint or os.environ.get("LOG_API")
    if not endpoint:
        print("❌ ERROR: LOG_API environment variable not set. Please create a .env file.")
        return False

    payload = "\n".join(json.dumps(record.to_dict()) for record in records)
    try:
        response = requests.post(
            endpoint,
            data=payload.encode('utf-8'),
            headers={'Content-Type': 'text/plain'},
            timeout=10
        )
        response.raise_for_status()
        print(f"✅ Success! {len(records)} records sent. Status Code: {response.status_code}")
        return True
    except requests.exceptions.RequestException as e:
        print(f"❌ Failed to send records. Error: {e}")
        return False


def read_lines(paths: List[str]) -> List[str]:
    if not paths:
        return sys.stdin.readlines()
    lines = []
    for path in paths:
        with open(path, 'r', encoding='utf-8') as f:
            lines.extend(f.readlines())
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Parses CloudWatch log lines written by Lambda runtimes into JSON records."
    )
    parser.add_argument(
        'log_files',
        metavar='FILE',
        type=str,
        nargs='*',
        help='Log files to parse. Reads standard input when omitted.'
    )
    parser.add_argument(
        '--format',
        dest='only_format',
        choices=[fmt.value for fmt in LogFormat],
        help='Only output records of this format.'
    )
    parser.add_argument('--summary', action='store_true', help='Print per-format counts instead of records.')
    parser.add_argument('--push', action='store_true', help='Send the records to the LOG_API endpoint.')

    args = parser.parse_args(argv)

    records = parse_lines(read_lines(args.log_files), args.only_format)

    if args.summary:
        print(format_summary(records))
    else:
        for record in records:
            print(json.dumps(record.to_dict()))

    if args.push and not push_records(records):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

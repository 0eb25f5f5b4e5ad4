# lambda_layer/python/lambda_log_parser/settings.py
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A local .env file is read automatically when present.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    aws_region: str = Field("us-east-1", alias='AWS_REGION')
    # Parsed records are only forwarded to Firehose when a stream is configured.
    delivery_stream: Optional[str] = Field(None, alias='DELIVERY_STREAM')
    # Logs API batches also carry platform.* and extension records.
    function_records_only: bool = Field(True, alias='FUNCTION_RECORDS_ONLY')
    # PutRecordBatch accepts at most 500 records per call.
    forward_batch_size: int = Field(500, alias='FORWARD_BATCH_SIZE', ge=1, le=500)
    # ... and at most 4 MiB of record data.
    forward_batch_bytes: int = Field(4 * 1024 * 1024, alias='FORWARD_BATCH_BYTES', ge=1, le=4 * 1024 * 1024)
    # Records Firehose rejects are re-sent until this many attempts have been made.
    forward_max_attempts: int = Field(3, alias='FORWARD_MAX_ATTEMPTS', ge=1)
    forward_retry_delay_seconds: float = Field(0.5, alias='FORWARD_RETRY_DELAY_SECONDS', ge=0)


@lru_cache()
def get_settings() -> AppSettings:
    """Returns a single, shared settings instance."""
    return AppSettings()

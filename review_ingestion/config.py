"""
Pipeline configuration.

Settings come from an optional YAML file, then environment variables
(optionally loaded from a .env file), then defaults. Database connection
settings are read by DatabaseConnectionPool from DB_* variables.

Expected YAML format:
```yaml
object_store:
  bucket: hotel-reviews
  prefix: reviews/
  region: us-east-1
processing:
  batch_size: 100
  error_budget: 50
ledger:
  stuck_timeout_hours: 2
  retention_days: 30
scheduler:
  processing_interval_seconds: 10
  cleanup_hour: 2
  lock_backend: postgres
```
"""

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ObjectStoreSettings(BaseModel):
    bucket: str = Field("hotel-reviews", min_length=1)
    prefix: str = "reviews/"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    max_retries: int = Field(3, ge=0)
    base_delay_seconds: float = Field(1.0, ge=0)


class ProcessingSettings(BaseModel):
    batch_size: int = Field(100, gt=0)
    persist_batch_size: int = Field(100, gt=0)
    max_errors: int = Field(50, ge=0)
    error_budget: int = Field(50, ge=0)
    large_batch_threshold: int = Field(10_000, gt=0)
    large_batch_chunk_size: int = Field(1_000, gt=0)
    concurrent: bool = False
    max_concurrent_files: int = Field(5, gt=0)


class LedgerSettings(BaseModel):
    stuck_timeout_hours: float = Field(2.0, gt=0)
    retention_days: float = Field(30.0, gt=0)

    @property
    def stuck_timeout(self) -> timedelta:
        return timedelta(hours=self.stuck_timeout_hours)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)


class SchedulerSettings(BaseModel):
    processing_interval_seconds: float = Field(10.0, gt=0)
    cleanup_hour: int = Field(2, ge=0, le=23)
    cleanup_minute: int = Field(0, ge=0, le=59)
    timezone: str = "UTC"
    lock_backend: Literal["postgres", "local"] = "postgres"


class PipelineSettings(BaseModel):
    """Complete pipeline configuration."""

    object_store: ObjectStoreSettings = Field(default_factory=ObjectStoreSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    metrics_port: int = Field(8000, gt=0, lt=65536)


# Environment variable -> (section, field); section None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "S3_BUCKET": ("object_store", "bucket"),
    "S3_PREFIX": ("object_store", "prefix"),
    "AWS_REGION": ("object_store", "region"),
    "S3_ENDPOINT_URL": ("object_store", "endpoint_url"),
    "S3_MAX_RETRIES": ("object_store", "max_retries"),
    "S3_RETRY_BASE_DELAY": ("object_store", "base_delay_seconds"),
    "PIPELINE_BATCH_SIZE": ("processing", "batch_size"),
    "PIPELINE_PERSIST_BATCH_SIZE": ("processing", "persist_batch_size"),
    "PIPELINE_MAX_ERRORS": ("processing", "max_errors"),
    "PIPELINE_ERROR_BUDGET": ("processing", "error_budget"),
    "CONCURRENT_PROCESSING": ("processing", "concurrent"),
    "MAX_CONCURRENT_FILES": ("processing", "max_concurrent_files"),
    "STUCK_TIMEOUT_HOURS": ("ledger", "stuck_timeout_hours"),
    "RETENTION_DAYS": ("ledger", "retention_days"),
    "PROCESSING_INTERVAL_SECONDS": ("scheduler", "processing_interval_seconds"),
    "CLEANUP_CRON_HOUR": ("scheduler", "cleanup_hour"),
    "SCHEDULER_TIMEZONE": ("scheduler", "timezone"),
    "LOCK_BACKEND": ("scheduler", "lock_backend"),
    "METRICS_PORT": (None, "metrics_port"),
}


def _read_yaml(config_path: Path) -> dict[str, Any]:
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return config


def load_settings(
    config_path: str | Path | None = None,
    env: dict[str, str] | None = None,
    env_file: str | Path | None = ".env",
) -> PipelineSettings:
    """
    Build settings from YAML, environment and defaults.

    Args:
        config_path: Optional YAML file (defaults to PIPELINE_CONFIG if set)
        env: Environment mapping (defaults to os.environ)
        env_file: .env file loaded into os.environ when present

    Returns:
        Validated PipelineSettings

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        ValueError: If the configuration is invalid
    """
    if env is None:
        if env_file and Path(env_file).exists():
            load_dotenv(env_file, override=False)
        env = dict(os.environ)

    config_path = config_path or env.get("PIPELINE_CONFIG")
    data: dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Pipeline configuration file not found: {config_path}")
        data = _read_yaml(path)

    for variable, (section, field) in ENV_OVERRIDES.items():
        value = env.get(variable)
        if value is None or value == "":
            continue
        if section is None:
            data[field] = value
        else:
            data.setdefault(section, {})[field] = value

    return PipelineSettings.model_validate(data)

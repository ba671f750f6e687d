"""Configuration management for the status checker."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from status_checks.history import DEFAULT_MAX_RECORDS
from status_checks.probe import DEFAULT_SUCCESS_STATUS_CODES, ProbePolicy
from status_checks.uptime import MAX_DAYS


class CheckerConfig(BaseModel):
    """Main configuration for a check run."""

    # Inputs / outputs
    urls_file: str = Field(default="urls.cfg", description="File with one key=url target per line")
    logs_dir: str = Field(default="logs", description="Directory holding <key>_report.log files")
    record: bool = Field(default=True, description="Append outcomes to the per-service logs")
    summary_path: Optional[str] = Field(default=None, description="Optional JSON run summary output path")
    log_level: str = Field(default="INFO", description="Logging level")

    # Retention / display
    max_records: int = Field(default=DEFAULT_MAX_RECORDS, description="Records kept per service log")
    window_days: int = Field(default=MAX_DAYS, description="Days shown in the uptime history")

    # Probe
    attempts: int = Field(default=3, description="HTTP attempts per service per run")
    retry_delay_seconds: float = Field(default=2.0, description="Fixed pause between attempts")
    connect_timeout_seconds: float = Field(default=10.0, description="Connection timeout per attempt")
    total_timeout_seconds: float = Field(default=30.0, description="Total timeout per attempt")
    success_status_codes: list[int] = Field(
        default_factory=lambda: sorted(DEFAULT_SUCCESS_STATUS_CODES),
        description="Final HTTP status codes treated as up",
    )

    @field_validator("attempts", "max_records", "window_days")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if int(v) < 1:
            raise ValueError("must be >= 1")
        return int(v)

    @field_validator("connect_timeout_seconds", "total_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if float(v) <= 0:
            raise ValueError("must be > 0")
        return float(v)

    @field_validator("retry_delay_seconds")
    @classmethod
    def _non_negative_delay(cls, v: float) -> float:
        if float(v) < 0:
            raise ValueError("must be >= 0")
        return float(v)

    @field_validator("success_status_codes")
    @classmethod
    def _non_empty_codes(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("success_status_codes must be a non-empty list of ints")
        return [int(x) for x in v]

    def probe_policy(self) -> ProbePolicy:
        return ProbePolicy(
            attempts=self.attempts,
            retry_delay_seconds=self.retry_delay_seconds,
            connect_timeout_seconds=self.connect_timeout_seconds,
            total_timeout_seconds=self.total_timeout_seconds,
            success_status_codes=frozenset(self.success_status_codes),
        )


def _env_overrides() -> dict[str, Any]:
    overrides = {
        "urls_file": os.getenv("STATUS_URLS_FILE"),
        "logs_dir": os.getenv("STATUS_LOGS_DIR"),
        "record": os.getenv("STATUS_RECORD"),
        "max_records": os.getenv("STATUS_MAX_RECORDS"),
        "summary_path": os.getenv("STATUS_SUMMARY_PATH"),
        "log_level": os.getenv("LOG_LEVEL"),
    }

    out: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "record":
            value = value.strip().lower() in ("true", "1", "yes", "on")
        elif key == "max_records":
            value = int(value)
        out[key] = value
    return out


def load_config(config_path: Optional[str | Path] = None) -> CheckerConfig:
    """Load configuration from an optional YAML file, then environment variables."""
    if config_path is None:
        config_path = os.getenv("STATUS_CONFIG", "status_checks.yaml")

    config_data: dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError("Config YAML must be a mapping")

    config_data.update(_env_overrides())
    return CheckerConfig(**config_data)

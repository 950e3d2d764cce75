"""Logging settings for the outbox runtime and CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """How the worker and CLI write their logs.

    Environment variables use the LOG_ prefix, e.g. LOG_LEVEL=DEBUG,
    LOG_JSON=false, LOG_FILE_PATH=logs/outbox.jsonl.
    """

    # ──────────────────────────────────────────────────────────────
    # Output
    # ──────────────────────────────────────────────────────────────

    service_name: str = Field(
        default="outbox-service",
        description="Static 'service' field on JSON records",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(
        default=True,
        validation_alias=AliasChoices("LOG_JSON", "json_logs"),
        description="Write JSON Lines instead of plain text",
    )

    console_enabled: bool = Field(default=True, description="Log to stderr")
    console_level: LogLevel | None = Field(
        default=None,
        description="Threshold for the stderr handler; defaults to level",
    )

    file_path: Path | None = Field(
        default=None,
        description="Rotating JSONL file; unset disables file output",
    )
    file_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    file_backup_count: int = Field(default=5, ge=0, le=100)

    # ──────────────────────────────────────────────────────────────
    # Records
    # ──────────────────────────────────────────────────────────────

    include_context: bool = Field(
        default=True,
        description="Attach event_id/event_type/job context to records",
    )
    include_function_name: bool = False
    capture_warnings: bool = True

    # APScheduler logs every job execution at INFO; with a 5s poll that
    # drowns out delivery logs.
    scheduler_level: LogLevel = Field(
        default="WARNING",
        description="Level for the apscheduler loggers",
    )
    sqlalchemy_level: LogLevel = Field(
        default="WARNING",
        description="Level for sqlalchemy.engine (INFO echoes SQL)",
    )

    @field_validator("level", "console_level", "scheduler_level", "sqlalchemy_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            return v.upper()
        return v

    @computed_field
    @property
    def level_int(self) -> int:
        return logging.getLevelNamesMapping().get(self.level, logging.INFO)

    @computed_field
    @property
    def effective_console_level(self) -> LogLevel:
        return self.console_level or self.level

    @property
    def library_levels(self) -> dict[str, str]:
        """Per-logger overrides for noisy third-party libraries."""
        return {
            "apscheduler": self.scheduler_level,
            "sqlalchemy.engine": self.sqlalchemy_level,
        }

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for configure_logging()."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "console_level": self.effective_console_level,
            "file_path": str(self.file_path) if self.file_path else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "include_function_name": self.include_function_name,
            "capture_warnings": self.capture_warnings,
            "library_levels": self.library_levels,
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )


__all__ = ["LogLevel", "LoggingSettings"]

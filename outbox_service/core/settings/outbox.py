"""Outbox delivery configuration."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OutboxSettings(BaseSettings):
    """Settings for the outbox event bus and its background worker.

    Environment variables use OUTBOX_ prefix.
    Example: OUTBOX_PROCESS_INTERVAL=2, OUTBOX_MAX_ATTEMPTS=10
    """

    # ─────────────────────────────────────────────────────
    # Worker schedule
    # ─────────────────────────────────────────────────────
    worker_enabled: bool = Field(
        default=True,
        description="Start the background worker with the service lifespan.",
    )
    process_interval: float = Field(
        default=5.0,
        gt=0,
        le=3600,
        description="Seconds between drains of pending events.",
    )
    retry_interval: float = Field(
        default=60.0,
        gt=0,
        le=86400,
        description="Seconds between retries of failed events.",
    )
    cleanup_interval: float = Field(
        default=3600.0,
        gt=0,
        le=604800,
        description="Seconds between purges of old published events.",
    )

    # ─────────────────────────────────────────────────────
    # Delivery policy
    # ─────────────────────────────────────────────────────
    batch_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum records handled per drain pass.",
    )
    max_attempts: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Failed records are retried while attempt_count is below this.",
    )
    retention_days: int = Field(
        default=30,
        ge=0,
        le=3650,
        description="Published records older than this many days are purged.",
    )
    error_max_length: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Stored error messages are truncated to this length.",
    )

    # ─────────────────────────────────────────────────────
    # Consumers
    # ─────────────────────────────────────────────────────
    consumers: list[str] = Field(
        default_factory=list,
        description=(
            "Import paths ('package.module:function') called with the event bus "
            "at startup to subscribe handlers. JSON list in the environment."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )


__all__ = ["OutboxSettings"]

"""OutboxEvent SQLAlchemy model for the transactional outbox pattern.

Rows are written in the same transaction as the aggregate that raised the
event, so either both are committed or neither is. The background worker
reads pending rows, delivers them to in-process handlers and records the
outcome on the row.

Lifecycle:
    PENDING --delivered--> PUBLISHED (terminal)
    PENDING --failed--> FAILED --retried ok--> PUBLISHED
    FAILED --failed again--> FAILED (attempt_count grows until max_attempts)
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from outbox_service.core.database.base import Base, IntegerPKMixin, TimestampMixin


class OutboxStatus(StrEnum):
    """Delivery state of an outbox row."""

    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class OutboxEvent(Base, IntegerPKMixin, TimestampMixin):
    """Outbox table for reliable event delivery.

    Attributes:
        id: Auto-increment primary key, tie-breaker for rows created in the
            same instant
        event_id: Unique id of the event (idempotency key for consumers)
        event_name: Event kind (e.g., "workspace.created")
        aggregate_id: Id of the aggregate that raised the event
        aggregate_type: Aggregate type (e.g., "Workspace")
        payload: {"data": <event fields>, "version": <event schema version>}
        status: PENDING, PUBLISHED or FAILED
        attempt_count: Failed delivery attempts so far (never decreases)
        last_attempt_at: When the last failed attempt happened
        published_at: When delivery succeeded
        error: Last delivery error, truncated
    """

    __tablename__ = "outbox_events"

    event_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        unique=True,
        comment="Unique event identifier",
    )
    event_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Event kind",
    )
    aggregate_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Id of the aggregate that raised the event",
    )
    aggregate_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Aggregate type (e.g., Workspace)",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Event data and schema version",
    )

    status: Mapped[OutboxStatus] = mapped_column(
        Enum(OutboxStatus, name="outbox_status", native_enum=False, length=20),
        nullable=False,
        default=OutboxStatus.PENDING,
        index=True,
        comment="Delivery status",
    )
    attempt_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of failed delivery attempts",
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the last failed attempt happened",
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the event was delivered",
    )
    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Last delivery error (truncated)",
    )

    __table_args__ = (
        # Retry scan: FAILED rows below the attempt ceiling
        Index("ix_outbox_events_status_attempt_count", "status", "attempt_count"),
        Index("ix_outbox_events_created_at", "created_at"),
    )

    @property
    def is_published(self) -> bool:
        return self.status == OutboxStatus.PUBLISHED

    def can_retry(self, max_attempts: int) -> bool:
        """Check if a failed row is still eligible for retry."""
        return self.status == OutboxStatus.FAILED and self.attempt_count < max_attempts

    def __repr__(self) -> str:
        return (
            f"OutboxEvent("
            f"id={self.id}, "
            f"event_name={self.event_name!r}, "
            f"status={self.status}, "
            f"attempts={self.attempt_count}"
            f")"
        )


__all__ = ["OutboxEvent", "OutboxStatus"]

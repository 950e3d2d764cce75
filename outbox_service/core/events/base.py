"""Domain event base class with versioning and causation tracking.

Domain events are immutable records of something that happened to an
aggregate. They are written to the outbox in the same transaction as the
aggregate and delivered to in-process handlers afterwards.

Key features:
- Event versioning for schema evolution
- Causation and correlation tracking
- Automatic timestamp and ID generation
- Outbox payload serialization
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, ClassVar, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

_UNSET_EVENT_NAME = "domain.event"


class DomainEvent(BaseModel):
    """Base class for all domain events.

    Subclasses must define:
    - event_name: ClassVar[str] - Unique event kind (e.g., "workspace.created")
    - event_version: ClassVar[int] - Schema version for evolution (default: 1)

    Example:
        class WorkspaceCreated(DomainEvent):
            event_name: ClassVar[str] = "workspace.created"

            name: str
            owner_id: str

        event = WorkspaceCreated(aggregate_id=workspace.id, name="Acme", owner_id="u-1")

    Attributes:
        event_id: Unique identifier for this event instance (UUID v4)
        aggregate_id: Identifier of the aggregate that raised the event
        occurred_at: When the event occurred (UTC)
        correlation_id: ID linking related events across operations
        causation_id: ID of the event that caused this event
        metadata: Additional context (user_id, request_id, etc.)
    """

    event_name: ClassVar[str] = _UNSET_EVENT_NAME
    event_version: ClassVar[int] = 1

    event_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique event identifier",
    )
    aggregate_id: str = Field(
        min_length=1,
        description="Identifier of the aggregate that raised the event",
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Event timestamp in UTC",
    )
    correlation_id: str | None = Field(
        default=None,
        description="Correlation ID for tracing related events",
    )
    causation_id: str | None = Field(
        default=None,
        description="ID of the event that caused this event",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event metadata",
    )

    model_config = ConfigDict(
        frozen=True,  # Events are immutable
        str_strip_whitespace=True,
        extra="forbid",  # Strict schema validation
    )

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Require concrete event classes to declare their kind."""
        super().__init_subclass__(**kwargs)
        if cls.__dict__.get("__abstract__", False):
            return
        if cls.event_name == _UNSET_EVENT_NAME:
            msg = f"{cls.__name__} must define 'event_name' class variable"
            raise TypeError(msg)

    @classmethod
    def get_event_name(cls) -> str:
        """Get the event kind identifier."""
        return cls.event_name

    @classmethod
    def get_event_version(cls) -> int:
        """Get the event schema version."""
        return cls.event_version

    @classmethod
    def get_qualified_name(cls) -> str:
        """Get the event kind with its version (e.g. "workspace.created:v1")."""
        return f"{cls.event_name}:v{cls.event_version}"

    def with_causation(self, causing_event: DomainEvent) -> Self:
        """Create a copy of this event with causation tracking.

        Sets causation_id to the causing event's ID and inherits its
        correlation_id when this event has none.

        Args:
            causing_event: The event that caused this event

        Returns:
            New event instance with causation tracking
        """
        updates: dict[str, Any] = {"causation_id": causing_event.event_id}
        if self.correlation_id is None and causing_event.correlation_id:
            updates["correlation_id"] = causing_event.correlation_id
        return self.model_copy(update=updates)

    def with_correlation(self, correlation_id: str) -> Self:
        """Create a copy of this event with a correlation ID."""
        return self.model_copy(update={"correlation_id": correlation_id})

    def with_metadata(self, **kwargs: Any) -> Self:
        """Create a copy of this event with additional metadata."""
        return self.model_copy(update={"metadata": {**self.metadata, **kwargs}})

    def to_outbox_payload(self) -> dict[str, Any]:
        """Serialize the event for outbox storage.

        The kind is stored in its own column, so the payload only carries the
        JSON-safe field values and the schema version needed to decode them.

        Returns:
            Dictionary of the form {"data": {...}, "version": n}
        """
        return {
            "data": self.model_dump(mode="json"),
            "version": self.event_version,
        }

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"{self.__class__.__name__}("
            f"event_id={self.event_id!r}, "
            f"event_name={self.event_name!r}, "
            f"aggregate_id={self.aggregate_id!r}"
            f")"
        )


__all__ = ["DomainEvent"]

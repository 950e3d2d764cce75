"""Event decoding and delivery exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from outbox_service.core.events.base import DomainEvent


class EventError(Exception):
    """Base class for event subsystem errors."""


class EventDeserializationError(EventError):
    """A stored payload could not be turned back into a typed event.

    Attributes:
        event_name: Stored event kind
        reason: Human-readable cause (missing field, bad type, ...)
    """

    def __init__(self, event_name: str, reason: str) -> None:
        self.event_name = event_name
        self.reason = reason
        super().__init__(f"Cannot deserialize event '{event_name}': {reason}")


class UnknownEventTypeError(EventDeserializationError):
    """No event class is registered for the stored kind/version."""

    def __init__(self, event_name: str, version: int | None = None) -> None:
        self.version = version
        version_str = f" version {version}" if version is not None else ""
        super().__init__(event_name, f"unknown event type{version_str}")


class EventDeliveryError(EventError):
    """One or more handlers failed while delivering an event.

    Raised only on the outbox delivery path, after every handler has run, so
    that the record is marked failed and retried later.

    Attributes:
        event: The event that was being delivered
        failures: (handler name, exception) pairs for each failed handler
    """

    def __init__(
        self,
        event: DomainEvent,
        failures: list[tuple[str, BaseException]],
    ) -> None:
        self.event = event
        self.failures = failures
        summary = "; ".join(f"{name}: {exc}" for name, exc in failures)
        super().__init__(
            f"{len(failures)} handler(s) failed for '{event.event_name}' "
            f"({event.event_id}): {summary}"
        )


__all__ = [
    "EventDeliveryError",
    "EventDeserializationError",
    "EventError",
    "UnknownEventTypeError",
]

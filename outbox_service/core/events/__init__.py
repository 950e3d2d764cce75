"""Domain event primitives.

- DomainEvent: immutable, versioned pydantic event base
- EventRegistry: kind/version -> class mapping used to decode outbox payloads
- AggregateRoot: collects events raised by an aggregate until persisted
- EventHandler: consumer contract for in-process handlers
"""

from outbox_service.core.events.aggregate import AggregateRoot
from outbox_service.core.events.base import DomainEvent
from outbox_service.core.events.exceptions import (
    EventDeliveryError,
    EventDeserializationError,
    EventError,
    UnknownEventTypeError,
)
from outbox_service.core.events.handlers import EventHandler, EventHandlerFunc, HandlerLike
from outbox_service.core.events.registry import EventRegistry, event_registry

__all__ = [
    "AggregateRoot",
    "DomainEvent",
    "EventDeliveryError",
    "EventDeserializationError",
    "EventError",
    "EventHandler",
    "EventHandlerFunc",
    "EventRegistry",
    "HandlerLike",
    "UnknownEventTypeError",
    "event_registry",
]

"""Event type registry for deserialization and discovery.

The registry maps event kinds to event classes so that outbox payloads can be
decoded back into typed events before they reach handlers.

Usage:
    from outbox_service.core.events import EventRegistry, DomainEvent

    registry = EventRegistry()

    @registry.register
    class WorkspaceCreated(DomainEvent):
        event_name: ClassVar[str] = "workspace.created"
        name: str

    event = registry.deserialize("workspace.created", record.payload)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar, overload

from pydantic import ValidationError

from outbox_service.core.events.exceptions import (
    EventDeserializationError,
    UnknownEventTypeError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from outbox_service.core.events.base import DomainEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="DomainEvent")


class EventRegistry:
    """Registry of domain event classes keyed by kind and version.

    Registration is expected during startup; lookups are read-only afterwards.
    """

    def __init__(self) -> None:
        # Map: event_name -> version -> event_class
        self._events: dict[str, dict[int, type[DomainEvent]]] = {}
        # Map: event_name -> latest version number
        self._latest_versions: dict[str, int] = {}

    @overload
    def register(self, event_class: type[T]) -> type[T]: ...

    @overload
    def register(self, event_class: None = None) -> Callable[[type[T]], type[T]]: ...

    def register(
        self, event_class: type[T] | None = None
    ) -> type[T] | Callable[[type[T]], type[T]]:
        """Register an event class.

        Can be used as a decorator (with or without parentheses) or called
        directly.

        Args:
            event_class: The event class to register

        Returns:
            The event class unchanged, or a decorator when called without
            arguments

        Raises:
            ValueError: If another class is already registered for the same
                kind and version
        """

        def _register(cls: type[T]) -> type[T]:
            event_name = cls.get_event_name()
            event_version = cls.get_event_version()
            versions = self._events.setdefault(event_name, {})

            existing = versions.get(event_version)
            if existing is not None:
                if existing is not cls:
                    raise ValueError(
                        f"Event type '{event_name}' version {event_version} "
                        f"already registered with {existing.__name__}"
                    )
                return cls

            versions[event_version] = cls
            if event_version > self._latest_versions.get(event_name, 0):
                self._latest_versions[event_name] = event_version

            logger.debug(
                "Registered event type",
                extra={
                    "event_name": event_name,
                    "version": event_version,
                    "class": cls.__name__,
                },
            )
            return cls

        if event_class is None:
            return _register
        return _register(event_class)

    def get(self, event_name: str, version: int | None = None) -> type[DomainEvent] | None:
        """Get an event class by kind and optional version (latest if None)."""
        versions = self._events.get(event_name)
        if not versions:
            return None
        if version is not None:
            return versions.get(version)
        return versions.get(self._latest_versions[event_name])

    def get_or_raise(self, event_name: str, version: int | None = None) -> type[DomainEvent]:
        """Get an event class or raise UnknownEventTypeError."""
        event_class = self.get(event_name, version)
        if event_class is None:
            raise UnknownEventTypeError(event_name, version)
        return event_class

    def deserialize(self, event_name: str, payload: Mapping[str, Any]) -> DomainEvent:
        """Decode a stored outbox payload into a typed event.

        Args:
            event_name: The stored event kind
            payload: The stored payload, {"data": {...}, "version": n}

        Returns:
            Deserialized event instance

        Raises:
            UnknownEventTypeError: If no class is registered for the kind
            EventDeserializationError: If the payload is malformed or does
                not validate against the event schema

        Example:
            event = registry.deserialize(
                "workspace.created",
                {"data": {"aggregate_id": "w-1", "name": "Acme", ...}, "version": 1},
            )
        """
        if not isinstance(payload, Mapping) or not isinstance(payload.get("data"), Mapping):
            raise EventDeserializationError(event_name, "payload has no 'data' object")

        version = payload.get("version")
        event_class = self.get(event_name, version) if isinstance(version, int) else None

        if event_class is None:
            # Fall back to the latest version for forward compatibility
            event_class = self.get(event_name)
            if event_class is None:
                raise UnknownEventTypeError(event_name)
            logger.warning(
                "Using latest version for deserialization",
                extra={
                    "event_name": event_name,
                    "requested_version": version,
                    "using_version": event_class.get_event_version(),
                },
            )

        try:
            return event_class.model_validate(payload["data"])
        except ValidationError as exc:
            raise EventDeserializationError(event_name, str(exc)) from exc

    def list_types(self) -> list[str]:
        """List all registered event kinds."""
        return list(self._events)

    def list_versions(self, event_name: str) -> list[int]:
        """List all registered versions for an event kind, ascending."""
        return sorted(self._events.get(event_name, {}))

    def __contains__(self, event_name: str) -> bool:
        return event_name in self._events

    def __len__(self) -> int:
        return len(self._events)

    def clear(self) -> None:
        """Clear all registrations (mainly for testing)."""
        self._events.clear()
        self._latest_versions.clear()


# Default registry for applications that register events at import time.
# Buses take a registry explicitly, so tests can use isolated instances.
event_registry = EventRegistry()


__all__ = ["EventRegistry", "event_registry"]

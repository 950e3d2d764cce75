"""Aggregate root that records domain events until they are persisted."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from outbox_service.core.events.base import DomainEvent


class AggregateRoot:
    """Base class for aggregates that raise domain events.

    Events accumulate in memory while the aggregate is mutated. The
    repository writes them to the outbox in the same transaction as the
    aggregate, then calls clear_events(). If that transaction does not
    commit, the unit of work hands them back through restore_events().

    Example:
        class Workspace(AggregateRoot):
            def __init__(self, workspace_id: str, name: str) -> None:
                super().__init__(workspace_id)
                self.name = name

            @classmethod
            def create(cls, workspace_id: str, name: str, owner_id: str) -> Workspace:
                workspace = cls(workspace_id, name)
                workspace.add_domain_event(
                    WorkspaceCreated(aggregate_id=workspace_id, name=name, owner_id=owner_id)
                )
                return workspace
    """

    def __init__(self, aggregate_id: str) -> None:
        self.id = aggregate_id
        self.version = 0
        self._domain_events: list[DomainEvent] = []

    @property
    def domain_events(self) -> tuple[DomainEvent, ...]:
        """Events raised since the last clear, in the order they were added."""
        return tuple(self._domain_events)

    def add_domain_event(self, event: DomainEvent) -> None:
        """Record an event and bump the aggregate version."""
        self._domain_events.append(event)
        self.version += 1

    def clear_events(self) -> None:
        """Forget recorded events once they have been written to the outbox."""
        self._domain_events.clear()

    def restore_events(self, events: Sequence[DomainEvent]) -> None:
        """Put back events whose outbox write was rolled back.

        They go ahead of anything recorded since, and the version is left alone.
        """
        self._domain_events[:0] = events

    @property
    def has_events(self) -> bool:
        return bool(self._domain_events)


__all__ = ["AggregateRoot"]

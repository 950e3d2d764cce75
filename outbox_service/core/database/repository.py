"""Repository bases for SQLAlchemy models and event-raising aggregates.

BaseRepository is a thin CRUD layer with explicit session passing.
AggregateRepository binds a unit of work and the transactional event bus so
that an aggregate and the events it raised are written atomically.

Example:
    class WorkspaceRepository(AggregateRepository[Workspace]):
        aggregate_type = "Workspace"

        async def save(self, aggregate: Workspace, session: AsyncSession) -> None:
            await session.merge(WorkspaceRow(id=aggregate.id, name=aggregate.name))

    async with unit_of_work:
        await workspace_repo.save_with_events(workspace)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import select

from outbox_service.core.database.exceptions import NoActiveTransactionError, NotFoundError
from outbox_service.core.events.aggregate import AggregateRoot
from outbox_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from outbox_service.core.database.unit_of_work import UnitOfWork
    from outbox_service.infra.events.outbox.bus import TransactionalEventBus


class BaseRepository[T]:
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - get_by(session, attr, value) -> T | None
        - create(session, instance) -> T
        - create_many(session, instances) -> list[T]

    Session is always explicit. For queries not covered here, use the session
    directly.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Get entity by primary key."""
        return await session.get(self.model, id)

    async def get_or_raise(self, session: AsyncSession, id: Any) -> T:  # noqa: A002
        """Get entity by primary key or raise NotFoundError."""
        instance = await self.get(session, id)
        if instance is None:
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get a single entity by an arbitrary column."""
        result = await session.execute(select(self.model).where(attr == value))
        return result.scalar_one_or_none()

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add an entity and flush so database defaults are populated."""
        session.add(instance)
        await session.flush()
        self._lazy.debug(lambda: f"Created {self.model.__name__}: {instance!r}")
        return instance

    async def create_many(self, session: AsyncSession, instances: list[T]) -> list[T]:
        """Add several entities in one flush."""
        session.add_all(instances)
        await session.flush()
        self._lazy.debug(lambda: f"Created {len(instances)} {self.model.__name__} rows")
        return instances


class AggregateRepository[A: AggregateRoot](ABC):
    """Persists an aggregate together with the events it raised.

    Subclasses implement save() for their own tables and set aggregate_type.
    save_with_events() must run inside an active unit of work: the aggregate
    and its outbox rows share that transaction, so they commit or roll back
    together.
    """

    aggregate_type: ClassVar[str]

    def __init__(self, unit_of_work: UnitOfWork, event_bus: TransactionalEventBus) -> None:
        self.unit_of_work = unit_of_work
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"repository.{type(self).__name__}")

    @property
    def session(self) -> AsyncSession:
        """Session of the active transaction."""
        return self.unit_of_work.get_transaction()

    @abstractmethod
    async def save(self, aggregate: A, session: AsyncSession) -> None:
        """Write the aggregate's state using the given transactional session."""

    async def save_with_events(self, aggregate: A, aggregate_type: str | None = None) -> A:
        """Save the aggregate and stage its events in the outbox.

        Args:
            aggregate: Aggregate to persist
            aggregate_type: Overrides the class-level aggregate_type

        Returns:
            The same aggregate, with its recorded events cleared. They are
            restored if the transaction rolls back, so a retried operation
            stages them again.

        Raises:
            NoActiveTransactionError: If the unit of work has not been started
        """
        if not self.unit_of_work.is_active():
            raise NoActiveTransactionError("save_with_events")

        session = self.unit_of_work.get_transaction()
        await self.save(aggregate, session)

        events = list(aggregate.domain_events)
        await self.event_bus.save_to_outbox(
            events,
            aggregate_type or self.aggregate_type,
            session,
        )
        aggregate.clear_events()
        if events:
            self.unit_of_work.on_rollback(partial(aggregate.restore_events, events))

        self._logger.debug(
            "Aggregate saved with events",
            extra={
                "aggregate_id": aggregate.id,
                "aggregate_type": aggregate_type or self.aggregate_type,
                "event_count": len(events),
            },
        )
        return aggregate


__all__ = ["AggregateRepository", "BaseRepository"]

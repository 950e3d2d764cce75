"""Unit of work port.

A unit of work owns at most one open database transaction. Repositories that
must write atomically (aggregate state plus its outbox rows) read the active
handle from it instead of opening their own sessions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession


class UnitOfWork(ABC):
    """Transaction scope shared by the repositories of one business operation.

    State machine: IDLE --start--> ACTIVE --commit|rollback--> IDLE.

    Calling start() while ACTIVE raises TransactionAlreadyActiveError; callers
    that want to join an existing transaction check is_active() first (see
    run_in_transaction). commit() and rollback() always return the unit of
    work to IDLE, even when the driver raises.

    Used as an async context manager the scope commits on success and rolls
    back on any exception:

        async with unit_of_work:
            await repository.save_with_events(workspace, "Workspace")
    """

    @abstractmethod
    async def start(self) -> None:
        """Begin a new transaction."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the active transaction and release it."""

    @abstractmethod
    async def rollback(self) -> None:
        """Roll back the active transaction and release it."""

    @abstractmethod
    def is_active(self) -> bool:
        """Whether a transaction is currently open."""

    @abstractmethod
    def get_transaction(self) -> AsyncSession:
        """Return the session bound to the active transaction."""

    @abstractmethod
    def on_rollback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` if the active transaction does not commit.

        Covers both rollback() and a commit() that fails. Callbacks run in
        reverse registration order and are dropped once the transaction
        commits.
        """

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()


__all__ = ["UnitOfWork"]

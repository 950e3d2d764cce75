"""SQLAlchemy implementation of the unit of work."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from outbox_service.core.database.exceptions import (
    NoActiveTransactionError,
    TransactionAlreadyActiveError,
)
from outbox_service.core.database.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Unit of work holding one AsyncSession with an open transaction.

    Instances are cheap and meant to be created per business operation.
    They are not safe to share between concurrent tasks.

    Example:
        uow = SqlAlchemyUnitOfWork(session_factory)
        async with uow:
            session = uow.get_transaction()
            ...
    """

    __slots__ = ("_rollback_callbacks", "_session", "_session_factory")

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self._rollback_callbacks: list[Callable[[], None]] = []

    async def start(self) -> None:
        if self._session is not None:
            raise TransactionAlreadyActiveError

        session = self._session_factory()
        try:
            await session.begin()
        except Exception:
            await session.close()
            raise
        self._session = session
        logger.debug("Transaction started")

    async def commit(self) -> None:
        session = self._release("commit")
        callbacks, self._rollback_callbacks = self._rollback_callbacks, []
        try:
            await session.commit()
        except BaseException:
            _run_rollback_callbacks(callbacks)
            raise
        finally:
            await session.close()
        logger.debug("Transaction committed")

    async def rollback(self) -> None:
        session = self._release("rollback")
        callbacks, self._rollback_callbacks = self._rollback_callbacks, []
        try:
            await session.rollback()
        finally:
            _run_rollback_callbacks(callbacks)
            await session.close()
        logger.debug("Transaction rolled back")

    def is_active(self) -> bool:
        return self._session is not None

    def get_transaction(self) -> AsyncSession:
        if self._session is None:
            raise NoActiveTransactionError("get_transaction")
        return self._session

    def on_rollback(self, callback: Callable[[], None]) -> None:
        if self._session is None:
            raise NoActiveTransactionError("on_rollback")
        self._rollback_callbacks.append(callback)

    def _release(self, operation: str) -> AsyncSession:
        """Detach the active session so the unit of work is idle on every path."""
        if self._session is None:
            raise NoActiveTransactionError(operation)
        session, self._session = self._session, None
        return session

    def __repr__(self) -> str:
        return f"SqlAlchemyUnitOfWork(active={self.is_active()})"


def _run_rollback_callbacks(callbacks: list[Callable[[], None]]) -> None:
    for callback in reversed(callbacks):
        callback()


__all__ = ["SqlAlchemyUnitOfWork"]

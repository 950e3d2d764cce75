"""Run coroutines inside a unit of work with commit, rollback and retry.

``run_in_transaction`` is the building block; ``transactional`` wraps a
coroutine function whose first argument is the unit of work.

Example:
    async def rename(uow: UnitOfWork) -> Workspace:
        workspace = await repository.get_or_raise(uow.get_transaction(), ws_id)
        workspace.rename("New name")
        return await repository.save_with_events(workspace)

    await run_in_transaction(uow, rename, retries=3)
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import wraps
from typing import TYPE_CHECKING, Concatenate

from outbox_service.infra.metrics.tracking import track_slow_transaction
from outbox_service.utils.retry import retry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from outbox_service.core.database.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_SLOW_THRESHOLD = 5.0

# PostgreSQL SQLSTATE codes for conditions that succeed on a fresh attempt.
RETRYABLE_SQLSTATES = frozenset(
    {
        "40P01",  # deadlock_detected
        "40001",  # serialization_failure
        "55P03",  # lock_not_available
        "57014",  # query_canceled (statement_timeout)
    }
)

RETRYABLE_MESSAGES = (
    "deadlock",
    "serialization failure",
    "could not serialize",
    "lock wait timeout",
    "timeout",
    "database is locked",
)


def _sqlstate(exc: BaseException) -> str | None:
    """Extract a SQLSTATE from a SQLAlchemy wrapper or a raw driver error."""
    for candidate in (getattr(exc, "orig", None), exc):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str):
                return code
    return None


def is_retryable_error(exc: BaseException) -> bool:
    """Whether a failed transaction is worth another attempt.

    Matches timeouts, PostgreSQL deadlock/serialization/lock codes and the
    equivalent driver messages (including SQLite's "database is locked").
    """
    if isinstance(exc, TimeoutError):
        return True
    if _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


async def run_in_transaction[T](
    unit_of_work: UnitOfWork,
    operation: Callable[[UnitOfWork], Awaitable[T]],
    *,
    retries: int = 0,
    retry_delay: float = 1.0,
    timeout: float | None = None,
    slow_threshold: float = DEFAULT_SLOW_THRESHOLD,
    name: str | None = None,
) -> T:
    """Await ``operation(unit_of_work)`` inside a transaction.

    When the unit of work already has an active transaction, the operation
    joins it and the outer owner decides commit or rollback. Otherwise a new
    transaction is started, committed on success and rolled back on any
    exception.

    Args:
        unit_of_work: Transaction scope to run in
        operation: Coroutine function receiving the unit of work
        retries: Extra attempts for retryable errors (see is_retryable_error)
        retry_delay: Initial backoff delay in seconds
        timeout: Upper bound in seconds for one attempt of the operation
        slow_threshold: Attempts slower than this are logged and counted
        name: Operation name for logs and metrics

    Returns:
        Whatever the operation returns.

    Raises:
        Exception: The operation's last exception after rollback.
    """
    op_name = name or getattr(operation, "__name__", "transaction")

    if unit_of_work.is_active():
        logger.debug("Joining active transaction", extra={"operation": op_name})
        return await operation(unit_of_work)

    async def _attempt() -> T:
        await unit_of_work.start()
        started = time.perf_counter()
        try:
            async with asyncio.timeout(timeout):
                result = await operation(unit_of_work)
            await unit_of_work.commit()
        except BaseException as exc:
            if unit_of_work.is_active():
                try:
                    await unit_of_work.rollback()
                except Exception:
                    logger.exception(
                        "Rollback failed",
                        extra={"operation": op_name, "original_error": str(exc)},
                    )
            raise
        finally:
            duration = time.perf_counter() - started
            if duration > slow_threshold:
                track_slow_transaction(op_name, duration)
        return result

    if retries <= 0:
        return await _attempt()

    attempt_with_retry = retry(
        max_attempts=retries + 1,
        initial_delay=retry_delay,
        jitter=False,
        retry_if=is_retryable_error,
        reraise=True,
        operation=op_name,
    )(_attempt)
    return await attempt_with_retry()


def transactional[**P, T](
    *,
    retries: int = 0,
    retry_delay: float = 1.0,
    timeout: float | None = None,
    slow_threshold: float = DEFAULT_SLOW_THRESHOLD,
) -> Callable[
    [Callable[Concatenate[UnitOfWork, P], Awaitable[T]]],
    Callable[Concatenate[UnitOfWork, P], Awaitable[T]],
]:
    """Decorator form of run_in_transaction.

    The decorated coroutine function must take the unit of work as its first
    positional argument.

    Example:
        @transactional(retries=2)
        async def create_workspace(uow: UnitOfWork, name: str) -> Workspace: ...
    """

    def decorator(
        func: Callable[Concatenate[UnitOfWork, P], Awaitable[T]],
    ) -> Callable[Concatenate[UnitOfWork, P], Awaitable[T]]:
        @wraps(func)
        async def wrapper(unit_of_work: UnitOfWork, *args: P.args, **kwargs: P.kwargs) -> T:
            return await run_in_transaction(
                unit_of_work,
                lambda uow: func(uow, *args, **kwargs),
                retries=retries,
                retry_delay=retry_delay,
                timeout=timeout,
                slow_threshold=slow_threshold,
                name=func.__name__,
            )

        return wrapper

    return decorator


__all__ = [
    "RETRYABLE_SQLSTATES",
    "is_retryable_error",
    "run_in_transaction",
    "transactional",
]

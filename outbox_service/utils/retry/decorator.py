"""Async retry decorator with exponential backoff and metrics."""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import TYPE_CHECKING

from outbox_service.infra.metrics.tracking import (
    track_retry_attempt,
    track_retry_exhausted,
    track_retry_success,
)

from .exceptions import RetryError, RetryStatistics
from .strategies import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


def retry[**P, R](
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    jitter_range: tuple[float, float] = (0.5, 1.5),
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    stop_after_delay: float | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
    reraise: bool = False,
    operation: str | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry an async function on retryable exceptions.

    Args:
        max_attempts: Total attempts including the first call
        initial_delay: Delay before the first retry (seconds)
        max_delay: Upper bound for a single delay
        exponential_base: Backoff multiplier per attempt
        jitter: Randomize delays so restarted workers don't retry in lockstep
        jitter_range: Multiplier range applied when jitter is on
        exceptions: Exception types considered retryable
        retry_if: Predicate overriding ``exceptions``
        stop_after_delay: Give up once this much time has elapsed
        on_retry: Callback invoked with (exception, attempt) before sleeping
        reraise: Re-raise the last exception instead of wrapping it in RetryError
        operation: Name used in logs and metrics (defaults to the function name)

    Raises:
        RetryError: When attempts are exhausted and ``reraise`` is False

    Example:
        @retry(max_attempts=5, initial_delay=0.5, exceptions=(OperationalError,))
        async def check_connection() -> None: ...
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        jitter_range=jitter_range,
        exceptions=exceptions,
        retry_if=retry_if,
        stop_after_delay=stop_after_delay,
    )

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        name = operation or func.__name__

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            statistics = RetryStatistics()
            attempt = 0

            while True:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    if not strategy.should_retry(e):
                        raise

                    if strategy.is_exhausted(attempt, statistics.elapsed):
                        statistics.finish()
                        track_retry_exhausted(name)
                        logger.error(
                            "All retry attempts exhausted",
                            extra={
                                "operation": name,
                                "attempts": attempt + 1,
                                "last_exception": str(e),
                                "total_delay": round(statistics.total_delay, 3),
                                "duration": round(statistics.elapsed, 3),
                            },
                        )
                        if reraise:
                            raise
                        raise RetryError(e, attempt + 1, statistics) from e

                    delay = strategy.calculate_delay(attempt)
                    statistics.record_retry(e, delay)
                    attempt += 1
                    track_retry_attempt(name, attempt + 1)
                    logger.warning(
                        "Retrying after transient error",
                        extra={
                            "operation": name,
                            "attempt": attempt,
                            "max_attempts": strategy.max_attempts,
                            "delay": round(delay, 3),
                            "exception": str(e),
                        },
                    )
                    if on_retry:
                        on_retry(e, attempt)
                    await asyncio.sleep(delay)
                else:
                    if statistics.attempts:
                        track_retry_success(name, statistics.attempts + 1)
                    return result

        return wrapper

    return decorator


__all__ = ["retry"]

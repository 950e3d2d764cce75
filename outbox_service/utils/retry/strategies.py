"""Backoff policy shared by database startup and the transaction runner."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RetryStrategy:
    """When to try again and how long to wait first.

    The delay before retry n (0-indexed) is initial_delay * exponential_base**n,
    capped at max_delay and, with jitter, scaled by a factor drawn from
    jitter_range.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: tuple[float, float] = (0.5, 1.5)
    exceptions: tuple[type[Exception], ...] = (Exception,)
    retry_if: Callable[[Exception], bool] | None = None
    stop_after_delay: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)

    def should_retry(self, exception: Exception) -> bool:
        """retry_if wins over the exception type list when both are set."""
        if self.retry_if is not None:
            return self.retry_if(exception)
        return isinstance(exception, self.exceptions)

    def is_exhausted(self, attempt: int, elapsed: float) -> bool:
        """True once attempt (0-indexed) was the last one or the time budget is spent."""
        if attempt >= self.max_attempts - 1:
            return True
        return self.stop_after_delay is not None and elapsed >= self.stop_after_delay

    def calculate_delay(self, attempt: int) -> float:
        delay = min(self.initial_delay * (self.exponential_base**attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(*self.jitter_range)
        return delay


__all__ = ["RetryStrategy"]

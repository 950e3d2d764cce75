"""Retry outcome types."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class RetryStatistics:
    """What happened across the attempts of one retried call."""

    attempts: int = 0
    total_delay: float = 0.0
    start_time: float = field(default_factory=time.monotonic)
    end_time: float | None = None
    exceptions: list[str] = field(default_factory=list)

    def record_retry(self, exception: Exception, delay: float) -> None:
        self.attempts += 1
        self.total_delay += delay
        self.exceptions.append(type(exception).__name__)

    def finish(self) -> None:
        self.end_time = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Seconds since the first attempt, or until finish() was called."""
        end = self.end_time if self.end_time is not None else time.monotonic()
        return end - self.start_time


class RetryError(Exception):
    """Raised when every attempt failed and the caller did not ask to re-raise."""

    def __init__(
        self,
        last_exception: Exception,
        attempts: int,
        statistics: RetryStatistics | None = None,
    ) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        self.statistics = statistics
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_exception}")


__all__ = ["RetryError", "RetryStatistics"]

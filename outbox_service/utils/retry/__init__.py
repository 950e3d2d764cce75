from __future__ import annotations

from outbox_service.utils.retry.decorator import retry
from outbox_service.utils.retry.exceptions import RetryError, RetryStatistics
from outbox_service.utils.retry.strategies import RetryStrategy

__all__ = ["RetryError", "RetryStatistics", "RetryStrategy", "retry"]

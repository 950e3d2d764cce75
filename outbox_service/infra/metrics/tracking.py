"""Helper functions for tracking outbox and retry metrics."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from outbox_service.infra.metrics import prometheus

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


# ============================================================================
# Outbox Tracking
# ============================================================================


def track_events_saved(aggregate_type: str, count: int) -> None:
    """Track events staged in the outbox.

    Example:
        track_events_saved("Workspace", 2)
    """
    if count:
        prometheus.outbox_events_saved_total.labels(aggregate_type=aggregate_type).inc(count)


def track_event_published(event_name: str) -> None:
    """Track one outbox record delivered and marked published."""
    prometheus.outbox_events_published_total.labels(event_name=event_name).inc()


def track_event_failed(event_name: str, reason: str) -> None:
    """Track one outbox record marked failed.

    Args:
        event_name: Stored event kind
        reason: Failure category (deserialization, delivery or error)
    """
    prometheus.outbox_events_failed_total.labels(event_name=event_name, reason=reason).inc()


def track_handler_error(event_name: str, handler: str) -> None:
    """Track an exception raised by a handler."""
    prometheus.outbox_handler_errors_total.labels(event_name=event_name, handler=handler).inc()


def track_events_cleaned(count: int) -> None:
    """Track published records removed by cleanup."""
    if count:
        prometheus.outbox_events_cleaned_total.inc(count)


def set_worker_running(running: bool) -> None:
    """Reflect the worker state in the running gauge."""
    prometheus.outbox_worker_running.set(1 if running else 0)


@asynccontextmanager
async def track_activity(activity: str) -> AsyncIterator[None]:
    """Time a worker pass and count it as an error if it raises.

    Example:
        async with track_activity("process_pending"):
            await bus.process_outbox_events(batch_size)
    """
    start = time.perf_counter()
    try:
        yield
    except Exception:
        prometheus.outbox_activity_errors_total.labels(activity=activity).inc()
        raise
    finally:
        prometheus.outbox_activity_duration_seconds.labels(activity=activity).observe(
            time.perf_counter() - start
        )


# ============================================================================
# Retry Tracking
# ============================================================================


def track_retry_attempt(operation: str, attempt_number: int) -> None:
    """Track a retry attempt.

    Args:
        operation: Name of the operation being retried
        attempt_number: Current attempt number (1-indexed)
    """
    prometheus.retry_attempts_total.labels(
        operation=operation,
        attempt_number=str(attempt_number),
    ).inc()


def track_retry_exhausted(operation: str) -> None:
    """Track when all retry attempts are exhausted."""
    prometheus.retry_exhausted_total.labels(operation=operation).inc()


def track_retry_success(operation: str, attempts_needed: int) -> None:
    """Track successful operation after retries."""
    prometheus.retry_success_after_failure_total.labels(
        operation=operation,
        attempts_needed=str(attempts_needed),
    ).inc()


def track_slow_transaction(operation: str, duration: float) -> None:
    """Track a transaction that ran longer than the slow threshold."""
    prometheus.transaction_slow_total.labels(operation=operation).inc()
    logger.warning(
        "Slow transaction",
        extra={"operation": operation, "duration": round(duration, 3)},
    )

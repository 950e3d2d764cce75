"""Logging infrastructure.

Provides structured logging with:
- JSONL format for log aggregation
- Automatic context injection (activity, event_id, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug output
- OpenTelemetry trace correlation

Basic usage:
    import logging

    from outbox_service.infra.logging import log_context

    logger = logging.getLogger(__name__)

    with log_context(activity="retry_failed"):
        logger.info("Retrying failed events")  # includes activity
"""

from outbox_service.infra.logging.config import (
    complete,
    configure_logging,
    setup_logging,
    shutdown,
)
from outbox_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
)
from outbox_service.infra.logging.formatters import JSONFormatter
from outbox_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]

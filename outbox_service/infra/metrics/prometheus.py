"""Prometheus metrics for the outbox subsystem."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so embedding applications control what gets exposed
REGISTRY = CollectorRegistry()

# Worker passes range from a few milliseconds (empty drain) to minutes
# (large cleanup on a cold table)
ACTIVITY_DURATION_BUCKETS = (
    0.005,
    0.01,
    0.05,
    0.1,
    0.5,
    1.0,
    5.0,
    15.0,
    60.0,
    300.0,
)

# ============================================================================
# Outbox write path
# ============================================================================

outbox_events_saved_total = Counter(
    "outbox_events_saved_total",
    "Events written to the outbox inside a business transaction",
    ["aggregate_type"],
    registry=REGISTRY,
)

# ============================================================================
# Outbox delivery path
# ============================================================================

outbox_events_published_total = Counter(
    "outbox_events_published_total",
    "Outbox records delivered and marked published",
    ["event_name"],
    registry=REGISTRY,
)

outbox_events_failed_total = Counter(
    "outbox_events_failed_total",
    "Outbox records whose delivery failed and were marked failed",
    ["event_name", "reason"],
    registry=REGISTRY,
)

outbox_handler_errors_total = Counter(
    "outbox_handler_errors_total",
    "Exceptions raised by event handlers",
    ["event_name", "handler"],
    registry=REGISTRY,
)

outbox_events_cleaned_total = Counter(
    "outbox_events_cleaned_total",
    "Published outbox records purged by retention cleanup",
    registry=REGISTRY,
)

outbox_activity_duration_seconds = Histogram(
    "outbox_activity_duration_seconds",
    "Duration of background worker passes",
    ["activity"],
    buckets=ACTIVITY_DURATION_BUCKETS,
    registry=REGISTRY,
)

outbox_activity_errors_total = Counter(
    "outbox_activity_errors_total",
    "Worker passes that raised instead of completing",
    ["activity"],
    registry=REGISTRY,
)

outbox_worker_running = Gauge(
    "outbox_worker_running",
    "1 while the outbox worker scheduler is running",
    registry=REGISTRY,
)

# ============================================================================
# Retry utility
# ============================================================================

retry_attempts_total = Counter(
    "retry_attempts_total",
    "Retry attempts made by the retry utility",
    ["operation", "attempt_number"],
    registry=REGISTRY,
)

retry_exhausted_total = Counter(
    "retry_exhausted_total",
    "Operations that failed after exhausting all retry attempts",
    ["operation"],
    registry=REGISTRY,
)

retry_success_after_failure_total = Counter(
    "retry_success_after_failure_total",
    "Operations that succeeded after one or more retries",
    ["operation", "attempts_needed"],
    registry=REGISTRY,
)

transaction_slow_total = Counter(
    "transaction_slow_total",
    "Transactions that exceeded the slow-transaction threshold",
    ["operation"],
    registry=REGISTRY,
)

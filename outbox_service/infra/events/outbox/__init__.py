"""Transactional outbox: table model, store, event bus and background worker."""

from outbox_service.infra.events.outbox.bus import TransactionalEventBus
from outbox_service.infra.events.outbox.models import OutboxEvent, OutboxStatus
from outbox_service.infra.events.outbox.repository import OutboxRepository, OutboxStatistics
from outbox_service.infra.events.outbox.worker import (
    CLEANUP_JOB_ID,
    PROCESS_JOB_ID,
    RETRY_JOB_ID,
    OutboxWorker,
    WorkerStatus,
)

__all__ = [
    "CLEANUP_JOB_ID",
    "PROCESS_JOB_ID",
    "RETRY_JOB_ID",
    "OutboxEvent",
    "OutboxRepository",
    "OutboxStatistics",
    "OutboxStatus",
    "OutboxWorker",
    "TransactionalEventBus",
    "WorkerStatus",
]

"""Background worker draining, retrying and purging the outbox.

Three APScheduler interval jobs run in the service's event loop:

- outbox_process: deliver PENDING rows (first run immediately on start)
- outbox_retry: deliver FAILED rows still below max_attempts
- outbox_cleanup: purge PUBLISHED rows past the retention window

Each job has max_instances=1, so a slow pass is never overlapped by the next
pass of the same job. Different jobs (and manual drains from the CLI) can
overlap; a row read by two passes before it is marked may be delivered
twice, which at-least-once delivery allows.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.logging import log_context
from outbox_service.infra.metrics.tracking import set_worker_running, track_activity

if TYPE_CHECKING:
    from outbox_service.core.settings import OutboxSettings
    from outbox_service.infra.events.outbox.bus import TransactionalEventBus

logger = logging.getLogger(__name__)

PROCESS_JOB_ID = "outbox_process"
RETRY_JOB_ID = "outbox_retry"
CLEANUP_JOB_ID = "outbox_cleanup"


@dataclass(frozen=True, slots=True)
class WorkerStatus:
    """Snapshot of the worker configuration and activity."""

    is_running: bool
    process_interval: float
    retry_interval: float
    cleanup_interval: float
    batch_size: int
    max_attempts: int
    retention_days: int
    processing: bool = False
    retrying: bool = False
    cleaning: bool = False
    next_runs: dict[str, str | None] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class OutboxWorker:
    """Schedules the outbox activities of one TransactionalEventBus.

    Example:
        worker = OutboxWorker(bus, get_outbox_settings())
        await worker.start()
        ...
        await worker.stop()
    """

    def __init__(
        self,
        bus: TransactionalEventBus,
        settings: OutboxSettings | None = None,
    ) -> None:
        self.bus = bus
        self.settings = settings or get_outbox_settings()
        self._scheduler: AsyncIOScheduler | None = None
        self._processing = False
        self._retrying = False
        self._cleaning = False

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self) -> None:
        """Arm the three interval jobs. Calling start() twice is a no-op."""
        if self.is_running:
            logger.warning("Outbox worker already running")
            return

        scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Never overlap a job with itself
                "misfire_grace_time": 60,
            },
        )
        scheduler.add_job(
            self.process_pending,
            trigger=IntervalTrigger(seconds=self.settings.process_interval),
            id=PROCESS_JOB_ID,
            name="Deliver pending outbox events",
            next_run_time=datetime.now(UTC),
            replace_existing=True,
        )
        scheduler.add_job(
            self.retry_failed,
            trigger=IntervalTrigger(seconds=self.settings.retry_interval),
            id=RETRY_JOB_ID,
            name="Retry failed outbox events",
            replace_existing=True,
        )
        scheduler.add_job(
            self.cleanup,
            trigger=IntervalTrigger(seconds=self.settings.cleanup_interval),
            id=CLEANUP_JOB_ID,
            name="Purge old published outbox events",
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        set_worker_running(True)

        logger.info(
            "Outbox worker started",
            extra={
                "process_interval": self.settings.process_interval,
                "retry_interval": self.settings.retry_interval,
                "cleanup_interval": self.settings.cleanup_interval,
                "batch_size": self.settings.batch_size,
                "max_attempts": self.settings.max_attempts,
            },
        )

    async def stop(self) -> None:
        """Stop scheduling new passes. In-flight passes run to completion."""
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        set_worker_running(False)
        logger.info("Outbox worker stopped")

    def get_status(self) -> WorkerStatus:
        next_runs: dict[str, str | None] = {}
        if self.is_running and self._scheduler is not None:
            for job in self._scheduler.get_jobs():
                next_runs[job.id] = job.next_run_time.isoformat() if job.next_run_time else None

        return WorkerStatus(
            is_running=self.is_running,
            process_interval=self.settings.process_interval,
            retry_interval=self.settings.retry_interval,
            cleanup_interval=self.settings.cleanup_interval,
            batch_size=self.settings.batch_size,
            max_attempts=self.settings.max_attempts,
            retention_days=self.settings.retention_days,
            processing=self._processing,
            retrying=self._retrying,
            cleaning=self._cleaning,
            next_runs=next_runs,
        )

    # ──────────────────────────────────────────────────────────────
    # Activities
    # ──────────────────────────────────────────────────────────────
    # Each activity logs and swallows its own errors so a failing pass never
    # removes the job from the scheduler.

    async def process_pending(self) -> int:
        """Deliver one batch of pending events. Returns the number published."""
        self._processing = True
        try:
            with log_context(activity="process_outbox"):
                async with track_activity("process"):
                    return await self.bus.process_outbox_events(self.settings.batch_size)
        except Exception:
            logger.exception("Outbox processing pass failed")
            return 0
        finally:
            self._processing = False

    async def retry_failed(self) -> int:
        """Retry failed events below max_attempts. Returns the number published."""
        self._retrying = True
        try:
            with log_context(activity="retry_outbox"):
                async with track_activity("retry"):
                    return await self.bus.retry_failed_events(self.settings.max_attempts)
        except Exception:
            logger.exception("Outbox retry pass failed")
            return 0
        finally:
            self._retrying = False

    async def cleanup(self) -> int:
        """Purge published events past the retention window. Returns the number deleted."""
        self._cleaning = True
        try:
            with log_context(activity="cleanup_outbox"):
                async with track_activity("cleanup"):
                    return await self.bus.cleanup_old_events(self.settings.retention_days)
        except Exception:
            logger.exception("Outbox cleanup pass failed")
            return 0
        finally:
            self._cleaning = False

    async def run_once(self) -> dict[str, int]:
        """Run drain, retry and cleanup once, in that order."""
        return {
            "published": await self.process_pending(),
            "retried": await self.retry_failed(),
            "cleaned": await self.cleanup(),
        }


__all__ = ["CLEANUP_JOB_ID", "PROCESS_JOB_ID", "RETRY_JOB_ID", "OutboxWorker", "WorkerStatus"]

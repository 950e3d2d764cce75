"""Transactional event bus.

Two delivery paths share one set of subscriptions:

1. Outbox path: ``save_to_outbox`` stages events in the caller's transaction;
   ``process_outbox_events`` and ``retry_failed_events`` later decode the
   stored rows and deliver them, recording the outcome on each row.
2. Direct path: ``publish`` delivers an in-memory event right away on a
   best-effort basis. Handler failures are logged and counted, never raised.

Delivery is at-least-once. Handlers must be idempotent on event_id.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from outbox_service.core.events.exceptions import (
    EventDeliveryError,
    EventDeserializationError,
)
from outbox_service.core.events.handlers import handler_name, invoke_handler
from outbox_service.infra.logging import log_context
from outbox_service.infra.metrics.tracking import (
    track_event_failed,
    track_event_published,
    track_handler_error,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_service.core.events.base import DomainEvent
    from outbox_service.core.events.handlers import HandlerLike
    from outbox_service.core.events.registry import EventRegistry
    from outbox_service.infra.events.outbox.models import OutboxEvent
    from outbox_service.infra.events.outbox.repository import OutboxRepository

logger = logging.getLogger(__name__)


class TransactionalEventBus:
    """In-process event bus backed by the outbox table.

    Example:
        bus = TransactionalEventBus(OutboxRepository(session_factory), event_registry)
        bus.subscribe("workspace.created", send_welcome_email)

        async with uow:
            await bus.save_to_outbox(workspace.domain_events, "Workspace", uow.get_transaction())

        await bus.process_outbox_events()
    """

    def __init__(self, repository: OutboxRepository, registry: EventRegistry) -> None:
        self.repository = repository
        self.registry = registry
        self._handlers: dict[str, list[HandlerLike]] = defaultdict(list)

    # ──────────────────────────────────────────────────────────────
    # Subscriptions
    # ──────────────────────────────────────────────────────────────

    def subscribe(self, event_name: str, handler: HandlerLike) -> None:
        """Register a handler for an event kind.

        Several handlers may subscribe to the same kind; they run concurrently.
        """
        self._handlers[event_name].append(handler)
        logger.debug(
            "Handler subscribed",
            extra={"event_name": event_name, "handler": handler_name(handler)},
        )

    def unsubscribe(self, event_name: str, handler: HandlerLike) -> bool:
        """Remove a handler. Returns False when it was not subscribed."""
        handlers = self._handlers.get(event_name)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[event_name]
        return True

    def handlers_for(self, event_name: str) -> list[HandlerLike]:
        return list(self._handlers.get(event_name, ()))

    # ──────────────────────────────────────────────────────────────
    # Outbox write path
    # ──────────────────────────────────────────────────────────────

    async def save_to_outbox(
        self,
        events: Sequence[DomainEvent],
        aggregate_type: str,
        session: AsyncSession,
    ) -> None:
        """Stage events in the outbox using the caller's transactional session.

        Errors propagate so the caller's unit of work rolls back together
        with the aggregate change.
        """
        if not events:
            return
        await self.repository.save_events(events, aggregate_type, session)

    # ──────────────────────────────────────────────────────────────
    # Direct delivery
    # ──────────────────────────────────────────────────────────────

    async def publish(self, event: DomainEvent, *, raise_on_error: bool = False) -> None:
        """Deliver an event to every subscribed handler.

        All handlers run concurrently and a failing handler never prevents the
        others from running.

        Args:
            event: Event to deliver
            raise_on_error: Raise EventDeliveryError once all handlers have
                finished if any of them failed. The outbox drain uses this to
                record the failure; direct callers leave it off.

        Raises:
            EventDeliveryError: Only when raise_on_error is set and a handler failed
        """
        event_name = event.get_event_name()
        handlers = self.handlers_for(event_name)
        if not handlers:
            logger.debug("No handlers for event", extra={"event_name": event_name})
            return

        results = await asyncio.gather(
            *(invoke_handler(handler, event) for handler in handlers),
            return_exceptions=True,
        )

        failures: list[tuple[str, BaseException]] = []
        for handler, result in zip(handlers, results, strict=True):
            if isinstance(result, BaseException):
                name = handler_name(handler)
                failures.append((name, result))
                track_handler_error(event_name, name)
                logger.error(
                    "Event handler failed",
                    exc_info=result,
                    extra={
                        "event_name": event_name,
                        "event_id": event.event_id,
                        "handler": name,
                    },
                )

        if failures and raise_on_error:
            raise EventDeliveryError(event, failures)

    async def publish_all(self, events: Sequence[DomainEvent]) -> None:
        """Best-effort concurrent publish of several events."""
        await asyncio.gather(*(self.publish(event) for event in events))

    # ──────────────────────────────────────────────────────────────
    # Outbox delivery
    # ──────────────────────────────────────────────────────────────

    async def process_outbox_events(self, batch_size: int = 100) -> int:
        """Deliver a batch of PENDING rows.

        Returns:
            Number of rows delivered and marked PUBLISHED
        """
        records = await self.repository.get_pending_events(batch_size)
        if not records:
            return 0

        logger.debug("Processing outbox batch", extra={"batch_size": len(records)})
        delivered = await self._deliver_records(records)
        logger.info(
            "Outbox batch processed",
            extra={"total": len(records), "published": delivered, "failed": len(records) - delivered},
        )
        return delivered

    async def retry_failed_events(self, max_attempts: int = 5) -> int:
        """Deliver FAILED rows that are still below max_attempts.

        Returns:
            Number of rows delivered and marked PUBLISHED
        """
        records = await self.repository.get_failed_events_for_retry(max_attempts)
        if not records:
            return 0

        delivered = await self._deliver_records(records)
        logger.info(
            "Failed outbox events retried",
            extra={"total": len(records), "published": delivered, "failed": len(records) - delivered},
        )
        return delivered

    async def cleanup_old_events(self, older_than_days: int = 30) -> int:
        """Purge PUBLISHED rows older than the retention window."""
        return await self.repository.delete_old_published_events(older_than_days)

    async def _deliver_records(self, records: Sequence[OutboxEvent]) -> int:
        # Sequential in batch order; each record succeeds or fails on its own.
        delivered = 0
        for record in records:
            if await self._deliver_record(record):
                delivered += 1
        return delivered

    async def _deliver_record(self, record: OutboxEvent) -> bool:
        with log_context(event_id=record.event_id, event_name=record.event_name):
            try:
                event = self.registry.deserialize(record.event_name, record.payload)
                await self.publish(event, raise_on_error=True)
                await self.repository.mark_as_published(record.event_id)
            except EventDeserializationError as e:
                await self._record_failure(record, e, reason="deserialization")
                return False
            except EventDeliveryError as e:
                await self._record_failure(record, e, reason="delivery")
                return False
            except Exception as e:
                await self._record_failure(record, e, reason="error")
                return False

            track_event_published(record.event_name)
            logger.debug("Outbox event published")
            return True

    async def _record_failure(self, record: OutboxEvent, error: Exception, *, reason: str) -> None:
        track_event_failed(record.event_name, reason)
        logger.warning(
            "Outbox event delivery failed",
            extra={
                "reason": reason,
                "attempt_count": record.attempt_count + 1,
                "error": str(error),
            },
        )
        try:
            await self.repository.mark_as_failed(record.event_id, str(error))
        except Exception:
            logger.exception("Could not record outbox delivery failure")


__all__ = ["TransactionalEventBus"]

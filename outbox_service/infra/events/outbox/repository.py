"""Repository for OutboxEvent persistence.

Provides methods for:
- Staging events inside the caller's transaction
- Fetching pending and retryable events in creation order
- Marking events as published or failed
- Purging old published events
- Summaries for operators (statistics, exhausted events)

Only save_events() participates in the caller's transaction. Every other
method opens a short session of its own and commits it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from outbox_service.core.database.repository import BaseRepository
from outbox_service.infra.events.outbox.models import OutboxEvent, OutboxStatus
from outbox_service.infra.metrics.tracking import track_events_cleaned, track_events_saved

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from outbox_service.core.events.base import DomainEvent

DEFAULT_ERROR_MAX_LENGTH = 1000


@dataclass(frozen=True, slots=True)
class OutboxStatistics:
    """Row counts per delivery state.

    Attributes:
        pending: Rows waiting for their first delivery
        published: Delivered rows not yet purged
        failed: FAILED rows still eligible for retry
        exhausted: FAILED rows that reached max_attempts
        total: All rows
    """

    pending: int = 0
    published: int = 0
    failed: int = 0
    exhausted: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class OutboxRepository(BaseRepository[OutboxEvent]):
    """Outbox store used by the event bus and the background worker."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        error_max_length: int = DEFAULT_ERROR_MAX_LENGTH,
    ) -> None:
        """Initialize repository.

        Args:
            session_factory: Factory for the short sessions of read/mark/purge operations
            error_max_length: Stored error messages are truncated to this length
        """
        super().__init__(OutboxEvent)
        self.session_factory = session_factory
        self.error_max_length = error_max_length

    # ──────────────────────────────────────────────────────────────
    # Transactional write path
    # ──────────────────────────────────────────────────────────────

    async def save_events(
        self,
        events: Sequence[DomainEvent],
        aggregate_type: str,
        session: AsyncSession,
    ) -> list[OutboxEvent]:
        """Stage events as PENDING rows in the caller's transaction.

        The session is flushed so constraint violations (such as a duplicate
        event_id) surface while the caller can still roll back. Nothing is
        committed here.

        Args:
            events: Events to stage, in the order they were raised
            aggregate_type: Type of the aggregate that raised them
            session: Session of the caller's active transaction

        Returns:
            The staged rows
        """
        if not events:
            return []

        rows = [
            OutboxEvent(
                event_id=event.event_id,
                event_name=event.get_event_name(),
                aggregate_id=event.aggregate_id,
                aggregate_type=aggregate_type,
                payload=event.to_outbox_payload(),
                status=OutboxStatus.PENDING,
                attempt_count=0,
            )
            for event in events
        ]
        await self.create_many(session, rows)
        track_events_saved(aggregate_type, len(rows))
        self._logger.debug(
            "Events staged in outbox",
            extra={"aggregate_type": aggregate_type, "count": len(rows)},
        )
        return rows

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    async def get_pending_events(self, batch_size: int = 100) -> list[OutboxEvent]:
        """Fetch PENDING rows, oldest first.

        Rows created in the same instant keep insertion order through the
        auto-increment id.
        """
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatus.PENDING)
            .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(batch_size)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_failed_events_for_retry(
        self,
        max_attempts: int = 5,
        limit: int = 100,
    ) -> list[OutboxEvent]:
        """Fetch FAILED rows with attempt_count below max_attempts, oldest first."""
        stmt = (
            select(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatus.FAILED,
                OutboxEvent.attempt_count < max_attempts,
            )
            .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_exhausted_events(
        self,
        max_attempts: int = 5,
        limit: int = 100,
    ) -> list[OutboxEvent]:
        """Fetch FAILED rows that will not be retried anymore.

        These are dead letters that need manual intervention.
        """
        stmt = (
            select(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatus.FAILED,
                OutboxEvent.attempt_count >= max_attempts,
            )
            .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_by_event_id(self, event_id: str) -> OutboxEvent | None:
        async with self.session_factory() as session:
            return await self.get_by(session, OutboxEvent.event_id, event_id)

    async def get_statistics(self, max_attempts: int = 5) -> OutboxStatistics:
        """Count rows per state.

        Args:
            max_attempts: Threshold separating retryable from exhausted FAILED rows

        Returns:
            OutboxStatistics snapshot
        """
        by_status = (
            select(OutboxEvent.status, func.count())
            .group_by(OutboxEvent.status)
        )
        exhausted_stmt = (
            select(func.count())
            .select_from(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatus.FAILED,
                OutboxEvent.attempt_count >= max_attempts,
            )
        )
        async with self.session_factory() as session:
            counts: dict[Any, int] = {
                status: count for status, count in (await session.execute(by_status)).all()
            }
            exhausted = (await session.execute(exhausted_stmt)).scalar_one()

        failed_total = counts.get(OutboxStatus.FAILED, 0)
        return OutboxStatistics(
            pending=counts.get(OutboxStatus.PENDING, 0),
            published=counts.get(OutboxStatus.PUBLISHED, 0),
            failed=failed_total - exhausted,
            exhausted=exhausted,
            total=sum(counts.values()),
        )

    # ──────────────────────────────────────────────────────────────
    # Status transitions
    # ──────────────────────────────────────────────────────────────

    async def mark_as_published(self, event_id: str) -> None:
        """Mark a row PUBLISHED.

        Idempotent: a row that is already PUBLISHED keeps its original
        published_at. Unknown ids are ignored.
        """
        stmt = (
            update(OutboxEvent)
            .where(
                OutboxEvent.event_id == event_id,
                OutboxEvent.status != OutboxStatus.PUBLISHED,
            )
            .values(
                status=OutboxStatus.PUBLISHED,
                published_at=datetime.now(UTC),
                error=None,
            )
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        if result.rowcount == 0:
            self._lazy.debug(lambda: f"Outbox event {event_id} already published or unknown")

    async def mark_as_failed(self, event_id: str, error_message: str) -> None:
        """Record a failed delivery attempt.

        attempt_count is incremented in the UPDATE statement itself so
        concurrent failures are not lost. Rows that are already PUBLISHED
        are left untouched.

        Args:
            event_id: Event id of the row
            error_message: Failure description, truncated before storage
        """
        stmt = (
            update(OutboxEvent)
            .where(
                OutboxEvent.event_id == event_id,
                OutboxEvent.status != OutboxStatus.PUBLISHED,
            )
            .values(
                status=OutboxStatus.FAILED,
                attempt_count=OutboxEvent.attempt_count + 1,
                error=error_message[: self.error_max_length],
                last_attempt_at=datetime.now(UTC),
            )
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        if result.rowcount == 0:
            self._logger.warning(
                "Cannot mark outbox event as failed: not found or already published",
                extra={"event_id": event_id},
            )

    # ──────────────────────────────────────────────────────────────
    # Maintenance
    # ──────────────────────────────────────────────────────────────

    async def delete_old_published_events(self, older_than_days: int = 30) -> int:
        """Delete PUBLISHED rows published more than older_than_days ago.

        Returns:
            Number of rows deleted
        """
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        stmt = delete(OutboxEvent).where(
            OutboxEvent.status == OutboxStatus.PUBLISHED,
            OutboxEvent.published_at.is_not(None),
            OutboxEvent.published_at < cutoff,
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        deleted = result.rowcount or 0
        track_events_cleaned(deleted)
        self._logger.info(
            "Purged old published outbox events",
            extra={"deleted": deleted, "older_than_days": older_than_days},
        )
        return deleted


__all__ = ["OutboxRepository", "OutboxStatistics"]

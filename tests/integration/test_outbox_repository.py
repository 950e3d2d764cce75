"""Integration tests for OutboxRepository on SQLite."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import update

from outbox_service.core.database import NotFoundError
from outbox_service.infra.events.outbox import OutboxEvent, OutboxRepository, OutboxStatus
from tests.fixtures.workspace import WorkspaceCreated, WorkspaceRenamed


def _created(aggregate_id: str = "w-1", name: str = "Acme") -> WorkspaceCreated:
    return WorkspaceCreated(aggregate_id=aggregate_id, name=name, owner_id="u-1")


async def _stage(session_factory, repository: OutboxRepository, *events) -> None:
    async with session_factory() as session, session.begin():
        await repository.save_events(list(events), "Workspace", session)


async def _set_columns(session_factory, event_id: str, **values) -> None:
    async with session_factory() as session, session.begin():
        await session.execute(
            update(OutboxEvent).where(OutboxEvent.event_id == event_id).values(**values)
        )


@pytest.mark.integration
class TestSaveEvents:
    """Test suite for staging events."""

    @pytest.mark.asyncio
    async def test_staged_rows_are_pending(self, session_factory, outbox_repository):
        event = _created()

        await _stage(session_factory, outbox_repository, event)

        row = await outbox_repository.get_by_event_id(event.event_id)
        assert row.status == OutboxStatus.PENDING
        assert row.attempt_count == 0
        assert row.event_name == "workspace.created"
        assert row.aggregate_id == "w-1"
        assert row.payload == event.to_outbox_payload()
        assert row.published_at is None

    @pytest.mark.asyncio
    async def test_empty_list_is_noop(self, session_factory, outbox_repository):
        async with session_factory() as session:
            assert await outbox_repository.save_events([], "Workspace", session) == []
            assert not session.new

    @pytest.mark.asyncio
    async def test_nothing_is_visible_before_commit(self, session_factory, outbox_repository):
        async with session_factory() as session:
            await session.begin()
            await outbox_repository.save_events([_created()], "Workspace", session)
            assert await outbox_repository.get_pending_events() == []
            await session.rollback()

        assert await outbox_repository.get_pending_events() == []


@pytest.mark.integration
class TestQueries:
    """Test suite for pending, retry and exhausted queries."""

    @pytest.mark.asyncio
    async def test_pending_ordered_oldest_first(self, session_factory, outbox_repository):
        first, second, third = _created("w-1"), _created("w-2"), _created("w-3")
        await _stage(session_factory, outbox_repository, first, second, third)
        now = datetime.now(UTC)
        await _set_columns(session_factory, first.event_id, created_at=now)
        await _set_columns(session_factory, second.event_id, created_at=now - timedelta(minutes=5))
        await _set_columns(session_factory, third.event_id, created_at=now - timedelta(minutes=1))

        rows = await outbox_repository.get_pending_events()

        assert [row.event_id for row in rows] == [second.event_id, third.event_id, first.event_id]

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_insertion_order(self, session_factory, outbox_repository):
        events = [_created(f"w-{i}") for i in range(4)]
        await _stage(session_factory, outbox_repository, *events)
        same_instant = datetime.now(UTC)
        for event in events:
            await _set_columns(session_factory, event.event_id, created_at=same_instant)

        rows = await outbox_repository.get_pending_events()

        assert [row.event_id for row in rows] == [event.event_id for event in events]

    @pytest.mark.asyncio
    async def test_pending_respects_batch_size(self, session_factory, outbox_repository):
        await _stage(session_factory, outbox_repository, *[_created(f"w-{i}") for i in range(5)])

        assert len(await outbox_repository.get_pending_events(batch_size=2)) == 2

    @pytest.mark.asyncio
    async def test_retry_eligibility_boundary(self, session_factory, outbox_repository):
        below, at_limit = _created("w-1"), _created("w-2")
        await _stage(session_factory, outbox_repository, below, at_limit)
        await _set_columns(session_factory, below.event_id, status=OutboxStatus.FAILED, attempt_count=4)
        await _set_columns(session_factory, at_limit.event_id, status=OutboxStatus.FAILED, attempt_count=5)

        retryable = await outbox_repository.get_failed_events_for_retry(max_attempts=5)
        exhausted = await outbox_repository.get_exhausted_events(max_attempts=5)

        assert [row.event_id for row in retryable] == [below.event_id]
        assert [row.event_id for row in exhausted] == [at_limit.event_id]

    @pytest.mark.asyncio
    async def test_statistics(self, session_factory, outbox_repository):
        events = [_created(f"w-{i}") for i in range(5)]
        await _stage(session_factory, outbox_repository, *events)
        await outbox_repository.mark_as_published(events[0].event_id)
        await _set_columns(session_factory, events[1].event_id, status=OutboxStatus.FAILED, attempt_count=1)
        await _set_columns(session_factory, events[2].event_id, status=OutboxStatus.FAILED, attempt_count=5)

        stats = await outbox_repository.get_statistics(max_attempts=5)

        assert stats.to_dict() == {
            "pending": 2,
            "published": 1,
            "failed": 1,
            "exhausted": 1,
            "total": 5,
        }


@pytest.mark.integration
class TestStatusTransitions:
    """Test suite for marking rows published or failed."""

    @pytest.mark.asyncio
    async def test_mark_as_published_is_idempotent(self, session_factory, outbox_repository):
        event = _created()
        await _stage(session_factory, outbox_repository, event)

        await outbox_repository.mark_as_published(event.event_id)
        first = await outbox_repository.get_by_event_id(event.event_id)
        await outbox_repository.mark_as_published(event.event_id)
        second = await outbox_repository.get_by_event_id(event.event_id)

        assert first.status == OutboxStatus.PUBLISHED
        assert first.published_at is not None
        assert second.published_at == first.published_at

    @pytest.mark.asyncio
    async def test_mark_as_published_unknown_id_is_silent(self, outbox_repository):
        await outbox_repository.mark_as_published("does-not-exist")

    @pytest.mark.asyncio
    async def test_mark_as_failed_increments_and_records_error(
        self, session_factory, outbox_repository
    ):
        event = _created()
        await _stage(session_factory, outbox_repository, event)

        await outbox_repository.mark_as_failed(event.event_id, "smtp down")
        await outbox_repository.mark_as_failed(event.event_id, "smtp still down")

        row = await outbox_repository.get_by_event_id(event.event_id)
        assert row.status == OutboxStatus.FAILED
        assert row.attempt_count == 2
        assert row.error == "smtp still down"
        assert row.last_attempt_at is not None

    @pytest.mark.asyncio
    async def test_mark_as_failed_truncates_error(self, session_factory, truncating_repository):
        event = _created()
        await _stage(session_factory, truncating_repository, event)

        await truncating_repository.mark_as_failed(event.event_id, "x" * 50)

        row = await truncating_repository.get_by_event_id(event.event_id)
        assert row.error == "x" * 10

    @pytest.mark.asyncio
    async def test_mark_as_failed_unknown_id_warns(self, outbox_repository, caplog):
        await outbox_repository.mark_as_failed("does-not-exist", "boom")

        assert any("Cannot mark outbox event as failed" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_published_rows_are_never_marked_failed(self, session_factory, outbox_repository):
        event = _created()
        await _stage(session_factory, outbox_repository, event)
        await outbox_repository.mark_as_published(event.event_id)

        await outbox_repository.mark_as_failed(event.event_id, "late failure")

        row = await outbox_repository.get_by_event_id(event.event_id)
        assert row.status == OutboxStatus.PUBLISHED
        assert row.attempt_count == 0


@pytest.mark.integration
class TestPurge:
    """Test suite for deleting old published rows."""

    @pytest.mark.asyncio
    async def test_deletes_only_old_published_rows(self, session_factory, outbox_repository):
        old, recent, pending, failed = (_created(f"w-{i}") for i in range(4))
        await _stage(session_factory, outbox_repository, old, recent, pending, failed)
        for event in (old, recent):
            await outbox_repository.mark_as_published(event.event_id)
        now = datetime.now(UTC)
        await _set_columns(session_factory, old.event_id, published_at=now - timedelta(days=31))
        await _set_columns(session_factory, recent.event_id, published_at=now - timedelta(days=29))
        await _set_columns(
            session_factory,
            failed.event_id,
            status=OutboxStatus.FAILED,
            created_at=now - timedelta(days=90),
        )

        deleted = await outbox_repository.delete_old_published_events(older_than_days=30)

        assert deleted == 1
        assert await outbox_repository.get_by_event_id(old.event_id) is None
        for survivor in (recent, pending, failed):
            assert await outbox_repository.get_by_event_id(survivor.event_id) is not None

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, outbox_repository):
        assert await outbox_repository.delete_old_published_events() == 0


@pytest.fixture
def truncating_repository(session_factory) -> OutboxRepository:
    """Repository with a tiny error limit for truncation tests."""
    return OutboxRepository(session_factory, error_max_length=10)


@pytest.mark.integration
class TestMixedKinds:
    """Payloads of different kinds share one table."""

    @pytest.mark.asyncio
    async def test_mixed_kinds(self, session_factory, outbox_repository):
        created = _created()
        renamed = WorkspaceRenamed(aggregate_id="w-1", old_name="Acme", new_name="Acme Inc")
        await _stage(session_factory, outbox_repository, created, renamed)

        rows = await outbox_repository.get_pending_events()

        assert [row.event_name for row in rows] == ["workspace.created", "workspace.renamed"]
        assert rows[1].payload["data"]["new_name"] == "Acme Inc"


@pytest.mark.integration
class TestPrimaryKeyAccess:
    """Test suite for the generic primary key helpers."""

    @pytest.mark.asyncio
    async def test_get_and_get_or_raise(self, session_factory, outbox_repository):
        event = _created()
        await _stage(session_factory, outbox_repository, event)
        stored = await outbox_repository.get_by_event_id(event.event_id)

        async with session_factory() as session:
            assert (await outbox_repository.get(session, stored.id)).event_id == event.event_id
            assert (await outbox_repository.get_or_raise(session, stored.id)).id == stored.id

    @pytest.mark.asyncio
    async def test_get_or_raise_missing(self, session_factory, outbox_repository):
        async with session_factory() as session:
            with pytest.raises(NotFoundError) as exc_info:
                await outbox_repository.get_or_raise(session, 999)

        assert exc_info.value.model_name == "OutboxEvent"
        assert exc_info.value.identifier == {"id": 999}

    @pytest.mark.asyncio
    async def test_create_single_row(self, session_factory, outbox_repository):
        event = _created()

        async with session_factory() as session, session.begin():
            row = await outbox_repository.create(
                session,
                OutboxEvent(
                    event_id=event.event_id,
                    event_name=event.get_event_name(),
                    aggregate_id=event.aggregate_id,
                    aggregate_type="Workspace",
                    payload=event.to_outbox_payload(),
                ),
            )
            assert row.id is not None

        stored = await outbox_repository.get_by_event_id(event.event_id)
        assert stored.status == OutboxStatus.PENDING
        assert stored.attempt_count == 0

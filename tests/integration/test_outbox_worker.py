"""Integration tests for the APScheduler-backed OutboxWorker."""
from __future__ import annotations

import asyncio

import pytest

from outbox_service.infra.events.outbox import (
    CLEANUP_JOB_ID,
    PROCESS_JOB_ID,
    RETRY_JOB_ID,
    OutboxStatus,
)
from tests.fixtures.workspace import WorkspaceCreated


async def _stage(event_bus, session_factory, *events) -> None:
    async with session_factory() as session, session.begin():
        await event_bus.save_to_outbox(list(events), "Workspace", session)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not await predicate():
            await asyncio.sleep(0.02)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.mark.integration
class TestWorkerLifecycle:
    """Test suite for start, stop and status."""

    @pytest.mark.asyncio
    async def test_status_before_start(self, outbox_worker):
        status = outbox_worker.get_status()

        assert status.is_running is False
        assert status.batch_size == 10
        assert status.max_attempts == 3
        assert status.next_runs == {}

    @pytest.mark.asyncio
    async def test_start_registers_three_jobs(self, outbox_worker):
        await outbox_worker.start()

        status = outbox_worker.get_status()
        assert status.is_running is True
        assert set(status.next_runs) == {PROCESS_JOB_ID, RETRY_JOB_ID, CLEANUP_JOB_ID}
        assert status.to_dict()["process_interval"] == 0.05

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, outbox_worker, caplog):
        await outbox_worker.start()
        await outbox_worker.start()

        assert outbox_worker.is_running
        assert any("already running" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, outbox_worker):
        await outbox_worker.stop()
        await outbox_worker.start()
        await outbox_worker.stop()
        await outbox_worker.stop()

        assert outbox_worker.is_running is False

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, outbox_worker):
        await outbox_worker.start()
        await outbox_worker.stop()
        await outbox_worker.start()

        assert outbox_worker.is_running is True


@pytest.mark.integration
class TestWorkerActivities:
    """Test suite for the scheduled activities."""

    @pytest.mark.asyncio
    async def test_pending_events_drained_shortly_after_start(
        self, outbox_worker, event_bus, session_factory, outbox_repository
    ):
        received: list[str] = []

        async def on_created(event) -> None:
            received.append(event.event_id)

        event_bus.subscribe("workspace.created", on_created)
        event = WorkspaceCreated(aggregate_id="w-1", name="Acme", owner_id="u-1")
        await _stage(event_bus, session_factory, event)

        await outbox_worker.start()

        async def _published() -> bool:
            row = await outbox_repository.get_by_event_id(event.event_id)
            return row.status == OutboxStatus.PUBLISHED

        await _wait_for(_published)
        assert received == [event.event_id]

    @pytest.mark.asyncio
    async def test_failed_events_are_retried_until_exhausted(
        self, outbox_worker, event_bus, session_factory, outbox_repository
    ):
        async def always_fails(event) -> None:
            raise RuntimeError("downstream unavailable")

        event_bus.subscribe("workspace.created", always_fails)
        event = WorkspaceCreated(aggregate_id="w-1", name="Acme", owner_id="u-1")
        await _stage(event_bus, session_factory, event)

        await outbox_worker.start()

        async def _exhausted() -> bool:
            row = await outbox_repository.get_by_event_id(event.event_id)
            return row.attempt_count >= 3

        await _wait_for(_exhausted)
        await outbox_worker.stop()
        row = await outbox_repository.get_by_event_id(event.event_id)
        assert row.status == OutboxStatus.FAILED
        assert row.attempt_count == 3

    @pytest.mark.asyncio
    async def test_run_once(self, outbox_worker, event_bus, session_factory):
        await _stage(
            event_bus,
            session_factory,
            WorkspaceCreated(aggregate_id="w-1", name="A", owner_id="u-1"),
            WorkspaceCreated(aggregate_id="w-2", name="B", owner_id="u-1"),
        )

        result = await outbox_worker.run_once()

        assert result == {"published": 2, "retried": 0, "cleaned": 0}

    @pytest.mark.asyncio
    async def test_activity_errors_are_swallowed(self, outbox_worker, monkeypatch, caplog):
        async def broken(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(outbox_worker.bus, "process_outbox_events", broken)
        monkeypatch.setattr(outbox_worker.bus, "retry_failed_events", broken)
        monkeypatch.setattr(outbox_worker.bus, "cleanup_old_events", broken)

        assert await outbox_worker.run_once() == {"published": 0, "retried": 0, "cleaned": 0}

        messages = [r.getMessage() for r in caplog.records]
        assert "Outbox processing pass failed" in messages
        assert "Outbox retry pass failed" in messages
        assert "Outbox cleanup pass failed" in messages
        status = outbox_worker.get_status()
        assert not (status.processing or status.retrying or status.cleaning)

    @pytest.mark.asyncio
    async def test_busy_flag_set_during_pass(self, outbox_worker, monkeypatch):
        gate = asyncio.Event()
        observed: list[bool] = []

        async def slow_drain(batch_size: int) -> int:
            observed.append(outbox_worker.get_status().processing)
            await gate.wait()
            return 0

        monkeypatch.setattr(outbox_worker.bus, "process_outbox_events", slow_drain)

        task = asyncio.create_task(outbox_worker.process_pending())
        await asyncio.sleep(0)
        gate.set()
        await task

        assert observed == [True]
        assert outbox_worker.get_status().processing is False

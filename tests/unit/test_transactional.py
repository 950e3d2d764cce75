"""Unit tests for the transactional wrapper."""
from __future__ import annotations

import asyncio
import importlib
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from outbox_service.core.database import NoActiveTransactionError, TransactionAlreadyActiveError, UnitOfWork
from outbox_service.infra.database import is_retryable_error, run_in_transaction, transactional


class RecordingUnitOfWork(UnitOfWork):
    """In-memory unit of work recording its calls."""

    def __init__(self, *, fail_rollback: bool = False) -> None:
        self.active = False
        self.calls: list[str] = []
        self.fail_rollback = fail_rollback
        self.undo: list = []

    async def start(self) -> None:
        if self.active:
            raise TransactionAlreadyActiveError
        self.active = True
        self.calls.append("start")

    async def commit(self) -> None:
        if not self.active:
            raise NoActiveTransactionError("commit")
        self.active = False
        self.calls.append("commit")
        self.undo.clear()

    async def rollback(self) -> None:
        if not self.active:
            raise NoActiveTransactionError("rollback")
        self.active = False
        self.calls.append("rollback")
        for callback in reversed(self.undo):
            callback()
        self.undo.clear()
        if self.fail_rollback:
            raise RuntimeError("rollback exploded")

    def is_active(self) -> bool:
        return self.active

    def get_transaction(self):
        if not self.active:
            raise NoActiveTransactionError("get_transaction")
        return MagicMock(name="session")

    def on_rollback(self, callback) -> None:
        self.undo.append(callback)


def _pg_error(sqlstate: str) -> OperationalError:
    orig = Exception("driver error")
    orig.sqlstate = sqlstate
    return OperationalError("UPDATE outbox_events ...", {}, orig)


@pytest.mark.unit
class TestIsRetryableError:
    """Test suite for transient error classification."""

    @pytest.mark.parametrize("sqlstate", ["40P01", "40001", "55P03", "57014"])
    def test_retryable_sqlstates(self, sqlstate):
        assert is_retryable_error(_pg_error(sqlstate))

    def test_non_retryable_sqlstate(self):
        assert not is_retryable_error(_pg_error("23505"))

    @pytest.mark.parametrize(
        "message",
        [
            "deadlock detected",
            "could not serialize access due to concurrent update",
            "Lock wait timeout exceeded",
            "database is locked",
        ],
    )
    def test_retryable_messages(self, message):
        assert is_retryable_error(RuntimeError(message))

    def test_timeout_error(self):
        assert is_retryable_error(TimeoutError())

    def test_other_errors(self):
        assert not is_retryable_error(ValueError("invalid workspace name"))


@pytest.mark.unit
class TestRunInTransaction:
    """Test suite for run_in_transaction."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self):
        uow = RecordingUnitOfWork()

        async def operation(unit_of_work):
            unit_of_work.get_transaction()
            return "done"

        assert await run_in_transaction(uow, operation) == "done"
        assert uow.calls == ["start", "commit"]
        assert not uow.is_active()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self):
        uow = RecordingUnitOfWork()

        async def operation(unit_of_work):
            raise ValueError("invalid")

        with pytest.raises(ValueError, match="invalid"):
            await run_in_transaction(uow, operation)

        assert uow.calls == ["start", "rollback"]

    @pytest.mark.asyncio
    async def test_rollback_failure_does_not_mask_original_error(self):
        uow = RecordingUnitOfWork(fail_rollback=True)

        async def operation(unit_of_work):
            raise ValueError("original")

        with pytest.raises(ValueError, match="original"):
            await run_in_transaction(uow, operation)

    @pytest.mark.asyncio
    async def test_joins_active_transaction(self):
        uow = RecordingUnitOfWork()
        await uow.start()

        async def operation(unit_of_work):
            return 42

        assert await run_in_transaction(uow, operation) == 42
        assert uow.calls == ["start"]
        assert uow.is_active()

    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self):
        uow = RecordingUnitOfWork()
        attempts = 0

        async def operation(unit_of_work):
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise _pg_error("40P01")
            return "ok"

        result = await run_in_transaction(uow, operation, retries=3, retry_delay=0.001)

        assert result == "ok"
        assert attempts == 3
        assert uow.calls == ["start", "rollback", "start", "rollback", "start", "commit"]

    @pytest.mark.asyncio
    async def test_does_not_retry_non_retryable_errors(self):
        uow = RecordingUnitOfWork()
        attempts = 0

        async def operation(unit_of_work):
            nonlocal attempts
            attempts += 1
            raise ValueError("invalid")

        with pytest.raises(ValueError):
            await run_in_transaction(uow, operation, retries=3, retry_delay=0.001)

        assert attempts == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        uow = RecordingUnitOfWork()

        async def operation(unit_of_work):
            raise _pg_error("40001")

        with pytest.raises(OperationalError):
            await run_in_transaction(uow, operation, retries=2, retry_delay=0.001)

        assert uow.calls.count("rollback") == 3

    @pytest.mark.asyncio
    async def test_timeout_rolls_back(self):
        uow = RecordingUnitOfWork()

        async def operation(unit_of_work):
            await asyncio.sleep(1)

        with pytest.raises(TimeoutError):
            await run_in_transaction(uow, operation, timeout=0.01)

        assert uow.calls == ["start", "rollback"]

    @pytest.mark.asyncio
    async def test_slow_transaction_is_tracked(self, monkeypatch):
        uow = RecordingUnitOfWork()
        tracked: list[str] = []
        monkeypatch.setattr(
            importlib.import_module("outbox_service.infra.database.transactional"),
            "track_slow_transaction",
            lambda operation, duration: tracked.append(operation),
        )

        async def slow_operation(unit_of_work):
            await asyncio.sleep(0.02)

        await run_in_transaction(uow, slow_operation, slow_threshold=0.001)

        assert tracked == ["slow_operation"]


@pytest.mark.unit
class TestTransactionalDecorator:
    """Test suite for the transactional decorator."""

    @pytest.mark.asyncio
    async def test_passes_arguments_through(self):
        uow = RecordingUnitOfWork()

        @transactional()
        async def rename(unit_of_work, workspace_id: str, *, name: str) -> str:
            return f"{workspace_id}:{name}"

        assert await rename(uow, "w-1", name="Acme") == "w-1:Acme"
        assert uow.calls == ["start", "commit"]
        assert rename.__name__ == "rename"

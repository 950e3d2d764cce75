"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: environment isolation and cache resets
    - Database Fixtures: SQLite (aiosqlite) engine on a temporary file
    - Outbox Fixtures: repository, registry, bus, worker and units of work
    - Domain Fixtures: the sample Workspace aggregate repository

A file-backed database is used instead of :memory: so every pooled
connection sees the same schema and data.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from outbox_service.core.database.base import Base
from outbox_service.core.settings import OutboxSettings, clear_all_caches
from outbox_service.infra.database import SqlAlchemyUnitOfWork, build_session_factory
from outbox_service.infra.events.outbox import (
    OutboxRepository,
    OutboxWorker,
    TransactionalEventBus,
)
from tests.fixtures.workspace import WorkspaceRepository, build_registry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from outbox_service.core.events import EventRegistry

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")
os.environ.setdefault("OUTBOX_WORKER_ENABLED", "false")


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_caches() -> Iterator[None]:
    """Reload settings from the environment for every test."""
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'outbox.db'}"


@pytest.fixture
async def db_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Async engine with every mapped table created.

    Yields:
        Async SQLAlchemy engine connected to a temporary SQLite file.
    """
    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


# ============================================================================
# Outbox Fixtures
# ============================================================================


@pytest.fixture
def registry() -> EventRegistry:
    """Isolated registry with the Workspace events registered."""
    return build_registry()


@pytest.fixture
def outbox_repository(session_factory: async_sessionmaker[AsyncSession]) -> OutboxRepository:
    return OutboxRepository(session_factory, error_max_length=1000)


@pytest.fixture
def event_bus(outbox_repository: OutboxRepository, registry: EventRegistry) -> TransactionalEventBus:
    return TransactionalEventBus(outbox_repository, registry)


@pytest.fixture
def outbox_settings() -> OutboxSettings:
    """Fast intervals so scheduler tests finish quickly."""
    return OutboxSettings(
        process_interval=0.05,
        retry_interval=0.05,
        cleanup_interval=60,
        batch_size=10,
        max_attempts=3,
        retention_days=30,
    )


@pytest.fixture
async def outbox_worker(
    event_bus: TransactionalEventBus,
    outbox_settings: OutboxSettings,
) -> AsyncGenerator[OutboxWorker]:
    worker = OutboxWorker(event_bus, outbox_settings)
    yield worker
    await worker.stop()


@pytest.fixture
def unit_of_work(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(session_factory)


# ============================================================================
# Domain Fixtures
# ============================================================================


@pytest.fixture
def workspace_repository(
    unit_of_work: SqlAlchemyUnitOfWork,
    event_bus: TransactionalEventBus,
) -> WorkspaceRepository:
    return WorkspaceRepository(unit_of_work, event_bus)

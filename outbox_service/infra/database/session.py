"""Async engine and session factory construction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from outbox_service.core.settings import get_db_settings
from outbox_service.utils.retry import retry

if TYPE_CHECKING:
    from outbox_service.core.settings import DatabaseSettings

logger = logging.getLogger(__name__)


def build_engine(db_settings: DatabaseSettings | None = None) -> AsyncEngine:
    """Create the async engine for the configured database.

    Args:
        db_settings: Database settings, defaults to the cached environment settings

    Returns:
        A new AsyncEngine. The caller owns it and must dispose it.
    """
    settings = db_settings or get_db_settings()
    url = settings.get_sqlalchemy_url()
    engine = create_async_engine(url, **settings.sqlalchemy_engine_kwargs())
    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "sqlite_fallback": not settings.is_configured},
    )
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the unit of work and the outbox repository."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def ensure_outbox_table(engine: AsyncEngine) -> None:
    """Create the outbox_events table if migrations haven't run yet.

    Idempotent thanks to SQLAlchemy's ``checkfirst`` guard.
    """
    from outbox_service.infra.events.outbox.models import OutboxEvent

    async with engine.begin() as conn:
        await conn.run_sync(
            lambda sync_conn: cast("Any", OutboxEvent.__table__).create(
                bind=sync_conn, checkfirst=True
            )
        )
    logger.debug("Outbox table ensured")


async def init_database(engine: AsyncEngine, db_settings: DatabaseSettings | None = None) -> None:
    """Verify connectivity and prepare the outbox table.

    Connection attempts are retried with exponential backoff, bounded by the
    startup retry settings.

    Raises:
        RetryError: If the database stays unreachable
    """
    settings = db_settings or get_db_settings()

    @retry(
        max_attempts=settings.startup_retry_attempts,
        initial_delay=settings.startup_retry_delay,
        max_delay=30.0,
        stop_after_delay=settings.startup_retry_timeout,
        exceptions=(OperationalError, DBAPIError, OSError, TimeoutError),
        operation="database_startup",
    )
    async def _check_connection() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    await _check_connection()
    logger.info("Database connection verified")

    if settings.create_outbox_table:
        await ensure_outbox_table(engine)


async def close_database(engine: AsyncEngine) -> None:
    """Dispose the engine and its connection pool."""
    await engine.dispose()
    logger.info("Database connections closed")


__all__ = [
    "build_engine",
    "build_session_factory",
    "close_database",
    "ensure_outbox_table",
    "init_database",
]

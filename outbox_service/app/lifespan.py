"""Runtime assembly and lifespan management.

Everything the outbox needs is built explicitly and owned by one
OutboxRuntime; there are no process-wide bus or worker singletons.

Startup Order:
1. Logging
2. Database (connectivity check with retry, outbox table)
3. Consumers (handler subscriptions)
4. Outbox worker (when enabled)

Shutdown Order: Reverse of startup.

Example:
    async with outbox_lifespan() as runtime:
        async with runtime.unit_of_work() as uow:
            await workspaces.save_with_events(workspace)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from importlib import import_module
from typing import TYPE_CHECKING

from outbox_service.core.events.registry import event_registry
from outbox_service.core.settings import get_app_settings, get_db_settings, get_outbox_settings
from outbox_service.infra.database import (
    SqlAlchemyUnitOfWork,
    build_engine,
    build_session_factory,
    close_database,
    init_database,
)
from outbox_service.infra.events.outbox import (
    OutboxRepository,
    OutboxWorker,
    TransactionalEventBus,
)
from outbox_service.infra.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from outbox_service.core.events.registry import EventRegistry
    from outbox_service.core.settings import DatabaseSettings, OutboxSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OutboxRuntime:
    """The assembled outbox components of one process."""

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    repository: OutboxRepository
    registry: EventRegistry
    bus: TransactionalEventBus
    worker: OutboxWorker
    db_settings: DatabaseSettings
    outbox_settings: OutboxSettings

    def unit_of_work(self) -> SqlAlchemyUnitOfWork:
        """New unit of work bound to this runtime's session factory."""
        return SqlAlchemyUnitOfWork(self.session_factory)


def build_runtime(
    *,
    db_settings: DatabaseSettings | None = None,
    outbox_settings: OutboxSettings | None = None,
    registry: EventRegistry | None = None,
    engine: AsyncEngine | None = None,
) -> OutboxRuntime:
    """Wire engine, repository, bus and worker together.

    Nothing touches the database here; see init_database.
    """
    db_settings = db_settings or get_db_settings()
    outbox_settings = outbox_settings or get_outbox_settings()
    registry = registry if registry is not None else event_registry

    engine = engine or build_engine(db_settings)
    session_factory = build_session_factory(engine)
    repository = OutboxRepository(
        session_factory,
        error_max_length=outbox_settings.error_max_length,
    )
    bus = TransactionalEventBus(repository, registry)
    worker = OutboxWorker(bus, outbox_settings)

    return OutboxRuntime(
        engine=engine,
        session_factory=session_factory,
        repository=repository,
        registry=registry,
        bus=bus,
        worker=worker,
        db_settings=db_settings,
        outbox_settings=outbox_settings,
    )


def _resolve_consumer(path: str) -> Callable[[TransactionalEventBus], None]:
    module_name, sep, attr = path.partition(":")
    if not sep or not attr:
        msg = f"Consumer path must look like 'package.module:function', got {path!r}"
        raise ValueError(msg)
    return getattr(import_module(module_name), attr)


def register_consumers(bus: TransactionalEventBus, paths: Iterable[str]) -> None:
    """Import each consumer entry point and let it subscribe to the bus."""
    for path in paths:
        _resolve_consumer(path)(bus)
        logger.info("Consumer registered", extra={"consumer": path})


@asynccontextmanager
async def outbox_lifespan(
    *,
    db_settings: DatabaseSettings | None = None,
    outbox_settings: OutboxSettings | None = None,
    registry: EventRegistry | None = None,
    start_worker: bool | None = None,
    configure_logging: bool = True,
) -> AsyncIterator[OutboxRuntime]:
    """Build the runtime, bring it up and tear it down on exit.

    Args:
        db_settings: Database settings override
        outbox_settings: Outbox settings override
        registry: Event registry (defaults to the global one)
        start_worker: Override OutboxSettings.worker_enabled
        configure_logging: Set up logging before anything else

    Yields:
        The running OutboxRuntime
    """
    if configure_logging:
        setup_logging()

    runtime = build_runtime(
        db_settings=db_settings,
        outbox_settings=outbox_settings,
        registry=registry,
    )
    worker_enabled = (
        runtime.outbox_settings.worker_enabled if start_worker is None else start_worker
    )

    try:
        await init_database(runtime.engine, runtime.db_settings)
        register_consumers(runtime.bus, runtime.outbox_settings.consumers)

        if worker_enabled:
            await runtime.worker.start()

        app_settings = get_app_settings()
        logger.info(
            "Outbox runtime started",
            extra={
                "version": app_settings.version,
                "environment": app_settings.environment,
                "worker_enabled": worker_enabled,
                "event_types": len(runtime.registry),
            },
        )
        yield runtime
    finally:
        await runtime.worker.stop()
        await close_database(runtime.engine)
        logger.info("Outbox runtime stopped")


__all__ = ["OutboxRuntime", "build_runtime", "outbox_lifespan", "register_consumers"]

"""Database infrastructure: engine bootstrap, unit of work and transactions."""

from outbox_service.infra.database.session import (
    build_engine,
    build_session_factory,
    close_database,
    ensure_outbox_table,
    init_database,
)
from outbox_service.infra.database.transactional import (
    is_retryable_error,
    run_in_transaction,
    transactional,
)
from outbox_service.infra.database.unit_of_work import SqlAlchemyUnitOfWork

__all__ = [
    "SqlAlchemyUnitOfWork",
    "build_engine",
    "build_session_factory",
    "close_database",
    "ensure_outbox_table",
    "init_database",
    "is_retryable_error",
    "run_in_transaction",
    "transactional",
]

"""Database primitives: declarative base, exceptions, unit of work and repositories."""

from outbox_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    TimestampMixin,
)
from outbox_service.core.database.exceptions import (
    NoActiveTransactionError,
    NotFoundError,
    RepositoryError,
    TransactionAlreadyActiveError,
    TransactionError,
)
from outbox_service.core.database.repository import AggregateRepository, BaseRepository
from outbox_service.core.database.unit_of_work import UnitOfWork

__all__ = [
    "NAMING_CONVENTION",
    "AggregateRepository",
    "Base",
    "BaseRepository",
    "IntegerPKMixin",
    "NoActiveTransactionError",
    "NotFoundError",
    "RepositoryError",
    "TimestampMixin",
    "TransactionAlreadyActiveError",
    "TransactionError",
    "UnitOfWork",
]

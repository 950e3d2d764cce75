"""Database and transaction exceptions.

Custom exceptions for repository and unit-of-work operations that give
clearer messages and typing than raw SQLAlchemy exceptions.
"""

from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for persistence operations.

    Raised when a repository or transaction operation fails because of
    programming errors, configuration issues, or unexpected states.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the model (e.g., "OutboxEvent")
            identifier: Key-value pairs used in the search (e.g., {"event_id": "..."})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class TransactionError(RepositoryError):
    """Misuse of a unit of work (start/commit/rollback in the wrong state)."""


class NoActiveTransactionError(TransactionError):
    """An operation needed an active transaction but none was started."""

    def __init__(self, operation: str):
        """Initialize the error.

        Args:
            operation: Name of the operation that required a transaction
        """
        self.operation = operation
        super().__init__("No active transaction", details={"operation": operation})


class TransactionAlreadyActiveError(TransactionError):
    """start() was called on a unit of work that already has a transaction."""

    def __init__(self) -> None:
        """Initialize the error."""
        super().__init__("Transaction already started")


__all__ = [
    "NoActiveTransactionError",
    "NotFoundError",
    "RepositoryError",
    "TransactionAlreadyActiveError",
    "TransactionError",
]

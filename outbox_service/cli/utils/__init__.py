"""CLI utilities for running async operations and formatting output."""

from outbox_service.cli.utils.async_runner import coro
from outbox_service.cli.utils.formatters import (
    as_json,
    error,
    header,
    info,
    key_values,
    success,
    warning,
)

__all__ = [
    "as_json",
    "coro",
    "error",
    "header",
    "info",
    "key_values",
    "success",
    "warning",
]

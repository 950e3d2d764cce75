"""Cached settings loaders.

Each settings group is read from the environment once per process. Tests that
change the environment call ``clear_all_caches()``, or build a settings object
directly and pass it in (``build_runtime`` and ``OutboxWorker`` accept them).
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .database import DatabaseSettings
from .logs import LoggingSettings
from .outbox import OutboxSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_outbox_settings() -> OutboxSettings:
    """Polling intervals, batch size and retry ceiling for the worker."""
    return OutboxSettings()


_LOADERS = (get_app_settings, get_db_settings, get_logging_settings, get_outbox_settings)


def clear_all_caches() -> None:
    """Forget every cached settings object so the next call re-reads the environment."""
    for loader in _LOADERS:
        loader.cache_clear()

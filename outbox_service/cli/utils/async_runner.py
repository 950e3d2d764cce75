"""Run async command bodies from synchronous click callbacks."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any


def coro[T](f: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """
    Decorator that runs an async click command in a fresh event loop.

    Usage:
        @outbox.command()
        @coro
        async def drain(batch_size: int) -> None:
            async with outbox_lifespan(start_worker=False) as runtime:
                await runtime.bus.process_outbox_events(batch_size)
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        return asyncio.run(f(*args, **kwargs))

    return wrapper

"""Consumer contract for in-process event handlers.

A handler is either an object with an async ``handle(event)`` method or a
plain async callable taking the event. Raising signals failure. Delivery is
at-least-once, so handlers must tolerate seeing the same event_id twice.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from outbox_service.core.events.base import DomainEvent


@runtime_checkable
class EventHandler(Protocol):
    """Object-style event handler."""

    async def handle(self, event: DomainEvent) -> None: ...


EventHandlerFunc = Callable[[DomainEvent], Awaitable[None]]

HandlerLike = EventHandler | EventHandlerFunc


def handler_name(handler: HandlerLike) -> str:
    """Stable, human-readable name for logs and metrics."""
    if isinstance(handler, EventHandler):
        return type(handler).__name__
    return getattr(handler, "__qualname__", None) or repr(handler)


async def invoke_handler(handler: HandlerLike, event: DomainEvent) -> None:
    """Call a handler regardless of its style."""
    if isinstance(handler, EventHandler):
        await handler.handle(event)
    else:
        await handler(event)


__all__ = [
    "EventHandler",
    "EventHandlerFunc",
    "HandlerLike",
    "handler_name",
    "invoke_handler",
]

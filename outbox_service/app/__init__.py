"""Runtime assembly for services embedding the outbox."""

from outbox_service.app.lifespan import (
    OutboxRuntime,
    build_runtime,
    outbox_lifespan,
    register_consumers,
)

__all__ = ["OutboxRuntime", "build_runtime", "outbox_lifespan", "register_consumers"]

"""Outbox worker commands."""

from __future__ import annotations

import asyncio
import signal
import sys

import click

from outbox_service.app.lifespan import outbox_lifespan
from outbox_service.cli.utils import as_json, coro, error, header, info, key_values, success
from outbox_service.core.settings import get_outbox_settings


@click.group(name="worker")
def worker() -> None:
    """Background worker commands."""


@worker.command(name="status")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def status(output_format: str) -> None:
    """Show the worker schedule and the current outbox backlog."""
    try:
        async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
            worker_status = runtime.worker.get_status()
            statistics = await runtime.repository.get_statistics(worker_status.max_attempts)
    except Exception as e:
        error(f"Failed to read worker status: {e}")
        sys.exit(1)

    if output_format == "json":
        as_json({"worker": worker_status.to_dict(), "outbox": statistics.to_dict()})
        return

    header("Outbox Worker")
    key_values(
        {
            "enabled": get_outbox_settings().worker_enabled,
            "process_interval": f"{worker_status.process_interval}s",
            "retry_interval": f"{worker_status.retry_interval}s",
            "cleanup_interval": f"{worker_status.cleanup_interval}s",
            "batch_size": worker_status.batch_size,
            "max_attempts": worker_status.max_attempts,
            "retention_days": worker_status.retention_days,
        }
    )
    header("Backlog")
    key_values(statistics.to_dict())


@worker.command(name="run")
@click.option("--once", is_flag=True, help="Run one drain, retry and cleanup pass, then exit")
@coro
async def run(once: bool) -> None:
    """Run the outbox worker in the foreground until interrupted."""
    if once:
        try:
            async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
                results = await runtime.worker.run_once()
        except Exception as e:
            error(f"Worker pass failed: {e}")
            sys.exit(1)

        success("Worker pass complete")
        key_values(results)
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    async with outbox_lifespan(start_worker=True, configure_logging=False):
        info("Outbox worker running, press Ctrl+C to stop")
        await stop_event.wait()

    info("Outbox worker stopped")

"""Outbox maintenance commands.

This module provides CLI commands for operating the outbox table:
- Show row counts per delivery state
- Drain pending events or retry failed ones on demand
- Purge old published events
- List events that exhausted their attempts
"""

from __future__ import annotations

import sys

import click

from outbox_service.app.lifespan import outbox_lifespan
from outbox_service.cli.utils import as_json, coro, error, header, info, key_values, success, warning
from outbox_service.core.settings import get_outbox_settings

_FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)


@click.group(name="outbox")
def outbox() -> None:
    """Outbox table maintenance commands."""


@outbox.command(name="stats")
@click.option("--max-attempts", type=int, default=None, help="Attempt ceiling (default: OUTBOX_MAX_ATTEMPTS)")
@_FORMAT_OPTION
@coro
async def stats(max_attempts: int | None, output_format: str) -> None:
    """Show outbox row counts per delivery state."""
    max_attempts = max_attempts or get_outbox_settings().max_attempts

    try:
        async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
            statistics = await runtime.repository.get_statistics(max_attempts)
    except Exception as e:
        error(f"Failed to read outbox statistics: {e}")
        sys.exit(1)

    if output_format == "json":
        as_json(statistics.to_dict())
        return

    header("Outbox Statistics")
    key_values(statistics.to_dict())
    if statistics.exhausted:
        warning(f"{statistics.exhausted} event(s) exhausted their attempts, see 'outbox failed'")


@outbox.command(name="drain")
@click.option("--batch-size", type=int, default=None, help="Events per batch (default: OUTBOX_BATCH_SIZE)")
@click.option("--all", "drain_all", is_flag=True, help="Keep draining until no pending events remain")
@coro
async def drain(batch_size: int | None, drain_all: bool) -> None:
    """Deliver pending outbox events now."""
    batch_size = batch_size or get_outbox_settings().batch_size
    total = 0
    stalled = False
    # Head of the pending queue after a pass that published nothing
    unchanged_ids: set[str] | None = None

    try:
        async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
            while True:
                pending = await runtime.repository.get_pending_events(batch_size)
                if not pending:
                    break
                pending_ids = {record.event_id for record in pending}
                if pending_ids == unchanged_ids:
                    stalled = True
                    break
                published = await runtime.bus.process_outbox_events(batch_size)
                total += published
                if not drain_all:
                    break
                unchanged_ids = pending_ids if published == 0 else None
    except Exception as e:
        error(f"Drain failed: {e}")
        sys.exit(1)

    if total:
        success(f"Published {total} event(s)")
    else:
        info("No events published")
    if stalled:
        warning("Stopped draining: the last pass left every pending event unchanged")


@outbox.command(name="retry")
@click.option("--max-attempts", type=int, default=None, help="Attempt ceiling (default: OUTBOX_MAX_ATTEMPTS)")
@coro
async def retry(max_attempts: int | None) -> None:
    """Retry failed events that are still below the attempt ceiling."""
    max_attempts = max_attempts or get_outbox_settings().max_attempts

    try:
        async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
            published = await runtime.bus.retry_failed_events(max_attempts)
    except Exception as e:
        error(f"Retry failed: {e}")
        sys.exit(1)

    success(f"Published {published} previously failed event(s)")


@outbox.command(name="cleanup")
@click.option("--days", type=int, default=None, help="Retention in days (default: OUTBOX_RETENTION_DAYS)")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@coro
async def cleanup(days: int | None, yes: bool) -> None:
    """Delete published events older than the retention window."""
    days = days if days is not None else get_outbox_settings().retention_days

    if not yes:
        click.confirm(f"Delete published events older than {days} day(s)?", abort=True)

    try:
        async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
            deleted = await runtime.bus.cleanup_old_events(days)
    except Exception as e:
        error(f"Cleanup failed: {e}")
        sys.exit(1)

    success(f"Deleted {deleted} published event(s)")


@outbox.command(name="failed")
@click.option("--max-attempts", type=int, default=None, help="Attempt ceiling (default: OUTBOX_MAX_ATTEMPTS)")
@click.option("--limit", type=int, default=50, show_default=True, help="Maximum rows to show")
@_FORMAT_OPTION
@coro
async def failed(max_attempts: int | None, limit: int, output_format: str) -> None:
    """List events that exhausted their delivery attempts."""
    max_attempts = max_attempts or get_outbox_settings().max_attempts

    try:
        async with outbox_lifespan(start_worker=False, configure_logging=False) as runtime:
            records = await runtime.repository.get_exhausted_events(max_attempts, limit)
    except Exception as e:
        error(f"Failed to list exhausted events: {e}")
        sys.exit(1)

    rows = [
        {
            "event_id": record.event_id,
            "event_name": record.event_name,
            "aggregate": f"{record.aggregate_type}:{record.aggregate_id}",
            "attempts": record.attempt_count,
            "last_attempt_at": record.last_attempt_at,
            "error": record.error,
        }
        for record in records
    ]

    if output_format == "json":
        as_json(rows)
        return

    header("Exhausted Outbox Events")
    if not rows:
        info("No exhausted events")
        return

    click.echo(f"{'Event ID':<38} {'Event':<30} {'Attempts':<9} Error")
    click.echo("-" * 100)
    for row in rows:
        error_text = (row["error"] or "")[:40]
        click.echo(f"{row['event_id']:<38} {row['event_name']:<30} {row['attempts']:<9} {error_text}")
    click.echo()
    warning(f"Total: {len(rows)} exhausted event(s)")

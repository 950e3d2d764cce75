"""Main CLI entry point for outbox-service management commands."""

import click

from outbox_service import __version__
from outbox_service.cli.commands import outbox, worker
from outbox_service.infra.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="outbox-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Outbox Service CLI - operate the transactional outbox.

    \b
    Command Groups:
      outbox     Inspect, drain, retry and purge outbox events
      worker     Run or inspect the background worker

    \b
    Quick Start:
      outbox-service outbox stats        # Row counts per delivery state
      outbox-service outbox drain --all  # Deliver every pending event now
      outbox-service outbox failed       # Events that exhausted retries
      outbox-service worker run          # Run the worker in the foreground
    """
    ctx.ensure_object(dict)


cli.add_command(outbox.outbox)
cli.add_command(worker.worker)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()

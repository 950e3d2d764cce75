"""Output formatting utilities for CLI commands."""

import json
from collections.abc import Mapping
from typing import Any

import click


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red to stderr."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    """Print a bold cyan header line."""
    click.secho(f"\n{message}", fg="cyan", bold=True)


def key_values(values: Mapping[str, Any]) -> None:
    """Print aligned ``key: value`` lines."""
    if not values:
        return
    width = max(len(key) for key in values) + 1
    for key, value in values.items():
        click.echo(f"  {key + ':':<{width}} {value}")


def as_json(data: Any) -> None:
    """Print data as indented JSON (datetimes and enums rendered with str)."""
    click.echo(json.dumps(data, indent=2, default=str))

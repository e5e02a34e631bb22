"""Output formatting utilities for CLI commands."""

from __future__ import annotations

import json
import sys
from typing import Any, NoReturn

import rich_click as click
from rich.console import Console
from rich.table import Table

from wgdynamic.core.types import RequestIP


def output_json(data: Any, indent: int = 2) -> None:
    """Output data as formatted JSON."""
    click.echo(json.dumps(data, indent=indent))


def print_lease(lease: RequestIP, console: Console | None = None) -> None:
    """Print a lease as a two-column table."""
    table = Table(title="wg-dynamic lease", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    for name, value in lease.to_dict().items():
        table.add_row(name, "-" if value is None else str(value))

    (console or Console()).print(table)


def error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit with code."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)

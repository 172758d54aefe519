"""
CLI utility helpers — output formatting and store construction.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docspine.core.adapters import DocumentStore, get_store
from docspine.core.errors import DocSpineError
from docspine.core.settings import DocSpineSettings

err_console = Console(stderr=True)


def make_store(settings: DocSpineSettings) -> DocumentStore:
    """Build the (unconnected) store described by ``settings``."""
    if settings.store_type == "memory":
        return get_store("memory", database=settings.database)
    return get_store("mongodb", url=settings.mongo_url, database=settings.database)


def parse_json_option(value: str | None, option: str) -> dict[str, Any] | None:
    """Parse a JSON object passed on the command line."""
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"not valid JSON: {e}", param_hint=option) from e
    if not isinstance(parsed, dict):
        raise typer.BadParameter("must be a JSON object", param_hint=option)
    return parsed


def emit_batch(batch: list[dict[str, Any]]) -> None:
    """Write one batch as a JSON line on stdout."""
    typer.echo(json.dumps(batch, default=str))


def print_counts(counts: Mapping[str, int], *, as_json: bool = False, title: str = "Counts") -> None:
    """Render stage counters as a table, or JSON on stderr."""
    if as_json:
        err_console.print_json(json.dumps(dict(counts)))
        return
    table = Table(title=title)
    table.add_column("stage", style="cyan")
    table.add_column("items", justify="right")
    for label, value in counts.items():
        table.add_row(label, str(value))
    err_console.print(table)


def fail(error: DocSpineError) -> None:
    """Print a library error and exit with status 1."""
    category = error.category.value
    err_console.print(f"[bold red]Error[/bold red] ({category}): {escape(error.message)}")
    raise typer.Exit(code=1)

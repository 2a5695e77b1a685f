"""
CLI utility helpers: settings loading, async bridging and rich output.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from chatarchive.core.errors import ArchiveError, ConfigError
from chatarchive.core.settings import ArchiveSettings, get_settings

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


# ── Settings / execution helpers ─────────────────────────────────────────


def load_settings() -> ArchiveSettings:
    """Load settings or exit with a readable configuration error."""
    try:
        return get_settings()
    except ConfigError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {e.message}")
        raise typer.Exit(code=1) from e


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning archive errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except ArchiveError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "", indent: int = 2) -> None:
    """Render a (possibly nested) dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    pad = " " * indent
    for k, v in data.items():
        if isinstance(v, dict):
            console.print(f"{pad}[cyan]{k}[/cyan]:")
            print_dict(v, indent=indent + 2)
        else:
            console.print(f"{pad}[cyan]{k}[/cyan]: {v}")

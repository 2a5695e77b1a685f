"""
CLI: ``chat-archive config``: configuration inspection.
"""

from __future__ import annotations

import typer

from chatarchive.cli.utils import load_settings, print_dict, print_json

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the effective configuration (secrets masked)."""
    settings = load_settings()
    data = settings.redacted()
    if format == "json":
        print_json(data)
        return
    print_dict(data, title="Effective configuration")


@app.command("validate")
def validate_config() -> None:
    """Load and validate configuration; exit 1 on errors."""
    load_settings()
    typer.echo("Configuration OK")

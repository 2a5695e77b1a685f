"""
Root Typer application for the chat-archive CLI.

Store drivers (elasticsearch, motor) are imported inside the commands that
need them, so ``--help`` and ``config`` work without a cluster.
"""

from __future__ import annotations

import typer
from typer import Typer

from chatarchive.cli.utils import load_settings
from chatarchive.core.logging import configure_logging

app = Typer(
    name="chat-archive",
    help="chat-archive: searchable archive of group chat messages.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from chatarchive import __version__

        typer.echo(f"chat-archive {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """chat-archive CLI: migrate legacy history, manage the index, inspect config."""
    settings = load_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from chatarchive.cli.config import app as config_app  # noqa: E402
from chatarchive.cli.index import app as index_app  # noqa: E402
from chatarchive.cli.migrate import app as migrate_app  # noqa: E402

app.add_typer(migrate_app, name="migrate", help="Legacy migration.")
app.add_typer(index_app, name="index", help="Index management.")
app.add_typer(config_app, name="config", help="Configuration inspection.")


if __name__ == "__main__":
    app()

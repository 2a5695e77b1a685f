"""
CLI: ``chat-archive index``: document index management.
"""

from __future__ import annotations

import typer

from chatarchive.cli.utils import console, load_settings, run_async

app = typer.Typer(no_args_is_help=True)


@app.command("ensure")
def ensure_index() -> None:
    """Create the message index with its mapping if it does not exist."""
    settings = load_settings()
    index_name = settings.elasticsearch.index_name
    created = run_async(_ensure(settings))
    if created:
        console.print(f"[green]Created index[/green] {index_name}")
    else:
        console.print(f"Index {index_name} already exists")


async def _ensure(settings) -> bool:
    from chatarchive.store.elasticsearch import ElasticsearchStore

    store = ElasticsearchStore.from_settings(settings.elasticsearch)
    try:
        return await store.ensure_index(settings.elasticsearch.index_name)
    finally:
        await store.close()

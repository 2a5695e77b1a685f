"""
CLI: ``chat-archive migrate``: backfill legacy records into the index.
"""

from __future__ import annotations

import typer

from chatarchive.cli.utils import console, load_settings, print_json, print_table, run_async

app = typer.Typer(no_args_is_help=True)


@app.command("run")
def run_migration_cmd(
    dry_run: bool | None = typer.Option(  # noqa: UP007
        None,
        "--dry-run/--no-dry-run",
        help="Count and parse without writing (default from settings).",
    ),
    batch_size: int | None = typer.Option(None, "--batch-size", "-b", min=1, help="Records per bulk write."),  # noqa: UP007
    kind_filter: int | None = typer.Option(  # noqa: UP007
        None, "--kind-filter", "-k", help="Only migrate this legacy msg_type code."
    ),
    as_json: bool = typer.Option(False, "--json", help="Output the report as JSON."),
) -> None:
    """Backfill every chat below its watermark."""
    from chatarchive.migration import run_migration

    settings = load_settings()
    report = run_async(
        run_migration(settings, dry_run=dry_run, batch_size=batch_size, kind_filter=kind_filter)
    )

    if as_json:
        print_json(report.to_dict())
        return

    title = "Migration (dry run)" if report.dry_run else "Migration"
    print_table([scope.to_dict() for scope in report.scopes], title=title)
    totals = report.totals()
    console.print(
        f"\n[bold]Total:[/bold] {totals['scopes']} chats, {totals['matched']} matched, "
        f"[green]{totals['accepted']} accepted[/green], "
        f"[red]{totals['errors']} errors[/red], {totals['batches']} batches"
    )


@app.command("watermarks")
def show_watermarks(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show the per-chat watermarks a migration would use."""
    settings = load_settings()
    watermarks = run_async(_resolve(settings))

    rows = [{"chat_id": w.chat_id, "watermark": w.min_message_id} for w in watermarks]
    if as_json:
        print_json(rows)
        return
    print_table(rows, title="Watermarks")


async def _resolve(settings):
    from chatarchive.migration.watermarks import WatermarkResolver
    from chatarchive.store.elasticsearch import ElasticsearchStore

    store = ElasticsearchStore.from_settings(settings.elasticsearch)
    try:
        resolver = WatermarkResolver(
            store,
            settings.elasticsearch.index_name,
            max_scopes=settings.migration.max_scopes,
        )
        return await resolver.resolve()
    finally:
        await store.close()

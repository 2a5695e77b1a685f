"""Legacy-to-index migration.

Architecture::

    watermarks.py   Watermark, WatermarkResolver (min message id per chat)
    legacy.py       parse_legacy_document (tolerant field strategies)
    backfill.py     BackfillRunner, ScopeReport, MigrationReport

:func:`run_migration` wires the real stores from settings:
resolve watermarks, backfill every scope, close both clients.
"""

from __future__ import annotations

from chatarchive.core.logging import get_logger
from chatarchive.core.settings import ArchiveSettings, get_settings
from chatarchive.indexing.bulk_writer import BulkWriter
from chatarchive.migration.backfill import BackfillRunner, MigrationReport, ScopeReport, ScopeStatus
from chatarchive.migration.legacy import parse_legacy_document
from chatarchive.migration.watermarks import Watermark, WatermarkResolver

logger = get_logger(__name__)


async def run_migration(
    settings: ArchiveSettings | None = None,
    *,
    dry_run: bool | None = None,
    batch_size: int | None = None,
    kind_filter: int | None = None,
) -> MigrationReport:
    """Run a full backfill against the configured stores.

    Keyword arguments override the ``migration`` settings section.

    Raises:
        WatermarkError: If watermarks cannot be resolved; nothing is written.
    """
    from chatarchive.store.elasticsearch import ElasticsearchStore
    from chatarchive.store.legacy import MongoLegacyStore

    settings = settings or get_settings()
    cfg = settings.migration
    index_name = settings.elasticsearch.index_name

    store = ElasticsearchStore.from_settings(settings.elasticsearch)
    legacy = MongoLegacyStore.from_settings(settings.mongodb)
    try:
        watermarks = await WatermarkResolver(store, index_name, max_scopes=cfg.max_scopes).resolve()
        runner = BackfillRunner(
            legacy,
            BulkWriter(store, index_name),
            batch_size=batch_size or cfg.batch_size,
            dry_run=cfg.dry_run if dry_run is None else dry_run,
            kind_filter=cfg.kind_filter if kind_filter is None else kind_filter,
        )
        return await runner.run(watermarks)
    finally:
        await legacy.close()
        await store.close()


__all__ = [
    "BackfillRunner",
    "MigrationReport",
    "ScopeReport",
    "ScopeStatus",
    "Watermark",
    "WatermarkResolver",
    "parse_legacy_document",
    "run_migration",
]

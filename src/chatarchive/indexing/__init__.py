"""Live ingestion: batching queue and bulk writer.

Architecture::

    bulk_writer.py     BulkWriter, WriteOutcome (one batch -> one request)
    batch_indexer.py   BatchIndexer (bounded queue, size/time flush)
"""

from chatarchive.indexing.batch_indexer import BatchIndexer, IndexerStats
from chatarchive.indexing.bulk_writer import BulkWriter, WriteOutcome, build_operations, item_errors

__all__ = [
    "BatchIndexer",
    "BulkWriter",
    "IndexerStats",
    "WriteOutcome",
    "build_operations",
    "item_errors",
]

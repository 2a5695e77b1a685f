"""
Bulk writer: one batch of records, one bulk request, one outcome.

Both the live indexer and the migration backfill funnel their batches
through :class:`BulkWriter`.  The writer builds the request, submits it
once, and reconciles the mixed per-item response into counts.
Retry policy belongs to callers, and there is none.

Architecture:
    ::

        write([r1, r2, r3])
              │
              ▼
        operations = [
          {"index": {"_id": "42_997"}}, {...r1 document...},
          {"index": {"_id": "42_998"}}, {...r2 document...},
          {"index": {"_id": "42_999"}}, {...r3 document...},
        ]
              │  store.bulk(index, operations)
              ▼
        ┌────────────────────────────┬────────────────────────────────┐
        │ transport failure          │ response                       │
        │ accepted=0, failed=3       │ failed = items with "error"    │
        │                            │ accepted = 3 - failed          │
        └────────────────────────────┴────────────────────────────────┘

    ``index`` (not ``create``) is the action, so re-sending a document that
    already exists overwrites it with identical content and is reported as
    a success.

Examples:
    >>> writer = BulkWriter(store, "telegram_messages")
    >>> outcome = await writer.write(batch)
    >>> outcome.accepted, outcome.failed
    (3, 0)

Tags:
    bulk, elasticsearch, idempotent, batch, chat-archive
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from chatarchive.core.errors import ArchiveError, is_retryable
from chatarchive.core.logging import get_logger
from chatarchive.core.models import Record
from chatarchive.store.protocols import DocumentStore

logger = get_logger(__name__)

# how many rejected items are spelled out in the log line
MAX_LOGGED_ITEM_ERRORS = 5


@dataclass(frozen=True, slots=True)
class WriteOutcome:
    """Result of one bulk write.

    Attributes:
        attempted: Records in the batch.
        accepted: Records the store reports as written.
        failed: Records rejected per item, or the whole batch on transport failure.
        error: Transport failure message, if the request itself failed.
    """

    attempted: int
    accepted: int
    failed: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @classmethod
    def empty(cls) -> WriteOutcome:
        return cls(attempted=0, accepted=0, failed=0)


def build_operations(records: Sequence[Record]) -> list[dict[str, Any]]:
    """Action/document pairs for the bulk API, keyed by document id."""
    operations: list[dict[str, Any]] = []
    for record in records:
        operations.append({"index": {"_id": record.document_id}})
        operations.append(record.to_document())
    return operations


def item_errors(response: dict[str, Any]) -> list[tuple[str | None, dict[str, Any]]]:
    """``(document_id, error)`` for every rejected item in a bulk response."""
    if not response.get("errors"):
        return []
    rejected = []
    for item in response.get("items") or []:
        # each item is keyed by its action name ("index", "create", ...)
        for result in item.values():
            error = result.get("error") if isinstance(result, dict) else None
            if isinstance(error, dict):
                rejected.append((result.get("_id"), error))
    return rejected


class BulkWriter:
    """Submits batches of records to the document store.

    Stateless apart from the store handle; safe to share between the live
    indexer and a migration in the same process.
    """

    def __init__(self, store: DocumentStore, index_name: str) -> None:
        self._store = store
        self._index_name = index_name

    @property
    def index_name(self) -> str:
        return self._index_name

    async def write(self, records: Sequence[Record]) -> WriteOutcome:
        """Write *records* in one bulk request.

        Never raises for store failures: a transport error is returned as an
        outcome with every record failed.
        """
        count = len(records)
        if count == 0:
            return WriteOutcome.empty()

        operations = build_operations(records)
        try:
            response = await self._store.bulk(self._index_name, operations)
        except (ArchiveError, ConnectionError, TimeoutError) as exc:
            message = exc.message if isinstance(exc, ArchiveError) else str(exc)
            logger.error(
                "bulk.request_failed",
                index=self._index_name,
                batch=count,
                error=message,
                retryable=is_retryable(exc),
            )
            return WriteOutcome(attempted=count, accepted=0, failed=count, error=message)

        rejected = item_errors(response)
        if rejected:
            failed = min(len(rejected), count)
            logger.error(
                "bulk.item_errors",
                index=self._index_name,
                batch=count,
                failed=failed,
                samples=[
                    {"id": doc_id, "type": err.get("type"), "reason": err.get("reason")}
                    for doc_id, err in rejected[:MAX_LOGGED_ITEM_ERRORS]
                ],
            )
            return WriteOutcome(attempted=count, accepted=count - failed, failed=failed)

        logger.debug("bulk.written", index=self._index_name, batch=count)
        return WriteOutcome(attempted=count, accepted=count, failed=0)


__all__ = ["BulkWriter", "WriteOutcome", "build_operations", "item_errors"]

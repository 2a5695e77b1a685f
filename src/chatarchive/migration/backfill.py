"""
Backfill runner: copy legacy records below each chat's watermark.

For every watermark the runner counts the matching legacy records, walks
them oldest first, normalizes each one and writes them through the same
:class:`~chatarchive.indexing.bulk_writer.BulkWriter` the live path uses.
Document ids are deterministic, so a migration can be re-run from scratch
at any time; re-sent documents overwrite themselves.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────┐
        │                 Scope lifecycle (one chat)                │
        └───────────────────────────────────────────────────────────┘

        legacy.count(chat_id, below=W)
              │  0 ──────────────────────────────► SKIPPED
              │  error ──────────────────────────► FAILED
              ▼
        legacy.find(chat_id, below=W)   ascending message id
              │
              ├── parse_legacy_document(doc)   failure → errors += 1
              ├── batch full → writer.write(batch)
              │                 failed items → errors += n
              ├── cursor error → errors += 1 ─────► ABORTED (partial stands)
              ▼
        final partial batch → writer.write(batch)
              │
              ▼
        COMPLETED / COMPLETED_WITH_ERRORS

    Scopes run sequentially and independently: nothing a scope does can
    abort the scopes after it.  There is no time-based flush; a batch is
    written when full or when the cursor is exhausted.

Examples:
    >>> runner = BackfillRunner(legacy, writer, batch_size=500)
    >>> report = await runner.run(await resolver.resolve())
    >>> report.total_accepted, report.total_errors
    (12873, 4)

    Dry run exercises everything except the write itself:

    >>> report = await BackfillRunner(legacy, writer, batch_size=500, dry_run=True).run(watermarks)

Tags:
    backfill, migration, mongodb, bulk, idempotent, chat-archive

STDLIB ONLY -- no Pydantic.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from chatarchive.core.errors import ArchiveError, LegacyStoreError, ParseError
from chatarchive.core.logging import LogContext, get_logger
from chatarchive.core.models import Record
from chatarchive.indexing.bulk_writer import BulkWriter, WriteOutcome
from chatarchive.migration.legacy import parse_legacy_document
from chatarchive.migration.watermarks import Watermark
from chatarchive.store.protocols import LegacyStore

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class ScopeStatus(str, Enum):
    """Terminal status of one chat's backfill."""

    RUNNING = "running"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(slots=True)
class ScopeReport:
    """Progress of one chat's backfill.

    Mutated while the scope runs and final once ``status`` leaves
    ``RUNNING``.

    Attributes:
        chat_id: The chat.
        watermark: Exclusive upper bound on migrated message ids.
        matched: Legacy records the count query reported.
        accepted: Records the store accepted (or would have, in a dry run).
        errors: Parse failures, rejected items, failed batches and cursor errors.
        batches: Bulk writes issued (or simulated).
        status: Where the scope ended up.
    """

    chat_id: int
    watermark: int
    matched: int = 0
    accepted: int = 0
    errors: int = 0
    batches: int = 0
    status: ScopeStatus = ScopeStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "watermark": self.watermark,
            "matched": self.matched,
            "accepted": self.accepted,
            "errors": self.errors,
            "batches": self.batches,
            "status": self.status.value,
        }


@dataclass(slots=True)
class MigrationReport:
    """Run-wide summary of a backfill."""

    dry_run: bool = False
    scopes: list[ScopeReport] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def total_matched(self) -> int:
        return sum(s.matched for s in self.scopes)

    @property
    def total_accepted(self) -> int:
        return sum(s.accepted for s in self.scopes)

    @property
    def total_errors(self) -> int:
        return sum(s.errors for s in self.scopes)

    @property
    def total_batches(self) -> int:
        return sum(s.batches for s in self.scopes)

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def totals(self) -> dict[str, int]:
        return {
            "scopes": len(self.scopes),
            "matched": self.total_matched,
            "accepted": self.total_accepted,
            "errors": self.total_errors,
            "batches": self.total_batches,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "totals": self.totals(),
            "scopes": [s.to_dict() for s in self.scopes],
        }


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class BackfillRunner:
    """Migrates legacy records chat by chat.

    Args:
        legacy: Source of legacy documents.
        writer: Bulk writer targeting the live index.
        batch_size: Records per bulk write.
        dry_run: Count and parse everything, write nothing.
        kind_filter: Restrict to one legacy ``msg_type`` code; ``None`` migrates all kinds.
    """

    def __init__(
        self,
        legacy: LegacyStore,
        writer: BulkWriter,
        *,
        batch_size: int = 500,
        dry_run: bool = False,
        kind_filter: int | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._legacy = legacy
        self._writer = writer
        self._batch_size = batch_size
        self._dry_run = dry_run
        self._kind_filter = kind_filter

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def run(self, watermarks: Sequence[Watermark]) -> MigrationReport:
        """Backfill every scope in order and return the run summary."""
        report = MigrationReport(dry_run=self._dry_run)
        logger.info(
            "migration.started",
            scopes=len(watermarks),
            batch_size=self._batch_size,
            dry_run=self._dry_run,
            kind_filter=self._kind_filter,
        )
        for watermark in watermarks:
            report.scopes.append(await self.migrate_scope(watermark))
        report.completed_at = datetime.now(UTC)
        logger.info("migration.completed", dry_run=self._dry_run, **report.totals())
        return report

    async def migrate_scope(self, watermark: Watermark) -> ScopeReport:
        """Backfill one chat below its watermark."""
        scope = ScopeReport(chat_id=watermark.chat_id, watermark=watermark.min_message_id)
        with LogContext(chat_id=watermark.chat_id):
            try:
                scope.matched = await self._legacy.count(
                    watermark.chat_id, watermark.min_message_id, self._kind_filter
                )
            except (LegacyStoreError, ConnectionError, TimeoutError) as exc:
                scope.errors += 1
                scope.status = ScopeStatus.FAILED
                logger.error("migration.count_failed", error=str(exc))
                return scope

            if scope.matched == 0:
                scope.status = ScopeStatus.SKIPPED
                logger.info("migration.scope_skipped", watermark=watermark.min_message_id)
                return scope

            logger.info(
                "migration.scope_started",
                watermark=watermark.min_message_id,
                matched=scope.matched,
            )
            aborted = await self._copy(watermark, scope)

            if aborted:
                scope.status = ScopeStatus.ABORTED
            elif scope.errors:
                scope.status = ScopeStatus.COMPLETED_WITH_ERRORS
            else:
                scope.status = ScopeStatus.COMPLETED
            logger.info("migration.scope_finished", **scope.to_dict())
        return scope

    async def _copy(self, watermark: Watermark, scope: ScopeReport) -> bool:
        """Stream, parse and write one scope; True if the cursor failed."""
        batch: list[Record] = []
        aborted = False
        try:
            async for document in self._legacy.find(
                watermark.chat_id, watermark.min_message_id, self._kind_filter
            ):
                record = self._normalize(document, watermark)
                if record is None:
                    scope.errors += 1
                    continue
                batch.append(record)
                if len(batch) >= self._batch_size:
                    await self._flush(batch, scope)
                    batch = []
        except (LegacyStoreError, ConnectionError, TimeoutError) as exc:
            scope.errors += 1
            aborted = True
            message = exc.message if isinstance(exc, ArchiveError) else str(exc)
            logger.error("migration.cursor_failed", error=message, buffered=len(batch))

        if batch:
            await self._flush(batch, scope)
        return aborted

    def _normalize(self, document: dict[str, Any], watermark: Watermark) -> Record | None:
        """Parse *document*; None if it is unusable or outside the scope."""
        doc_id = str(document.get("_id"))
        try:
            record = parse_legacy_document(document)
        except ParseError as exc:
            logger.warning("migration.parse_failed", error=exc.message, _id=doc_id)
            return None
        except (ValueError, TypeError, OverflowError) as exc:
            logger.warning("migration.parse_failed", error=str(exc), _id=doc_id)
            return None
        # the parser may read a different field spelling than the filter matched
        if record.chat_id != watermark.chat_id or record.message_id >= watermark.min_message_id:
            logger.warning(
                "migration.out_of_scope",
                _id=doc_id,
                document_id=record.document_id,
                watermark=watermark.min_message_id,
            )
            return None
        return record

    async def _flush(self, batch: list[Record], scope: ScopeReport) -> None:
        if self._dry_run:
            outcome = WriteOutcome(attempted=len(batch), accepted=len(batch), failed=0)
        else:
            outcome = await self._writer.write(batch)
        scope.batches += 1
        scope.accepted += outcome.accepted
        scope.errors += outcome.failed
        logger.debug(
            "migration.batch_flushed",
            batch=outcome.attempted,
            accepted=outcome.accepted,
            failed=outcome.failed,
            dry_run=self._dry_run,
        )


__all__ = ["BackfillRunner", "MigrationReport", "ScopeReport", "ScopeStatus"]

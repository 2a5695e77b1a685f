"""
Batch indexer: bounded ingestion queue with size- and time-triggered flushes.

Live messages arrive one at a time from the chat transport, but the document
store wants them in bulk.  :class:`BatchIndexer` sits between the two:
producers enqueue records, a single consumer task accumulates them and hands
a batch to the :class:`~chatarchive.indexing.bulk_writer.BulkWriter` when
the buffer reaches ``batch_size`` or the flush interval elapses, whichever
comes first.

Architecture:
    ::

        producers ──index(record)──►  asyncio.Queue(maxsize = 4 × batch_size)
                                              │
                                              ▼
                                  ┌────────────────────────┐
                                  │ consumer task          │
                                  │                        │
             next record ───────► │ WAITING                │
                                  │   append to buffer     │
                                  │   len ≥ batch_size ──┐ │
             timer tick ────────► │   buffer non-empty ──┤ │
                                  │                      ▼ │
                                  │ FLUSHING               │
                                  │   writer.write(buffer) │
                                  │   buffer.clear()       │
             close() ───────────► │ final flush, exit      │
                                  └────────────────────────┘

    * A full queue blocks the producer (backpressure); nothing is dropped
      while the indexer is open.
    * ``index()`` after ``close()`` logs and drops the record; the producer
      never sees an exception.
    * A failed batch is logged with its failed count and discarded.  The
      loop keeps running.
    * Records are written in enqueue order within a batch.

Examples:
    >>> indexer = BatchIndexer(writer, batch_size=50, flush_interval=5.0)
    >>> indexer.start()
    >>> await indexer.index(record)
    >>> await indexer.close()   # drains and flushes what is buffered

    Or as an async context manager:

    >>> async with BatchIndexer(writer, batch_size=50, flush_interval=5.0) as indexer:
    ...     await indexer.index(record)

Tags:
    ingestion, batching, backpressure, asyncio, chat-archive
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any

from chatarchive.core.logging import get_logger
from chatarchive.core.models import Record
from chatarchive.core.settings import IndexerSettings
from chatarchive.indexing.bulk_writer import BulkWriter, WriteOutcome

logger = get_logger(__name__)

_CLOSE = object()


@dataclass
class IndexerStats:
    """Running counters for one indexer."""

    batches: int = 0
    records_flushed: int = 0
    accepted: int = 0
    failed: int = 0
    dropped: int = 0

    def record(self, outcome: WriteOutcome) -> None:
        self.batches += 1
        self.records_flushed += outcome.attempted
        self.accepted += outcome.accepted
        self.failed += outcome.failed

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class BatchIndexer:
    """Single-consumer batching pipeline in front of a :class:`BulkWriter`.

    Parameters
    ----------
    writer : BulkWriter
        Destination for flushed batches.
    batch_size : int
        Flush as soon as this many records are buffered.
    flush_interval : float
        Seconds between timer ticks; a tick flushes any non-empty buffer.
    queue_capacity : int | None
        Bound on queued, not yet buffered records (default ``4 × batch_size``).
    """

    def __init__(
        self,
        writer: BulkWriter,
        *,
        batch_size: int = 50,
        flush_interval: float = 5.0,
        queue_capacity: int | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be > 0")
        self._writer = writer
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_capacity or batch_size * 4)
        self._buffer: list[Record] = []
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self.stats = IndexerStats()

    @classmethod
    def from_settings(cls, writer: BulkWriter, settings: IndexerSettings) -> BatchIndexer:
        return cls(
            writer,
            batch_size=settings.batch_size,
            flush_interval=settings.flush_interval,
            queue_capacity=settings.queue_capacity,
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> BatchIndexer:
        """Spawn the consumer task (idempotent)."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="batch-indexer")
            logger.info(
                "indexer.started",
                index=self._writer.index_name,
                batch_size=self._batch_size,
                flush_interval=self._flush_interval,
                queue_capacity=self._queue.maxsize,
            )
        return self

    async def close(self) -> None:
        """Close the producer side and wait for the final drain-flush."""
        if not self._closed:
            self._closed = True
            self.start()
            await self._queue.put(_CLOSE)
        if self._task is not None:
            await self._task

    async def __aenter__(self) -> BatchIndexer:
        return self.start()

    async def __aexit__(self, *args) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Records enqueued or buffered but not yet flushed."""
        return self._queue.qsize() + len(self._buffer)

    # ── Producer side ────────────────────────────────────────────────

    async def index(self, record: Record) -> None:
        """Enqueue *record*; waits while the queue is full."""
        if self._closed:
            self.stats.dropped += 1
            logger.warning(
                "indexer.enqueue_dropped",
                reason="closed",
                document_id=record.document_id,
            )
            return
        await self._queue.put(record)

    # ── Consumer side ────────────────────────────────────────────────

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._flush_interval
        getter: asyncio.Future[Any] | None = None
        try:
            while True:
                now = loop.time()
                if now >= next_tick:
                    next_tick = now + self._flush_interval
                    if self._buffer:
                        await self._flush("interval")

                # the pending get survives ticks so no record is lost to the timer
                if getter is None:
                    getter = asyncio.ensure_future(self._queue.get())
                done, _ = await asyncio.wait({getter}, timeout=max(0.0, next_tick - loop.time()))
                if not done:
                    continue

                item = getter.result()
                getter = None
                if item is _CLOSE:
                    self._drain_queue()
                    if self._buffer:
                        await self._flush("shutdown")
                    logger.info("indexer.closed", **self.stats.to_dict())
                    return

                self._buffer.append(item)
                if len(self._buffer) >= self._batch_size:
                    await self._flush("size")
        finally:
            if getter is not None and not getter.done():
                getter.cancel()

    def _drain_queue(self) -> None:
        # records put by producers that were blocked when close() ran
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            if item is not _CLOSE:
                self._buffer.append(item)

    async def _flush(self, trigger: str) -> None:
        batch = tuple(self._buffer)
        try:
            outcome = await self._writer.write(batch)
        except Exception as exc:
            logger.exception("indexer.flush_crashed", trigger=trigger, batch=len(batch))
            outcome = WriteOutcome(attempted=len(batch), accepted=0, failed=len(batch), error=str(exc))
        finally:
            self._buffer.clear()

        self.stats.record(outcome)
        if outcome.failed:
            logger.error(
                "indexer.batch_failed",
                trigger=trigger,
                batch=outcome.attempted,
                failed=outcome.failed,
                error=outcome.error,
            )
        else:
            logger.debug("indexer.flushed", trigger=trigger, batch=outcome.attempted)


__all__ = ["BatchIndexer", "IndexerStats"]

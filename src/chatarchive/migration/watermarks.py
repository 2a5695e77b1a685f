"""
Migration watermarks: where live indexing began, per chat.

Before a backfill copies anything out of the legacy store, it asks the
document store a single question: for every chat already present in the
index, what is the smallest message id there?  That id is the chat's
*watermark*.  Everything strictly below it predates live indexing and is
the backfill's job; everything at or above it the live path already wrote.

Architecture:
    ::

        search(index, size=0, aggs={
            chats: terms(chat_id, size=max_scopes)
                   └── min_msg: min(message_id)
        })
              │
              ▼
        ┌────────────────────────────────────────────────────────┐
        │ buckets                                                │
        │ key=-1001  min_msg.value=1000.0  → Watermark(-1001, 1000)
        │ key=-1002  min_msg.value=57      → Watermark(-1002, 57)│
        └────────────────────────────────────────────────────────┘

    * A missing index is not an error: nothing was indexed live yet, so
      there is nothing to resolve and the result is empty.
    * Any other store failure is a :class:`WatermarkError`; the migration
      aborts before writing anything.
    * A chat with no live records has no watermark and is not migrated.

Examples:
    >>> resolver = WatermarkResolver(store, "telegram_messages")
    >>> await resolver.resolve()
    [Watermark(chat_id=-1002, min_message_id=57), Watermark(chat_id=-1001, min_message_id=1000)]

Tags:
    watermark, migration, aggregation, elasticsearch, chat-archive

STDLIB ONLY -- no Pydantic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chatarchive.core.errors import IndexNotFoundError, StoreError, WatermarkError
from chatarchive.core.logging import get_logger
from chatarchive.store.protocols import DocumentStore

logger = get_logger(__name__)

DEFAULT_MAX_SCOPES = 10_000


@dataclass(frozen=True, slots=True)
class Watermark:
    """Smallest live-indexed message id of one chat.

    Attributes:
        chat_id: The chat.
        min_message_id: Exclusive upper bound for backfilling this chat.
    """

    chat_id: int
    min_message_id: int


def aggregation_body(max_scopes: int = DEFAULT_MAX_SCOPES) -> dict[str, Any]:
    """Search body computing ``min(message_id)`` per ``chat_id``."""
    return {
        "aggs": {
            "chats": {
                "terms": {"field": "chat_id", "size": max_scopes},
                "aggs": {"min_msg": {"min": {"field": "message_id"}}},
            }
        }
    }


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def parse_buckets(response: dict[str, Any]) -> list[Watermark]:
    """Watermarks from an aggregation response, sorted by chat id."""
    aggregations = response.get("aggregations")
    if not aggregations or "chats" not in aggregations:
        logger.warning("watermarks.no_aggregations")
        return []

    watermarks: list[Watermark] = []
    for bucket in aggregations["chats"].get("buckets") or []:
        chat_id = _as_int(bucket.get("key"))
        min_message_id = _as_int((bucket.get("min_msg") or {}).get("value"))
        if chat_id is None or min_message_id is None:
            logger.warning("watermarks.bucket_skipped", bucket=bucket)
            continue
        watermarks.append(Watermark(chat_id=chat_id, min_message_id=min_message_id))

    watermarks.sort(key=lambda w: w.chat_id)
    return watermarks


class WatermarkResolver:
    """Resolves per-chat watermarks with one aggregation query."""

    def __init__(
        self,
        store: DocumentStore,
        index_name: str,
        *,
        max_scopes: int = DEFAULT_MAX_SCOPES,
    ) -> None:
        self._store = store
        self._index_name = index_name
        self._max_scopes = max_scopes

    async def resolve(self) -> list[Watermark]:
        """Return one watermark per chat present in the index.

        Raises:
            WatermarkError: If the store fails for any reason other than the
                index not existing.
        """
        try:
            response = await self._store.search(
                self._index_name,
                aggregation_body(self._max_scopes),
                size=0,
            )
        except IndexNotFoundError:
            logger.info("watermarks.index_missing", index=self._index_name)
            return []
        except (StoreError, ConnectionError, TimeoutError) as exc:
            raise WatermarkError(
                f"Failed to resolve watermarks from {self._index_name}: {exc}",
                cause=exc,
            ).with_context(index=self._index_name) from exc

        watermarks = parse_buckets(response)
        if len(watermarks) >= self._max_scopes:
            logger.warning("watermarks.scope_limit_reached", max_scopes=self._max_scopes)
        logger.info("watermarks.resolved", index=self._index_name, scopes=len(watermarks))
        return watermarks


__all__ = [
    "DEFAULT_MAX_SCOPES",
    "Watermark",
    "WatermarkResolver",
    "aggregation_body",
    "parse_buckets",
]

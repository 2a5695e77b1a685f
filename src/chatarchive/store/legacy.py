"""
MongoDB legacy record store.

The legacy bot logged every message into one collection, but the document
shape drifted over time: older rows carry ``chat_id``/``message_id`` at the
top level, newer ``BotLog`` rows carry ``group_id`` and nest the message id
under ``msg_ctx``.  The filter follows the parser's field priority: the
newer spelling decides when it is present, the older one only when it is
absent.  Field extraction itself is left to :mod:`chatarchive.migration.legacy`.

Query shape:
    ::

        $match   group_id == c        OR (group_id missing AND chat_id == c)
                 msg_ctx.message_id < w OR (msg_ctx.message_id missing AND message_id < w)
                 [msg_type == kind_code]
        $addFields  _legacy_id = ifNull(msg_ctx.message_id, message_id)
        $sort       _legacy_id ascending (oldest first across both shapes)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from chatarchive.core.errors import LegacyStoreError
from chatarchive.core.logging import get_logger
from chatarchive.core.settings import MongoSettings

logger = get_logger(__name__)

SORT_KEY = "_legacy_id"


def build_filter(chat_id: int, below: int, kind_code: int | None = None) -> dict[str, Any]:
    """Query selecting one chat's records strictly below *below*.

    ``None`` matches both a missing and a null field, which is what the
    parser treats as "fall through to the next spelling".

    Args:
        chat_id: Chat (group) id.
        below: Exclusive upper bound on the message id.
        kind_code: Optional legacy ``msg_type`` code to restrict to.
    """
    clauses: list[dict[str, Any]] = [
        {"$or": [{"group_id": chat_id}, {"group_id": None, "chat_id": chat_id}]},
        {
            "$or": [
                {"msg_ctx.message_id": {"$lt": below}},
                {"msg_ctx.message_id": None, "message_id": {"$lt": below}},
            ]
        },
    ]
    if kind_code is not None:
        clauses.append({"msg_type": kind_code})
    return {"$and": clauses}


def build_pipeline(chat_id: int, below: int, kind_code: int | None = None) -> list[dict[str, Any]]:
    """Aggregation streaming the filtered records oldest first."""
    return [
        {"$match": build_filter(chat_id, below, kind_code)},
        {"$addFields": {SORT_KEY: {"$ifNull": ["$msg_ctx.message_id", "$message_id"]}}},
        {"$sort": {SORT_KEY: 1, "_id": 1}},
        {"$project": {SORT_KEY: 0}},
    ]


class MongoLegacyStore:
    """motor-backed implementation of ``LegacyStore``."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        *,
        cursor_batch_size: int = 1000,
        client: AsyncIOMotorClient | None = None,
    ) -> None:
        self._collection = collection
        self._cursor_batch_size = cursor_batch_size
        self._client = client

    @classmethod
    def from_settings(cls, settings: MongoSettings) -> MongoLegacyStore:
        client: AsyncIOMotorClient = AsyncIOMotorClient(
            settings.uri.get_secret_value(),
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
        collection = client[settings.database][settings.collection]
        return cls(collection, cursor_batch_size=settings.cursor_batch_size, client=client)

    async def count(self, chat_id: int, below: int, kind_code: int | None = None) -> int:
        query = build_filter(chat_id, below, kind_code)
        try:
            return await self._collection.count_documents(query)
        except PyMongoError as exc:
            raise LegacyStoreError(f"count failed: {exc}", cause=exc).with_context(chat_id=chat_id) from exc

    async def find(
        self, chat_id: int, below: int, kind_code: int | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        pipeline = build_pipeline(chat_id, below, kind_code)
        cursor = self._collection.aggregate(pipeline, allowDiskUse=True, batchSize=self._cursor_batch_size)
        try:
            async for document in cursor:
                yield document
        except PyMongoError as exc:
            raise LegacyStoreError(f"cursor failed: {exc}", cause=exc).with_context(chat_id=chat_id) from exc
        finally:
            await cursor.close()

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()


__all__ = ["MongoLegacyStore", "SORT_KEY", "build_filter", "build_pipeline"]

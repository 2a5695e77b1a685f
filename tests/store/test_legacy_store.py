"""Tests for the MongoDB legacy store adapter (collection mocked)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from chatarchive.core.errors import LegacyStoreError
from chatarchive.store.legacy import SORT_KEY, MongoLegacyStore, build_filter, build_pipeline
from chatarchive.store.protocols import LegacyStore


class FakeCursor:
    def __init__(self, documents, error=None):
        self._documents = list(documents)
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._documents:
            return self._documents.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def close(self):
        self.closed = True


class TestBuildFilter:
    def test_newer_spelling_takes_priority(self):
        assert build_filter(-1001, 1000) == {
            "$and": [
                {"$or": [{"group_id": -1001}, {"group_id": None, "chat_id": -1001}]},
                {
                    "$or": [
                        {"msg_ctx.message_id": {"$lt": 1000}},
                        {"msg_ctx.message_id": None, "message_id": {"$lt": 1000}},
                    ]
                },
            ]
        }

    def test_kind_code(self):
        assert build_filter(1, 2, kind_code=0)["$and"][-1] == {"msg_type": 0}


class TestBuildPipeline:
    def test_match_then_sort_on_computed_id(self):
        match, add_fields, sort, project = build_pipeline(-1001, 1000, kind_code=1)
        assert match == {"$match": build_filter(-1001, 1000, 1)}
        assert add_fields == {"$addFields": {SORT_KEY: {"$ifNull": ["$msg_ctx.message_id", "$message_id"]}}}
        assert sort == {"$sort": {SORT_KEY: 1, "_id": 1}}
        assert project == {"$project": {SORT_KEY: 0}}


class TestMongoLegacyStore:
    def test_implements_protocol(self):
        assert isinstance(MongoLegacyStore(MagicMock()), LegacyStore)

    @pytest.mark.asyncio
    async def test_count(self):
        collection = MagicMock()
        collection.count_documents = AsyncMock(return_value=3)
        assert await MongoLegacyStore(collection).count(-1001, 1000) == 3
        collection.count_documents.assert_awaited_once_with(build_filter(-1001, 1000))

    @pytest.mark.asyncio
    async def test_count_failure_wrapped(self):
        collection = MagicMock()
        collection.count_documents = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        with pytest.raises(LegacyStoreError) as exc_info:
            await MongoLegacyStore(collection).count(-1001, 1000)
        assert exc_info.value.context.chat_id == -1001
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_find_streams_sorted(self):
        cursor = FakeCursor([{"a": 1}, {"a": 2}])
        collection = MagicMock()
        collection.aggregate = MagicMock(return_value=cursor)

        store = MongoLegacyStore(collection, cursor_batch_size=250)
        docs = [doc async for doc in store.find(-1001, 1000, kind_code=1)]

        assert docs == [{"a": 1}, {"a": 2}]
        collection.aggregate.assert_called_once_with(
            build_pipeline(-1001, 1000, 1), allowDiskUse=True, batchSize=250
        )
        assert cursor.closed

    @pytest.mark.asyncio
    async def test_find_failure_wrapped_and_cursor_closed(self):
        cursor = FakeCursor([{"a": 1}], error=OperationFailure("cursor killed"))
        collection = MagicMock()
        collection.aggregate = MagicMock(return_value=cursor)

        seen = []
        with pytest.raises(LegacyStoreError):
            async for doc in MongoLegacyStore(collection).find(-1001, 1000):
                seen.append(doc)
        assert seen == [{"a": 1}]
        assert cursor.closed

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        client = MagicMock()
        await MongoLegacyStore(MagicMock(), client=client).close()
        client.close.assert_called_once()

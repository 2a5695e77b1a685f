"""
In-memory stand-ins for the document store, the legacy store and the chat
transport.

They implement the same protocols as the real adapters, record every call,
and expose knobs for fault injection:

    store = FakeDocumentStore()
    store.reject_ids.add("-1001_998")          # per-item rejection
    store.bulk_error = StoreUnavailableError("down")   # whole-request failure
    store.gate = asyncio.Event()               # bulk() waits until set
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from chatarchive.core.errors import IndexNotFoundError, LegacyStoreError
from chatarchive.core.models import MessageKind, Record


def make_record(
    message_id: int,
    *,
    chat_id: int = -1001,
    user_id: int | None = 7,
    text: str | None = None,
    date: int = 1_700_000_000,
    kind: MessageKind = MessageKind.TEXT,
) -> Record:
    return Record(
        chat_id=chat_id,
        message_id=message_id,
        user_id=user_id,
        text=text if text is not None else f"message {message_id}",
        date=date,
        kind=kind,
    )


def legacy_doc(message_id: int, /, *, group_id: int = -1001, msg_type: int = 0, **extra: Any) -> dict[str, Any]:
    """A modern-shape legacy document (``group_id`` + ``msg_ctx``)."""
    doc: dict[str, Any] = {
        "_id": f"oid-{group_id}-{message_id}",
        "group_id": group_id,
        "user_id": 7,
        "msg_type": msg_type,
        "timestamp": 1_600_000_000 + message_id,
        "msg_ctx": {"message_id": message_id, "command": f"legacy {message_id}"},
    }
    doc.update(extra)
    return doc


# =============================================================================
# Document store
# =============================================================================


class FakeDocumentStore:
    """Dict-backed ``DocumentStore`` that understands the queries we send."""

    def __init__(self, *, indexes: set[str] | None = None) -> None:
        self.indexes: set[str] = set(indexes or ())
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}
        self.bulk_calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.search_calls: list[tuple[str, dict[str, Any], int, int]] = []
        self.reject_ids: set[str] = set()
        self.bulk_error: Exception | None = None
        self.search_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.closed = False

    # -- helpers --------------------------------------------------------

    def docs(self, index: str = "messages") -> dict[str, dict[str, Any]]:
        return self.documents.get(index, {})

    def put(self, index: str, record: Record) -> None:
        self.indexes.add(index)
        self.documents.setdefault(index, {})[record.document_id] = record.to_document()

    @property
    def bulk_batch_sizes(self) -> list[int]:
        return [len(ops) // 2 for _, ops in self.bulk_calls]

    # -- DocumentStore ----------------------------------------------------

    async def index_exists(self, index: str) -> bool:
        return index in self.indexes

    async def create_index(self, index: str, body: dict[str, Any]) -> None:
        self.indexes.add(index)
        self.documents.setdefault(index, {})

    async def bulk(self, index: str, operations: list[dict[str, Any]]) -> dict[str, Any]:
        if self.gate is not None:
            await self.gate.wait()
        self.bulk_calls.append((index, operations))
        if self.bulk_error is not None:
            raise self.bulk_error

        self.indexes.add(index)
        target = self.documents.setdefault(index, {})
        items = []
        errors = False
        for action, source in zip(operations[::2], operations[1::2], strict=True):
            doc_id = action["index"]["_id"]
            if doc_id in self.reject_ids:
                errors = True
                items.append(
                    {
                        "index": {
                            "_id": doc_id,
                            "status": 400,
                            "error": {"type": "mapper_parsing_exception", "reason": "injected"},
                        }
                    }
                )
                continue
            status = 200 if doc_id in target else 201
            target[doc_id] = dict(source)
            items.append({"index": {"_id": doc_id, "status": status, "result": "created"}})
        return {"took": 1, "errors": errors, "items": items}

    async def search(
        self,
        index: str,
        body: dict[str, Any],
        *,
        from_: int = 0,
        size: int = 10,
    ) -> dict[str, Any]:
        self.search_calls.append((index, body, from_, size))
        if self.search_error is not None:
            raise self.search_error
        if index not in self.indexes:
            raise IndexNotFoundError(f"Index {index} not found", status=404)

        sources = list(self.docs(index).values())
        if "aggs" in body:
            return {"hits": {"total": {"value": len(sources)}, "hits": []}, "aggregations": _min_per_chat(sources)}

        matched = [s for s in sources if _matches(s, body["query"]["bool"])]
        matched.sort(key=lambda s: (s["date"], s["message_id"]), reverse=True)
        page = matched[from_ : from_ + size]
        return {
            "hits": {
                "total": {"value": len(matched), "relation": "eq"},
                "hits": [
                    {"_id": f"{s['chat_id']}_{s['message_id']}", "_score": 1.0, "_source": s} for s in page
                ],
            }
        }

    async def close(self) -> None:
        self.closed = True


def _min_per_chat(sources: list[dict[str, Any]]) -> dict[str, Any]:
    minimum: dict[int, int] = {}
    for s in sources:
        chat, msg = s["chat_id"], s["message_id"]
        minimum[chat] = min(msg, minimum.get(chat, msg))
    buckets = [
        # Elasticsearch reports min aggregations as floats
        {"key": chat, "doc_count": 1, "min_msg": {"value": float(msg)}}
        for chat, msg in sorted(minimum.items())
    ]
    return {"chats": {"buckets": buckets}}


def _matches(source: dict[str, Any], query: dict[str, Any]) -> bool:
    for clause in query.get("filter", []):
        if "term" in clause:
            ((field, value),) = clause["term"].items()
            if source.get(field) != value:
                return False
        elif "range" in clause:
            bounds = clause["range"]["date"]
            if "gte" in bounds and source["date"] < bounds["gte"]:
                return False
            if "lte" in bounds and source["date"] > bounds["lte"]:
                return False
    for clause in query.get("must", []):
        if "match" in clause:
            keyword = clause["match"]["text"]["query"]
            if keyword.lower() not in source.get("text", "").lower():
                return False
    return True


# =============================================================================
# Legacy store
# =============================================================================


def _legacy_chat(doc: dict[str, Any]) -> Any:
    return doc["group_id"] if doc.get("group_id") is not None else doc.get("chat_id")


def _legacy_id(doc: dict[str, Any]) -> Any:
    nested = (doc.get("msg_ctx") or {}).get("message_id")
    return nested if nested is not None else doc.get("message_id")


class FakeLegacyStore:
    """List-backed ``LegacyStore`` mirroring the Mongo filter and sort semantics."""

    def __init__(self, documents: list[dict[str, Any]] | None = None) -> None:
        self.documents: list[dict[str, Any]] = list(documents or [])
        self.count_calls: list[tuple[int, int, int | None]] = []
        self.find_calls: list[tuple[int, int, int | None]] = []
        self.count_error: Exception | None = None
        # raise LegacyStoreError after yielding this many documents
        self.fail_after: int | None = None
        # yielded by find() in every scope, whatever the filter says
        self.unfiltered: list[dict[str, Any]] = []
        self.closed = False

    def _select(self, chat_id: int, below: int, kind_code: int | None) -> list[dict[str, Any]]:
        selected = []
        for doc in self.documents:
            if _legacy_chat(doc) != chat_id:
                continue
            legacy_id = _legacy_id(doc)
            if not isinstance(legacy_id, int) or legacy_id >= below:
                continue
            if kind_code is not None and doc.get("msg_type") != kind_code:
                continue
            selected.append(doc)
        return sorted(selected, key=_legacy_id) + list(self.unfiltered)

    async def count(self, chat_id: int, below: int, kind_code: int | None = None) -> int:
        self.count_calls.append((chat_id, below, kind_code))
        if self.count_error is not None:
            raise self.count_error
        return len(self._select(chat_id, below, kind_code))

    async def find(self, chat_id: int, below: int, kind_code: int | None = None) -> AsyncIterator[dict[str, Any]]:
        self.find_calls.append((chat_id, below, kind_code))
        for position, doc in enumerate(self._select(chat_id, below, kind_code)):
            if self.fail_after is not None and position >= self.fail_after:
                raise LegacyStoreError("cursor lost")
            yield doc

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Chat transport
# =============================================================================


class RecordingTransport:
    """``ChatTransport`` that records what the bot would have sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, Any]] = []
        self.edited: list[tuple[int, int, Any]] = []
        self.answered: list[str] = []

    async def send_message(self, chat_id: int, reply: Any) -> None:
        self.sent.append((chat_id, reply))

    async def edit_message(self, chat_id: int, message_id: int, reply: Any) -> None:
        self.edited.append((chat_id, message_id, reply))

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        self.answered.append(callback_id)

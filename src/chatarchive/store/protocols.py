"""
Store protocols consumed by the write, migration and search paths.

Domain code never imports ``elasticsearch`` or ``motor`` directly; it talks
to these two protocols.  The concrete adapters live in
:mod:`chatarchive.store.elasticsearch` and :mod:`chatarchive.store.legacy`,
and the test suite supplies in-memory fakes.

Architecture:
    ::

        DocumentStore                         LegacyStore
        ┌──────────────────────────────┐      ┌──────────────────────────────┐
        │ index_exists(index)          │      │ count(chat_id, below, kind)  │
        │ create_index(index, body)    │      │ find(chat_id, below, kind)   │
        │ bulk(index, operations)      │      │   → AsyncIterator[dict]      │
        │ search(index, body, ...)     │      │ close()                      │
        │ close()                      │      └──────────────────────────────┘
        └──────────────────────────────┘

Both protocols speak Elasticsearch / MongoDB wire shapes (plain dicts) so
fakes can return canned responses without a translation layer.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DocumentStore(Protocol):
    """Document store holding one document per archived message."""

    async def index_exists(self, index: str) -> bool:
        """True when *index* exists."""
        ...

    async def create_index(self, index: str, body: dict[str, Any]) -> None:
        """Create *index* with settings/mappings *body*."""
        ...

    async def bulk(self, index: str, operations: list[dict[str, Any]]) -> dict[str, Any]:
        """Submit action/document pairs; returns the bulk response body.

        The response has the shape ``{"errors": bool, "items": [{"index": {...}}]}``.
        Raises :class:`~chatarchive.core.errors.StoreError` on transport failure.
        """
        ...

    async def search(
        self,
        index: str,
        body: dict[str, Any],
        *,
        from_: int = 0,
        size: int = 10,
    ) -> dict[str, Any]:
        """Run a search; raises ``IndexNotFoundError`` for a missing index."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class LegacyStore(Protocol):
    """Read-only view of the legacy message log."""

    async def count(self, chat_id: int, below: int, kind_code: int | None = None) -> int:
        """Number of records for *chat_id* with message id strictly below *below*."""
        ...

    def find(self, chat_id: int, below: int, kind_code: int | None = None) -> AsyncIterator[dict[str, Any]]:
        """Matching raw records, ascending by message id."""
        ...

    async def close(self) -> None:
        ...


__all__ = ["DocumentStore", "LegacyStore"]

"""Search client: runs a :class:`SearchParams` against the document store."""

from __future__ import annotations

from chatarchive.core.logging import get_logger
from chatarchive.search.query import SearchParams, SearchResult, build_query, parse_response
from chatarchive.store.protocols import DocumentStore

logger = get_logger(__name__)


class SearchClient:
    """Paged, chat-scoped full-text search.

    Store errors propagate to the caller, which decides what the user sees.
    """

    def __init__(self, store: DocumentStore, index_name: str, search_analyzer: str = "ik_smart") -> None:
        self._store = store
        self._index_name = index_name
        self._search_analyzer = search_analyzer

    async def search(self, params: SearchParams) -> SearchResult:
        body = build_query(params, self._search_analyzer)
        response = await self._store.search(
            self._index_name,
            body,
            from_=params.offset,
            size=params.page_size,
        )
        result = parse_response(response, params.page, params.page_size)
        logger.debug(
            "search.executed",
            chat_id=params.chat_id,
            page=params.page,
            total=result.total,
            returned=len(result.hits),
        )
        return result


__all__ = ["SearchClient"]

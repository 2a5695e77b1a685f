"""Full-text search over archived messages."""

from chatarchive.search.client import SearchClient
from chatarchive.search.query import SearchHit, SearchParams, SearchResult, build_query, parse_response

__all__ = [
    "SearchClient",
    "SearchHit",
    "SearchParams",
    "SearchResult",
    "build_query",
    "parse_response",
]

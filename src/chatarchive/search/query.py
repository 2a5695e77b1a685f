"""
Search request model, query builder and response parser.

Everything here is pure: :func:`build_query` turns :class:`SearchParams`
into an Elasticsearch request body and :func:`parse_response` turns the
response body into a :class:`SearchResult`.  The I/O lives in
:mod:`chatarchive.search.client`.

Query shape:
    ::

        bool
        ├── must    match(text, analyzer)        keyword given
        │           match_all                    otherwise
        └── filter  term(chat_id)                always
                    term(user_id)                optional
                    range(date, gte/lte)         optional
                    term(message_type)           optional
        sort        _score desc, date desc
        highlight   text, <b>…</b>, one fragment of 100 chars

    The ``chat_id`` filter is unconditional: a group can only ever search
    its own messages.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatarchive.core.logging import get_logger
from chatarchive.core.models import MessageKind, Record

logger = get_logger(__name__)

HIGHLIGHT_PRE_TAG = "<b>"
HIGHLIGHT_POST_TAG = "</b>"


class SearchParams(BaseModel):
    """One search request, scoped to a chat."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    chat_id: int
    keyword: str | None = None
    user_id: int | None = None
    date_from: int | None = Field(default=None, description="Epoch seconds, inclusive")
    date_to: int | None = Field(default=None, description="Epoch seconds, inclusive")
    kind: MessageKind | None = None
    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=5, ge=1, le=100)

    @field_validator("keyword")
    @classmethod
    def _blank_keyword(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def offset(self) -> int:
        return self.page * self.page_size


def build_query(params: SearchParams, search_analyzer: str = "ik_smart") -> dict[str, Any]:
    """Request body (without ``from``/``size``) for *params*."""
    must: list[dict[str, Any]] = []
    filters: list[dict[str, Any]] = [{"term": {"chat_id": params.chat_id}}]

    if params.keyword:
        must.append({"match": {"text": {"query": params.keyword, "analyzer": search_analyzer}}})
    if params.user_id is not None:
        filters.append({"term": {"user_id": params.user_id}})

    date_range: dict[str, int] = {}
    if params.date_from is not None:
        date_range["gte"] = params.date_from
    if params.date_to is not None:
        date_range["lte"] = params.date_to
    if date_range:
        filters.append({"range": {"date": date_range}})

    if params.kind is not None:
        filters.append({"term": {"message_type": params.kind.value}})

    if not must:
        must.append({"match_all": {}})

    return {
        "query": {"bool": {"must": must, "filter": filters}},
        "sort": [
            {"_score": {"order": "desc"}},
            {"date": {"order": "desc"}},
        ],
        "highlight": {
            "fields": {
                "text": {
                    "pre_tags": [HIGHLIGHT_PRE_TAG],
                    "post_tags": [HIGHLIGHT_POST_TAG],
                    "fragment_size": 100,
                    "number_of_fragments": 1,
                }
            }
        },
    }


@dataclass(frozen=True, slots=True)
class SearchHit:
    record: Record
    highlight: str | None = None
    score: float = 0.0


@dataclass(frozen=True, slots=True)
class SearchResult:
    total: int
    hits: list[SearchHit] = field(default_factory=list)
    page: int = 0
    total_pages: int = 0

    @property
    def has_previous(self) -> bool:
        return self.page > 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages


def _total(body: dict[str, Any]) -> int:
    total = (body.get("hits") or {}).get("total")
    # ES 7+ returns {"value": n, "relation": ...}; older clusters a bare int
    if isinstance(total, dict):
        total = total.get("value")
    return total if isinstance(total, int) and not isinstance(total, bool) else 0


def parse_response(body: dict[str, Any], page: int, page_size: int) -> SearchResult:
    """Build a :class:`SearchResult`; hits that do not parse are skipped."""
    total = _total(body)
    total_pages = math.ceil(total / page_size) if total else 0

    hits: list[SearchHit] = []
    for hit in (body.get("hits") or {}).get("hits") or []:
        try:
            record = Record.from_document(hit.get("_source") or {})
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("search.hit_unparsable", hit_id=hit.get("_id"), error=str(exc))
            continue
        fragments = (hit.get("highlight") or {}).get("text") or []
        score = hit.get("_score")
        hits.append(
            SearchHit(
                record=record,
                highlight=fragments[0] if fragments else None,
                score=float(score) if isinstance(score, (int, float)) else 0.0,
            )
        )

    return SearchResult(total=total, hits=hits, page=page, total_pages=total_pages)


__all__ = [
    "SearchHit",
    "SearchParams",
    "SearchResult",
    "build_query",
    "parse_response",
]

"""Rendering of search results as HTML text and inline keyboards."""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import UTC, datetime

from chatarchive.chat.state_token import CallbackAction, SearchState, encode_callback
from chatarchive.chat.user_cache import UserCache
from chatarchive.core.models import MessageKind
from chatarchive.search.query import HIGHLIGHT_POST_TAG, HIGHLIGHT_PRE_TAG, SearchResult

SNIPPET_CHARS = 80
# supergroup ids are -100{channel_id}
SUPERGROUP_OFFSET = 1_000_000_000_000

DATE_RANGES: tuple[tuple[str, int | None], ...] = (
    ("7 days", 7),
    ("30 days", 30),
    ("90 days", 90),
    ("All time", None),
)
TYPE_FILTERS: tuple[tuple[str, MessageKind], ...] = (
    ("Text", MessageKind.TEXT),
    ("Photo", MessageKind.PHOTO),
    ("Video", MessageKind.VIDEO),
    ("File", MessageKind.DOCUMENT),
)

NO_RESULTS = "No matching messages."


@dataclass(frozen=True, slots=True)
class Button:
    text: str
    callback_data: str


Keyboard = list[list[Button]]


def parse_search_query(query: str) -> tuple[str, str | None]:
    """Split ``"@user keyword"`` or ``"keyword @user"`` into ``(keyword, user)``.

    A mention is only recognised as the first or last word of a two-part
    query; anything else is a plain keyword.
    """
    query = query.strip()
    parts = query.split(None, 1)
    if len(parts) == 2:
        head, tail = parts
        if head.startswith("@") and len(head) > 1:
            return tail.strip(), head[1:]
        last_head, _, last = query.rpartition(" ")
        if last.startswith("@") and len(last) > 1:
            return last_head.strip(), last[1:]
    return query, None


def html_escape(text: str) -> str:
    return html.escape(text, quote=False)


def message_link(chat_id: int, message_id: int) -> str:
    channel_id = abs(chat_id)
    if channel_id > SUPERGROUP_OFFSET:
        channel_id -= SUPERGROUP_OFFSET
    return f"https://t.me/c/{channel_id}/{message_id}"


def _snippet(text: str, highlight: str | None) -> str:
    # only the store's own highlight tags survive escaping
    if highlight:
        return (
            html_escape(highlight)
            .replace(html_escape(HIGHLIGHT_PRE_TAG), HIGHLIGHT_PRE_TAG)
            .replace(html_escape(HIGHLIGHT_POST_TAG), HIGHLIGHT_POST_TAG)
        )
    if len(text) > SNIPPET_CHARS:
        return html_escape(text[:SNIPPET_CHARS]) + "..."
    return html_escape(text)


def format_results(result: SearchResult, user_cache: UserCache, page_size: int) -> str:
    if result.total == 0:
        return NO_RESULTS

    lines = [f"Found <b>{result.total}</b> messages (page {result.page + 1}/{result.total_pages}):", ""]
    for position, hit in enumerate(result.hits, start=result.page * page_size + 1):
        record = hit.record
        name = user_cache.display_name(record.user_id) or (
            f"user {record.user_id}" if record.user_id is not None else "unknown"
        )
        stamp = datetime.fromtimestamp(record.date, UTC).strftime("%Y-%m-%d %H:%M")
        lines.append(f"{position}. <b>{html_escape(name)}</b>  <i>{stamp}</i>")
        lines.append(_snippet(record.text, hit.highlight))
        lines.append(f'<a href="{message_link(record.chat_id, record.message_id)}">Go to message</a>')
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def build_keyboard(result: SearchResult, state: SearchState) -> Keyboard:
    """Pagination row (when there is more than one page), date row, type row."""
    rows: Keyboard = []

    if result.total_pages > 1:
        nav: list[Button] = []
        if result.has_previous:
            nav.append(Button("< Prev", encode_callback(CallbackAction.PAGE, state.with_page(result.page - 1))))
        nav.append(Button(f"{result.page + 1}/{result.total_pages}", encode_callback(CallbackAction.NOOP)))
        if result.has_next:
            nav.append(Button("Next >", encode_callback(CallbackAction.PAGE, state.with_page(result.page + 1))))
        rows.append(nav)

    rows.append(
        [
            Button(label, encode_callback(CallbackAction.FILTER_DATE, state.with_days(days)))
            for label, days in DATE_RANGES
        ]
    )
    rows.append(
        [
            Button(
                f"* {label}" if state.kind == kind else label,
                encode_callback(CallbackAction.FILTER_TYPE, state.toggle_kind(kind)),
            )
            for label, kind in TYPE_FILTERS
        ]
    )
    return rows


__all__ = [
    "Button",
    "Keyboard",
    "build_keyboard",
    "format_results",
    "html_escape",
    "message_link",
    "parse_search_query",
]

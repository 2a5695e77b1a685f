"""Tests for result text and keyboard rendering."""

import pytest

from chatarchive.chat.render import (
    NO_RESULTS,
    build_keyboard,
    format_results,
    html_escape,
    message_link,
    parse_search_query,
)
from chatarchive.chat.state_token import CallbackAction, SearchState, decode_callback
from chatarchive.chat.user_cache import UserCache
from chatarchive.core.models import MessageKind
from chatarchive.search.query import SearchHit, SearchResult
from tests._support.fakes import make_record


class TestParseSearchQuery:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("hello", ("hello", None)),
            ("@alice hello world", ("hello world", "alice")),
            ("hello world @alice", ("hello world", "alice")),
            ("@alice", ("@alice", None)),
            ("  spaced  ", ("spaced", None)),
            ("a @b c", ("a @b c", None)),
        ],
    )
    def test_forms(self, query, expected):
        assert parse_search_query(query) == expected


class TestMessageLink:
    def test_supergroup(self):
        assert message_link(-1001234567890, 42) == "https://t.me/c/1234567890/42"

    def test_plain_group(self):
        assert message_link(-4567, 3) == "https://t.me/c/4567/3"


class TestFormatResults:
    def test_empty(self):
        assert format_results(SearchResult(total=0), UserCache(), 5) == NO_RESULTS

    def test_numbering_follows_page(self):
        cache = UserCache()
        cache.update(7, "alice", "Alice <A>")
        hits = [SearchHit(make_record(i, date=0)) for i in (11, 12)]
        text = format_results(SearchResult(total=12, hits=hits, page=2, total_pages=3), cache, 5)
        assert text.startswith("Found <b>12</b> messages (page 3/3):")
        assert "11. <b>Alice &lt;A&gt;</b>  <i>1970-01-01 00:00</i>" in text
        assert "12. " in text
        assert '<a href="https://t.me/c/1001/11">Go to message</a>' in text

    def test_unknown_user_names(self):
        hits = [SearchHit(make_record(1, user_id=99)), SearchHit(make_record(2, user_id=None))]
        text = format_results(SearchResult(total=2, hits=hits, total_pages=1), UserCache(), 5)
        assert "<b>user 99</b>" in text
        assert "<b>unknown</b>" in text

    def test_highlight_preferred_and_long_text_cut(self):
        hits = [
            SearchHit(make_record(1, text="a & b"), highlight="<b>a</b> & b"),
            SearchHit(make_record(2, text="x" * 200)),
        ]
        text = format_results(SearchResult(total=2, hits=hits, total_pages=1), UserCache(), 5)
        assert "<b>a</b> &amp; b" in text
        assert "x" * 80 + "..." in text
        assert "x" * 81 not in text

    def test_highlight_text_is_escaped(self):
        hits = [SearchHit(make_record(1, text="x a<b"), highlight="<b>x</b> a<b")]
        text = format_results(SearchResult(total=1, hits=hits, total_pages=1), UserCache(), 5)
        assert "<b>x</b> a&lt;b" in text

    def test_escape(self):
        assert html_escape("<a&b>") == "&lt;a&amp;b&gt;"


def _decoded(button):
    return decode_callback(button.callback_data)


class TestBuildKeyboard:
    def test_single_page_has_no_navigation(self):
        rows = build_keyboard(SearchResult(total=3, page=0, total_pages=1), SearchState(keyword="k"))
        assert len(rows) == 2
        assert [b.text for b in rows[0]] == ["7 days", "30 days", "90 days", "All time"]
        assert [b.text for b in rows[1]] == ["Text", "Photo", "Video", "File"]

    def test_middle_page_navigation(self):
        state = SearchState(keyword="k", user_id=7, page=1)
        rows = build_keyboard(SearchResult(total=15, page=1, total_pages=3), state)
        prev, indicator, nxt = rows[0]
        assert (prev.text, indicator.text, nxt.text) == ("< Prev", "2/3", "Next >")
        assert _decoded(prev) == (CallbackAction.PAGE, state.with_page(0))
        assert _decoded(nxt) == (CallbackAction.PAGE, state.with_page(2))
        assert indicator.callback_data == "noop"

    def test_first_and_last_page(self):
        first = build_keyboard(SearchResult(total=10, page=0, total_pages=2), SearchState())
        assert [b.text for b in first[0]] == ["1/2", "Next >"]
        last = build_keyboard(SearchResult(total=10, page=1, total_pages=2), SearchState(page=1))
        assert [b.text for b in last[0]] == ["< Prev", "2/2"]

    def test_filter_buttons_carry_target_state(self):
        state = SearchState(keyword="k", kind=MessageKind.PHOTO, page=2)
        date_row, type_row = build_keyboard(SearchResult(total=1, total_pages=1), state)
        assert _decoded(date_row[1]) == (CallbackAction.FILTER_DATE, state.with_days(30))
        assert _decoded(date_row[3])[1].days is None
        assert type_row[1].text == "* Photo"
        # pressing the selected kind clears it
        assert _decoded(type_row[1])[1].kind is None
        assert _decoded(type_row[2])[1].kind is MessageKind.VIDEO

    def test_every_payload_fits(self):
        state = SearchState(keyword="很长的关键词" * 10, user_id=1234567890, kind=MessageKind.DOCUMENT, days=90, page=99)
        rows = build_keyboard(SearchResult(total=1000, page=99, total_pages=200), state)
        for row in rows:
            for button in row:
                assert len(button.callback_data.encode()) <= 64

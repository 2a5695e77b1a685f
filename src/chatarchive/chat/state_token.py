"""
Search state carried inside inline-keyboard callback payloads.

Every button of a results message encodes the complete search state it
leads to, so a button press needs nothing from the server but the payload
itself.  No session table, no expiry, and a restarted bot still understands
buttons it sent before the restart.

Wire format:
    ::

        "{action}|{base64url(json([keyword, user_id, kind, days, page]))}"

        p|WyLkvaDlpb0iLG51bGwsbnVsbCw3LDFd
        │ └── ["你好", null, null, 7, 1]
        └──── action: p (page), ft (type filter), fd (date filter)

        noop                        (page indicator button, no state)

    * ``kind`` is the position of the kind in :class:`MessageKind`.
    * ``days`` is a relative window; the absolute start is computed from
      the time of the press.
    * Telegram caps callback data at 64 bytes.  The keyword is shortened
      until the payload fits; if even an empty keyword does not fit,
      :class:`StateTokenError` is raised.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, replace
from enum import Enum

from chatarchive.core.errors import StateTokenError
from chatarchive.core.models import MessageKind
from chatarchive.search.query import SearchParams

MAX_CALLBACK_BYTES = 64
SECONDS_PER_DAY = 86_400

_KINDS: tuple[MessageKind, ...] = tuple(MessageKind)
_SEPARATOR = "|"


class CallbackAction(str, Enum):
    PAGE = "p"
    FILTER_TYPE = "ft"
    FILTER_DATE = "fd"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class SearchState:
    """Everything needed to re-run a search, minus the chat it runs in."""

    keyword: str | None = None
    user_id: int | None = None
    kind: MessageKind | None = None
    days: int | None = None
    page: int = 0

    def with_page(self, page: int) -> SearchState:
        return replace(self, page=max(0, page))

    def toggle_kind(self, kind: MessageKind) -> SearchState:
        """Select *kind*, or clear the filter if it is already selected."""
        return replace(self, kind=None if self.kind == kind else kind, page=0)

    def with_days(self, days: int | None) -> SearchState:
        return replace(self, days=days, page=0)

    def to_params(self, chat_id: int, page_size: int, now: int) -> SearchParams:
        return SearchParams(
            chat_id=chat_id,
            keyword=self.keyword,
            user_id=self.user_id,
            kind=self.kind,
            date_from=now - self.days * SECONDS_PER_DAY if self.days else None,
            page=self.page,
            page_size=page_size,
        )


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _pack(action: CallbackAction, state: SearchState) -> str:
    payload = [
        state.keyword,
        state.user_id,
        _KINDS.index(state.kind) if state.kind is not None else None,
        state.days,
        state.page,
    ]
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return f"{action.value}{_SEPARATOR}{_b64encode(raw)}"


def encode_callback(action: CallbackAction, state: SearchState | None = None) -> str:
    """Callback data for a button leading to *state*.

    Raises:
        StateTokenError: If the state cannot fit in a callback payload.
    """
    if action is CallbackAction.NOOP:
        return CallbackAction.NOOP.value
    if state is None:
        raise StateTokenError(f"Action {action.value!r} requires a search state")

    data = _pack(action, state)
    keyword = state.keyword or ""
    while len(data) > MAX_CALLBACK_BYTES and keyword:
        keyword = keyword[:-1]
        data = _pack(action, replace(state, keyword=keyword or None))
    if len(data) > MAX_CALLBACK_BYTES:
        raise StateTokenError(f"Search state does not fit in {MAX_CALLBACK_BYTES} bytes")
    return data


def _optional_int(value: object, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise StateTokenError(f"Invalid {name} in callback payload")
    return value


def decode_callback(data: str) -> tuple[CallbackAction, SearchState | None]:
    """Inverse of :func:`encode_callback`; ``noop`` carries no state.

    Raises:
        StateTokenError: On any malformed payload.
    """
    if data == CallbackAction.NOOP.value:
        return CallbackAction.NOOP, None

    prefix, sep, token = data.partition(_SEPARATOR)
    if not sep:
        raise StateTokenError("Callback payload has no state token")
    try:
        action = CallbackAction(prefix)
        payload = json.loads(_b64decode(token).decode("utf-8"))
    except (ValueError, binascii.Error, UnicodeDecodeError) as exc:
        raise StateTokenError(f"Malformed callback payload: {exc}", cause=exc) from exc

    if not isinstance(payload, list) or len(payload) != 5:
        raise StateTokenError("Callback payload has the wrong shape")

    keyword, user_id, kind_index, days, page = payload
    if keyword is not None and not isinstance(keyword, str):
        raise StateTokenError("Invalid keyword in callback payload")
    kind_index = _optional_int(kind_index, "kind")
    if kind_index is not None and not 0 <= kind_index < len(_KINDS):
        raise StateTokenError("Unknown kind in callback payload")
    page = _optional_int(page, "page")
    if page is None or page < 0:
        raise StateTokenError("Invalid page in callback payload")

    return action, SearchState(
        keyword=keyword,
        user_id=_optional_int(user_id, "user_id"),
        kind=_KINDS[kind_index] if kind_index is not None else None,
        days=_optional_int(days, "days"),
        page=page,
    )


__all__ = [
    "MAX_CALLBACK_BYTES",
    "CallbackAction",
    "SearchState",
    "decode_callback",
    "encode_callback",
]

"""
Tolerant parser for legacy message documents.

The legacy collection was written by several generations of the bot, so the
same fact lives under different keys with different types.  Each output
field is therefore described by an ordered list of extraction strategies,
``(path, extractor)`` pairs tried top to bottom; the first one that yields a
value wins.  Adding a newly discovered spelling is a one-line table change.

Strategy table:
    ::

        field       strategies (priority order)
        ──────────  ────────────────────────────────────────────────────────
        message_id  msg_ctx.message_id:int   message_id:int
        chat_id     group_id:int             chat_id:int
        user_id     user_id:int                                   (optional)
        text        msg_ctx.command:str      text:str   content:str   ("")
        date        timestamp:datetime       date:datetime
                    date:epoch               timestamp:epoch
        kind        msg_type:code            message_type:name
                    msg_type:name            type:name              (text)

    * ``int`` accepts ints (``bson.Int64`` included), integral floats and
      integral strings; ``bool`` never counts as an integer.
    * ``datetime`` values become epoch seconds; naive values are UTC.
    * ``epoch`` values above :data:`MILLISECOND_THRESHOLD` are milliseconds
      and are scaled down to seconds.

Examples:
    >>> parse_legacy_document({
    ...     "group_id": -1001, "user_id": 7, "msg_type": 1,
    ...     "msg_ctx": {"message_id": 998, "command": "look"},
    ...     "timestamp": datetime(2023, 5, 1, tzinfo=UTC),
    ... })
    Record(chat_id=-1001, message_id=998, user_id=7, text='look', date=1682899200, kind=<MessageKind.PHOTO: 'photo'>)

Tags:
    migration, parsing, legacy, mongodb, chat-archive

STDLIB ONLY -- no Pydantic.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from chatarchive.core.errors import LegacyParseError
from chatarchive.core.models import MessageKind, Record

# epoch values above this are milliseconds (4e9 s is the year 2096)
MILLISECOND_THRESHOLD = 4_000_000_000

_MISSING = object()

Extractor = Callable[[Any], Any]
Strategy = tuple[str, Extractor]


def _lookup(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


# ---------------------------------------------------------------------------
# Extractors: value -> parsed value, or None when the shape does not match
# ---------------------------------------------------------------------------


def as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        cleaned = value.strip()
        digits = cleaned[1:] if cleaned.startswith("-") else cleaned
        if digits.isdecimal():
            return int(cleaned)
    return None


def as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def as_datetime_seconds(value: Any) -> int | None:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def as_epoch_seconds(value: Any) -> int | None:
    seconds = as_int(value)
    if seconds is None:
        return None
    if seconds > MILLISECOND_THRESHOLD:
        seconds //= 1000
    return seconds


def as_kind_code(value: Any) -> MessageKind | None:
    code = as_int(value)
    return MessageKind.from_code(code) if code is not None else None


def as_kind_name(value: Any) -> MessageKind | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return MessageKind.parse(value)


STRATEGIES: dict[str, tuple[Strategy, ...]] = {
    "message_id": (("msg_ctx.message_id", as_int), ("message_id", as_int)),
    "chat_id": (("group_id", as_int), ("chat_id", as_int)),
    "user_id": (("user_id", as_int),),
    "text": (("msg_ctx.command", as_str), ("text", as_str), ("content", as_str)),
    "date": (
        ("timestamp", as_datetime_seconds),
        ("date", as_datetime_seconds),
        ("date", as_epoch_seconds),
        ("timestamp", as_epoch_seconds),
    ),
    "kind": (
        ("msg_type", as_kind_code),
        ("message_type", as_kind_name),
        ("msg_type", as_kind_name),
        ("type", as_kind_name),
    ),
}


def extract(document: Mapping[str, Any], field_name: str) -> Any:
    """First non-None value produced by *field_name*'s strategies, else None."""
    for path, extractor in STRATEGIES[field_name]:
        raw = _lookup(document, path)
        if raw is _MISSING or raw is None:
            continue
        value = extractor(raw)
        if value is not None:
            return value
    return None


def _required(document: Mapping[str, Any], field_name: str) -> Any:
    value = extract(document, field_name)
    if value is None:
        raise LegacyParseError(field_name).with_context(metadata_keys=sorted(document.keys()))
    return value


def parse_legacy_document(document: Mapping[str, Any]) -> Record:
    """Normalize one legacy document into a :class:`Record`.

    Raises:
        LegacyParseError: If ``message_id``, ``chat_id`` or ``date`` cannot
            be extracted by any strategy.
    """
    message_id = _required(document, "message_id")
    chat_id = _required(document, "chat_id")
    date = _required(document, "date")
    return Record(
        chat_id=chat_id,
        message_id=message_id,
        user_id=extract(document, "user_id"),
        text=extract(document, "text") or "",
        date=date,
        kind=extract(document, "kind") or MessageKind.TEXT,
    )


__all__ = [
    "MILLISECOND_THRESHOLD",
    "STRATEGIES",
    "as_epoch_seconds",
    "as_int",
    "extract",
    "parse_legacy_document",
]

"""
Normalized message record shared by the live and migration write paths.

A :class:`Record` is built once, at the transport boundary or by the legacy
parser, and consumed exactly once by a bulk write.  It is frozen so a batch
can be handed to the writer without copying.

STDLIB ONLY -- no Pydantic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from chatarchive.core.identity import document_id


class MessageKind(str, Enum):
    """Closed set of message kinds stored in ``message_type``."""

    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"
    VOICE = "voice"
    ANIMATION = "animation"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: int) -> MessageKind:
        """Map a legacy numeric ``msg_type`` code to a kind."""
        return _LEGACY_CODES.get(code, cls.OTHER)

    @classmethod
    def parse(cls, value: Any) -> MessageKind:
        """Total mapping from any stored representation to a kind.

        Accepts enum members, names or values in any case, and legacy
        integer codes (also as digit strings).  Unknown values map to
        :attr:`OTHER`.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.OTHER
        if isinstance(value, int):
            return cls.from_code(value)
        if isinstance(value, str):
            cleaned = value.strip().lower()
            digits = cleaned[1:] if cleaned.startswith("-") else cleaned
            if digits.isdecimal():
                return cls.from_code(int(cleaned))
            try:
                return cls(cleaned)
            except ValueError:
                return cls.OTHER
        return cls.OTHER


_LEGACY_CODES: dict[int, MessageKind] = {
    0: MessageKind.TEXT,
    1: MessageKind.PHOTO,
    2: MessageKind.VIDEO,
    3: MessageKind.DOCUMENT,
    4: MessageKind.STICKER,
    5: MessageKind.VOICE,
    6: MessageKind.ANIMATION,
}


@dataclass(frozen=True, slots=True)
class Record:
    """One archived chat message.

    Attributes:
        chat_id: Scope key; the chat (group) the message belongs to.
        message_id: Per-chat monotonic ordinal.
        user_id: Author, when known.
        text: Body text or caption, possibly empty.
        date: Unix epoch seconds.
        kind: Message kind.
    """

    chat_id: int
    message_id: int
    user_id: int | None
    text: str
    date: int
    kind: MessageKind = MessageKind.TEXT

    @property
    def document_id(self) -> str:
        return document_id(self.chat_id, self.message_id)

    def to_document(self) -> dict[str, Any]:
        """Payload stored in the index; ``user_id`` is omitted when unknown."""
        doc: dict[str, Any] = {
            "message_id": self.message_id,
            "chat_id": self.chat_id,
        }
        if self.user_id is not None:
            doc["user_id"] = self.user_id
        doc["text"] = self.text
        doc["date"] = self.date
        doc["message_type"] = self.kind.value
        return doc

    @classmethod
    def from_document(cls, source: dict[str, Any]) -> Record:
        """Rebuild a record from an indexed ``_source``.

        Raises:
            KeyError: If a required field is absent.
            ValueError: If a numeric field is not numeric.
        """
        user_id = source.get("user_id")
        return cls(
            chat_id=int(source["chat_id"]),
            message_id=int(source["message_id"]),
            user_id=int(user_id) if user_id is not None else None,
            text=str(source.get("text") or ""),
            date=int(source["date"]),
            kind=MessageKind.parse(source.get("message_type", MessageKind.TEXT)),
        )


__all__ = ["MessageKind", "Record"]

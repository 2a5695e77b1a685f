"""
Message recorder: turns inbound group messages into archive records.

The chat transport adapter converts whatever its library delivers into an
:class:`InboundMessage`; from there the recorder decides whether the message
is archived, classifies it and hands the record to the live indexer.

    * Only group and supergroup messages are archived.
    * The archived text is the message text, or the media caption when
      there is no text.  Messages with neither are not archived.
    * Every sender with a user id refreshes the user cache, archived or not.
"""

from __future__ import annotations

from dataclasses import dataclass

from chatarchive.chat.user_cache import UserCache
from chatarchive.core.logging import get_logger
from chatarchive.core.models import MessageKind, Record
from chatarchive.indexing.batch_indexer import BatchIndexer

logger = get_logger(__name__)

ARCHIVED_CHAT_TYPES = frozenset({"group", "supergroup"})


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """Transport-neutral view of one incoming chat message."""

    chat_id: int
    chat_type: str
    message_id: int
    date: int
    user_id: int | None = None
    username: str | None = None
    first_name: str = ""
    last_name: str | None = None
    text: str | None = None
    caption: str | None = None
    has_photo: bool = False
    has_video: bool = False
    has_document: bool = False
    has_sticker: bool = False
    has_voice: bool = False
    has_animation: bool = False

    @property
    def display_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


def classify(msg: InboundMessage) -> MessageKind:
    if msg.text is not None:
        return MessageKind.TEXT
    if msg.has_photo:
        return MessageKind.PHOTO
    if msg.has_video:
        return MessageKind.VIDEO
    if msg.has_document:
        return MessageKind.DOCUMENT
    if msg.has_sticker:
        return MessageKind.STICKER
    if msg.has_voice:
        return MessageKind.VOICE
    if msg.has_animation:
        return MessageKind.ANIMATION
    return MessageKind.OTHER


def to_record(msg: InboundMessage) -> Record | None:
    """Archive record for *msg*, or None if it is not archived."""
    if msg.chat_type not in ARCHIVED_CHAT_TYPES:
        return None
    text = msg.text or msg.caption or ""
    if not text:
        return None
    return Record(
        chat_id=msg.chat_id,
        message_id=msg.message_id,
        user_id=msg.user_id,
        text=text,
        date=msg.date,
        kind=classify(msg),
    )


class MessageRecorder:
    """Feeds the user cache and the live indexer from inbound messages."""

    def __init__(self, indexer: BatchIndexer, user_cache: UserCache) -> None:
        self._indexer = indexer
        self._user_cache = user_cache

    def remember_sender(self, msg: InboundMessage) -> None:
        if msg.user_id is not None:
            self._user_cache.update(msg.user_id, msg.username, msg.display_name)

    async def record(self, msg: InboundMessage) -> bool:
        """Archive *msg* if eligible; returns whether it was enqueued."""
        self.remember_sender(msg)
        record = to_record(msg)
        if record is None:
            return False
        await self._indexer.index(record)
        logger.debug("recorder.enqueued", document_id=record.document_id, kind=record.kind.value)
        return True


__all__ = ["ARCHIVED_CHAT_TYPES", "InboundMessage", "MessageRecorder", "classify", "to_record"]

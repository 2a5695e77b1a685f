"""
Chat handlers: search command, keyboard callbacks and update dispatch.

The handlers return :class:`Reply` values instead of talking to a chat API;
:class:`ChatDispatcher` routes updates the way the bot does in production
and delivers replies through any object implementing :class:`ChatTransport`.

Routing:
    ::

        callback press ─────► answer_callback → handle_callback → edit_message
        /search, /s <query> ─► handle_search → send_message
        /help, /h ──────────► send_message(HELP_TEXT)
        anything else ──────► MessageRecorder.record (archive)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from chatarchive.chat.recorder import InboundMessage, MessageRecorder
from chatarchive.chat.render import Keyboard, build_keyboard, format_results, html_escape, parse_search_query
from chatarchive.chat.state_token import CallbackAction, SearchState, decode_callback
from chatarchive.chat.user_cache import UserCache
from chatarchive.core.errors import StateTokenError, StoreError
from chatarchive.core.logging import get_logger
from chatarchive.search.client import SearchClient

logger = get_logger(__name__)

USAGE_TEXT = "Usage: /search <keyword>\n\nExamples:\n/search hello\n/search @username keyword"
HELP_TEXT = (
    "Available commands:\n"
    "/search, /s <keyword> - search this group's messages\n"
    "/help, /h - show this help"
)
SEARCH_FAILED_TEXT = "Search is unavailable right now, please try again later."

SEARCH_COMMANDS = frozenset({"/search", "/s"})
HELP_COMMANDS = frozenset({"/help", "/h"})


@dataclass(frozen=True, slots=True)
class Reply:
    text: str
    keyboard: Keyboard | None = None
    parse_mode: str = "HTML"


@runtime_checkable
class ChatTransport(Protocol):
    """The slice of a chat API the bot needs."""

    async def send_message(self, chat_id: int, reply: Reply) -> None: ...

    async def edit_message(self, chat_id: int, message_id: int, reply: Reply) -> None: ...

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None: ...


class SearchHandler:
    """Runs searches for chat commands and keyboard presses."""

    def __init__(
        self,
        search_client: SearchClient,
        user_cache: UserCache,
        *,
        default_page_size: int = 5,
        max_page_size: int = 20,
    ) -> None:
        self._client = search_client
        self._user_cache = user_cache
        self._page_size = max(1, min(default_page_size, max_page_size))

    @property
    def page_size(self) -> int:
        return self._page_size

    async def handle_search(self, chat_id: int, query: str, now: int | None = None) -> Reply:
        """Reply to ``/search <query>``."""
        if not query.strip():
            return Reply(USAGE_TEXT)

        keyword, username = parse_search_query(query)
        user_id = None
        if username:
            user_id = self._user_cache.resolve_username(username)
            if user_id is None:
                return Reply(f"User @{html_escape(username)} has not been seen in this chat yet.")
        if not keyword and user_id is None:
            return Reply(USAGE_TEXT)

        state = SearchState(keyword=keyword or None, user_id=user_id)
        return await self._run(chat_id, state, now)

    async def handle_callback(self, chat_id: int, data: str, now: int | None = None) -> Reply | None:
        """Reply to a keyboard press; None when there is nothing to update."""
        try:
            action, state = decode_callback(data)
        except StateTokenError as exc:
            logger.warning("chat.callback_malformed", chat_id=chat_id, error=exc.message)
            return None
        if action is CallbackAction.NOOP or state is None:
            return None
        return await self._run(chat_id, state, now)

    async def _run(self, chat_id: int, state: SearchState, now: int | None) -> Reply:
        params = state.to_params(chat_id, self._page_size, now if now is not None else int(time.time()))
        try:
            result = await self._client.search(params)
        except (StoreError, ConnectionError, TimeoutError) as exc:
            logger.error("chat.search_failed", chat_id=chat_id, error=str(exc))
            return Reply(SEARCH_FAILED_TEXT)
        return Reply(
            text=format_results(result, self._user_cache, self._page_size),
            keyboard=build_keyboard(result, state),
        )


def _split_command(text: str) -> tuple[str, str]:
    head, _, rest = text.strip().partition(" ")
    # "/search@MyBot" in groups with several bots
    command = head.split("@", 1)[0].lower()
    return command, rest.strip()


class ChatDispatcher:
    """Routes inbound updates to the search handler or the recorder."""

    def __init__(self, transport: ChatTransport, handler: SearchHandler, recorder: MessageRecorder) -> None:
        self._transport = transport
        self._handler = handler
        self._recorder = recorder

    async def on_message(self, msg: InboundMessage) -> None:
        if msg.text and msg.text.startswith("/"):
            command, args = _split_command(msg.text)
            if command in SEARCH_COMMANDS:
                self._recorder.remember_sender(msg)
                reply = await self._handler.handle_search(msg.chat_id, args)
                await self._transport.send_message(msg.chat_id, reply)
                return
            if command in HELP_COMMANDS:
                self._recorder.remember_sender(msg)
                await self._transport.send_message(msg.chat_id, Reply(HELP_TEXT, parse_mode=""))
                return
        await self._recorder.record(msg)

    async def on_callback(
        self,
        callback_id: str,
        chat_id: int,
        message_id: int | None,
        data: str | None,
        now: int | None = None,
    ) -> None:
        await self._transport.answer_callback(callback_id)
        if not data or message_id is None:
            return
        reply = await self._handler.handle_callback(chat_id, data, now)
        if reply is not None:
            await self._transport.edit_message(chat_id, message_id, reply)


__all__ = [
    "ChatDispatcher",
    "ChatTransport",
    "HELP_TEXT",
    "Reply",
    "SearchHandler",
    "USAGE_TEXT",
]

"""Transport-agnostic chat layer.

Architecture::

    recorder.py      InboundMessage, classify, MessageRecorder
    user_cache.py    UserCache (username <-> user id)
    state_token.py   SearchState, encode_callback / decode_callback
    render.py        result text, message links, inline keyboards
    handlers.py      SearchHandler, ChatDispatcher, ChatTransport, Reply
"""

from chatarchive.chat.handlers import ChatDispatcher, ChatTransport, Reply, SearchHandler
from chatarchive.chat.recorder import InboundMessage, MessageRecorder, classify, to_record
from chatarchive.chat.state_token import CallbackAction, SearchState, decode_callback, encode_callback
from chatarchive.chat.user_cache import UserCache

__all__ = [
    "CallbackAction",
    "ChatDispatcher",
    "ChatTransport",
    "InboundMessage",
    "MessageRecorder",
    "Reply",
    "SearchHandler",
    "SearchState",
    "UserCache",
    "classify",
    "decode_callback",
    "encode_callback",
    "to_record",
]

"""
Deterministic document identifiers.

Both the live indexer and the migration backfill write with
``index``-by-id semantics, so the identifier is the only thing that keeps a
message from being stored twice.  It is derived from the natural key
``(chat_id, message_id)`` and nothing else: no clock, no process state, no
randomness.

Examples:
    >>> document_id(-1001234567890, 42)
    '-1001234567890_42'
    >>> parse_document_id('-1001234567890_42')
    (-1001234567890, 42)
"""

from __future__ import annotations


def document_id(chat_id: int, message_id: int) -> str:
    """Return the document id for a message: ``"{chat_id}_{message_id}"``."""
    return f"{chat_id}_{message_id}"


def parse_document_id(doc_id: str) -> tuple[int, int]:
    """Split a document id back into ``(chat_id, message_id)``.

    Raises:
        ValueError: If *doc_id* was not produced by :func:`document_id`.
    """
    chat_part, sep, message_part = doc_id.rpartition("_")
    if not sep or not chat_part:
        raise ValueError(f"Malformed document id: {doc_id!r}")
    try:
        return int(chat_part), int(message_part)
    except ValueError as exc:
        raise ValueError(f"Malformed document id: {doc_id!r}") from exc


__all__ = ["document_id", "parse_document_id"]

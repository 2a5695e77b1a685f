"""Core primitives shared by every write and read path.

Architecture::

    identity.py   Deterministic document ids ("{chat_id}_{message_id}")
    models.py     Record + MessageKind (normalized message)
    errors.py     Structured error hierarchy (ArchiveError, StoreError, ...)
    logging.py    structlog configuration
    settings.py   pydantic-settings configuration (env + .env + TOML)
"""

from chatarchive.core.errors import (
    ArchiveError,
    ConfigError,
    IndexNotFoundError,
    LegacyParseError,
    LegacyStoreError,
    StoreError,
    StoreUnavailableError,
    WatermarkError,
)
from chatarchive.core.identity import document_id, parse_document_id
from chatarchive.core.models import MessageKind, Record

__all__ = [
    "ArchiveError",
    "ConfigError",
    "IndexNotFoundError",
    "LegacyParseError",
    "LegacyStoreError",
    "StoreError",
    "StoreUnavailableError",
    "WatermarkError",
    "document_id",
    "parse_document_id",
    "MessageKind",
    "Record",
]

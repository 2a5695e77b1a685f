"""
Structured error types for chat-archive.

Every failure the archive can hit falls into one of four buckets, and the
bucket decides whether it becomes a counter or a crash:

- **Connectivity:** document store or legacy store unreachable.  Fatal to
  the current batch or scope, never to the process.
- **Per-item store errors:** a single document rejected inside an otherwise
  successful bulk response.  Counted, not raised.
- **Parse errors:** a legacy record that cannot be normalized.  Counted,
  skipped, never abort a batch.
- **Configuration errors:** bad settings or credentials at startup.  Fatal
  to process start.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                      ArchiveError                         │
        │    (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────┤
        │  StoreError          LegacyStoreError    ConfigError      │
        │  (STORE)             (LEGACY)            (CONFIG)         │
        │     │                                                     │
        │  IndexNotFoundError  ParseError          WatermarkError   │
        │  StoreUnavailable    LegacyParseError    StateTokenError  │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> err = StoreUnavailableError("connection refused")
    >>> err.retryable
    True
    >>> err.with_context(index="telegram_messages").context.index
    'telegram_messages'

Tags:
    error-handling, exception-hierarchy, chat-archive
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    STORE = "STORE"              # Document store (Elasticsearch)
    LEGACY = "LEGACY"            # Legacy record store (MongoDB)
    PARSE = "PARSE"              # Legacy record normalization
    CONFIG = "CONFIG"            # Missing / invalid settings
    MIGRATION = "MIGRATION"      # Migration planning failures
    TRANSPORT = "TRANSPORT"      # Chat transport payloads
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging."""

    index: str | None = None
    chat_id: int | None = None
    message_id: int | None = None
    field: str | None = None
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["index", "chat_id", "message_id", "field"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ArchiveError(Exception):
    """
    Base exception for all chat-archive errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    can decide between counting and propagating without isinstance ladders.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ArchiveError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreError("bulk failed").with_context(index="telegram_messages")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DOCUMENT STORE ERRORS
# =============================================================================


class StoreError(ArchiveError):
    """Error talking to the document store."""

    default_category = ErrorCategory.STORE
    default_retryable = False

    def __init__(self, message: str, *, status: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status is not None:
            result["status"] = self.status
        return result


class IndexNotFoundError(StoreError):
    """Target index does not exist yet."""

    pass


class StoreUnavailableError(StoreError):
    """Connection refused, timed out, or cluster unavailable."""

    default_retryable = True


# =============================================================================
# LEGACY STORE / PARSING ERRORS
# =============================================================================


class LegacyStoreError(ArchiveError):
    """Error counting or reading from the legacy record store."""

    default_category = ErrorCategory.LEGACY
    default_retryable = True


class ParseError(ArchiveError):
    """Error normalizing source data."""

    default_category = ErrorCategory.PARSE
    default_retryable = False


class LegacyParseError(ParseError):
    """A legacy record is missing a required field or has an unusable shape."""

    def __init__(self, field_name: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Missing or invalid field: {field_name}", **kwargs)
        self.context.field = field_name


# =============================================================================
# CONFIGURATION / MIGRATION / TRANSPORT ERRORS
# =============================================================================


class ConfigError(ArchiveError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class WatermarkError(ArchiveError):
    """Watermarks could not be resolved; migration must not start."""

    default_category = ErrorCategory.MIGRATION
    default_retryable = False


class StateTokenError(ArchiveError):
    """A callback payload could not be encoded or decoded."""

    default_category = ErrorCategory.TRANSPORT
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, ArchiveError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ArchiveError",
    "StoreError",
    "IndexNotFoundError",
    "StoreUnavailableError",
    "LegacyStoreError",
    "ParseError",
    "LegacyParseError",
    "ConfigError",
    "WatermarkError",
    "StateTokenError",
    "is_retryable",
]

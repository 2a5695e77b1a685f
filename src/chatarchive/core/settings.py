"""
Centralized settings for chat-archive.

One validated, cached settings object covers the live indexer, search, and
the migration job.  Values resolve in this order (highest first):

1. Keyword arguments (tests)
2. ``ARCHIVE_*`` environment variables, nested with ``__``
   (e.g. ``ARCHIVE_ELASTICSEARCH__URL``, ``ARCHIVE_MIGRATION__DRY_RUN``)
3. ``.env`` file
4. TOML file: ``$ARCHIVE_CONFIG_FILE`` or ``./config.toml`` when present

Example ``config.toml``::

    [elasticsearch]
    url = "http://localhost:9200"
    index_name = "telegram_messages"

    [indexer]
    batch_size = 50
    flush_interval_ms = 5000

Tags:
    configuration, settings, pydantic, environment, toml, chat-archive
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, ValidationError, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from chatarchive.core.errors import ConfigError

DEFAULT_CONFIG_FILE = "config.toml"


class ElasticsearchSettings(BaseModel):
    url: str = "http://localhost:9200"
    index_name: str = "telegram_messages"
    api_key: SecretStr | None = None
    username: str | None = None
    password: SecretStr | None = None
    request_timeout: float = Field(default=30.0, gt=0)
    text_analyzer: str = "ik_max_word"
    search_analyzer: str = "ik_smart"
    number_of_shards: int = Field(default=1, ge=1)
    number_of_replicas: int = Field(default=0, ge=0)


class IndexerSettings(BaseModel):
    batch_size: int = Field(default=50, ge=1)
    flush_interval_ms: int = Field(default=5000, ge=1)
    queue_factor: int = Field(default=4, ge=1, description="Queue capacity as a multiple of batch_size")

    @property
    def flush_interval(self) -> float:
        return self.flush_interval_ms / 1000.0

    @property
    def queue_capacity(self) -> int:
        return self.batch_size * self.queue_factor


class SearchSettings(BaseModel):
    default_page_size: int = Field(default=5, ge=1)
    max_page_size: int = Field(default=20, ge=1)

    @model_validator(mode="after")
    def _page_sizes(self) -> SearchSettings:
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self


class MongoSettings(BaseModel):
    uri: SecretStr = SecretStr("mongodb://localhost:27017")
    database: str = "bot"
    collection: str = "messages"
    cursor_batch_size: int = Field(default=1000, ge=1)
    server_selection_timeout_ms: int = Field(default=10000, ge=1)


class MigrationSettings(BaseModel):
    batch_size: int = Field(default=500, ge=1)
    dry_run: bool = False
    kind_filter: int | None = Field(
        default=None,
        description="Only migrate legacy records with this msg_type code (None = all kinds)",
    )
    max_scopes: int = Field(default=10000, ge=1)


class ArchiveSettings(BaseSettings):
    """chat-archive configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ARCHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Stores ───────────────────────────────────────────────────
    elasticsearch: ElasticsearchSettings = Field(default_factory=ElasticsearchSettings)
    mongodb: MongoSettings = Field(default_factory=MongoSettings)

    # ── Pipelines ────────────────────────────────────────────────
    indexer: IndexerSettings = Field(default_factory=IndexerSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json | console | auto")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_file = Path(os.environ.get("ARCHIVE_CONFIG_FILE", DEFAULT_CONFIG_FILE))
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
        )

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == "json":
            return True
        if self.log_format == "console":
            return False
        return None

    def redacted(self) -> dict:
        """Settings as a plain dict with secrets masked (for ``config show``)."""
        return self.model_dump(mode="json")


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, ArchiveSettings] = {}


def get_settings(*, _force_reload: bool = False, **overrides) -> ArchiveSettings:
    """Load, validate, and cache :class:`ArchiveSettings`.

    Raises:
        ConfigError: If any value fails validation.
    """
    if overrides:
        return _load(**overrides)
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = _load()
    return _settings_cache["default"]


def reset_settings() -> None:
    """Drop the cached settings (tests)."""
    _settings_cache.clear()


def _load(**overrides) -> ArchiveSettings:
    try:
        return ArchiveSettings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}", cause=exc) from exc


__all__ = [
    "ArchiveSettings",
    "ElasticsearchSettings",
    "IndexerSettings",
    "MigrationSettings",
    "MongoSettings",
    "SearchSettings",
    "get_settings",
    "reset_settings",
]

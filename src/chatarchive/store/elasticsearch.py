"""
Elasticsearch document store adapter.

Wraps :class:`elasticsearch.AsyncElasticsearch` behind the
:class:`~chatarchive.store.protocols.DocumentStore` protocol and maps client
exceptions onto the archive's error hierarchy:

==============================================  ==========================
client exception                                archive error
==============================================  ==========================
``NotFoundError`` (404)                         ``IndexNotFoundError``
``elastic_transport.TransportError``            ``StoreUnavailableError``
  (connection refused, timeout)
any other ``ApiError`` (4xx/5xx)                ``StoreError``
==============================================  ==========================
"""

from __future__ import annotations

from typing import Any

from elastic_transport import TransportError
from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError

from chatarchive.core.errors import IndexNotFoundError, StoreError, StoreUnavailableError
from chatarchive.core.logging import get_logger
from chatarchive.core.settings import ElasticsearchSettings
from chatarchive.store.mapping import index_body

logger = get_logger(__name__)


def _translate(exc: Exception, index: str, operation: str) -> StoreError:
    if isinstance(exc, NotFoundError):
        return IndexNotFoundError(f"Index {index} not found", status=404, cause=exc).with_context(
            index=index, operation=operation
        )
    if isinstance(exc, ApiError):
        return StoreError(
            f"{operation} failed ({exc.meta.status}): {exc.message}",
            status=exc.meta.status,
            cause=exc,
        ).with_context(index=index, operation=operation)
    return StoreUnavailableError(f"{operation} request failed: {exc}", cause=exc).with_context(
        index=index, operation=operation
    )


class ElasticsearchStore:
    """Async Elasticsearch implementation of ``DocumentStore``."""

    def __init__(self, client: AsyncElasticsearch, settings: ElasticsearchSettings | None = None) -> None:
        self._client = client
        self._settings = settings or ElasticsearchSettings()

    @classmethod
    def from_settings(cls, settings: ElasticsearchSettings) -> ElasticsearchStore:
        kwargs: dict[str, Any] = {"request_timeout": settings.request_timeout}
        if settings.api_key is not None:
            kwargs["api_key"] = settings.api_key.get_secret_value()
        elif settings.username and settings.password is not None:
            kwargs["basic_auth"] = (settings.username, settings.password.get_secret_value())
        client = AsyncElasticsearch(hosts=[settings.url], **kwargs)
        return cls(client, settings)

    @property
    def client(self) -> AsyncElasticsearch:
        return self._client

    async def index_exists(self, index: str) -> bool:
        try:
            response = await self._client.indices.exists(index=index)
        except (ApiError, TransportError) as exc:
            raise _translate(exc, index, "exists") from exc
        return bool(response)

    async def create_index(self, index: str, body: dict[str, Any]) -> None:
        try:
            await self._client.indices.create(
                index=index,
                settings=body.get("settings"),
                mappings=body.get("mappings"),
            )
        except ApiError as exc:
            if "resource_already_exists" in str(exc):
                logger.info("store.index_exists", index=index)
                return
            raise _translate(exc, index, "create_index") from exc
        except TransportError as exc:
            raise _translate(exc, index, "create_index") from exc
        logger.info("store.index_created", index=index)

    async def ensure_index(self, index: str) -> bool:
        """Create *index* with the message mapping if absent.

        Returns:
            True if the index was created by this call.
        """
        if await self.index_exists(index):
            return False
        await self.create_index(index, index_body(self._settings))
        return True

    async def bulk(self, index: str, operations: list[dict[str, Any]]) -> dict[str, Any]:
        try:
            response = await self._client.bulk(index=index, operations=operations)
        except (ApiError, TransportError) as exc:
            raise _translate(exc, index, "bulk") from exc
        return dict(response.body)

    async def search(
        self,
        index: str,
        body: dict[str, Any],
        *,
        from_: int = 0,
        size: int = 10,
    ) -> dict[str, Any]:
        try:
            response = await self._client.search(index=index, from_=from_, size=size, **body)
        except (ApiError, TransportError) as exc:
            raise _translate(exc, index, "search") from exc
        return dict(response.body)

    async def close(self) -> None:
        await self._client.close()


__all__ = ["ElasticsearchStore"]

"""Index settings and mappings for the message index."""

from __future__ import annotations

from typing import Any

from chatarchive.core.settings import ElasticsearchSettings


def index_body(settings: ElasticsearchSettings | None = None) -> dict[str, Any]:
    """Settings + mappings used when the index is created.

    The IK plugin registers ``ik_max_word`` and ``ik_smart`` as built-in
    analyzers, so they are referenced directly without a custom analysis
    section.  Both are configurable for clusters without the plugin.
    """
    settings = settings or ElasticsearchSettings()
    return {
        "settings": {
            "number_of_shards": settings.number_of_shards,
            "number_of_replicas": settings.number_of_replicas,
        },
        "mappings": {
            "properties": {
                "message_id": {"type": "long"},
                "chat_id": {"type": "long"},
                "user_id": {"type": "long"},
                "text": {
                    "type": "text",
                    "analyzer": settings.text_analyzer,
                    "search_analyzer": settings.search_analyzer,
                },
                "date": {"type": "date", "format": "epoch_second"},
                "message_type": {"type": "keyword"},
            }
        },
    }


__all__ = ["index_body"]

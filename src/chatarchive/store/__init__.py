"""Document store and legacy store adapters.

Architecture::

    protocols.py       DocumentStore / LegacyStore protocols
    mapping.py         Index settings + mappings
    elasticsearch.py   ElasticsearchStore (AsyncElasticsearch)
    legacy.py          MongoLegacyStore (motor)

The adapters are imported lazily by callers so that code depending only on
the protocols does not pull in the drivers.
"""

from chatarchive.store.protocols import DocumentStore, LegacyStore

__all__ = ["DocumentStore", "LegacyStore"]

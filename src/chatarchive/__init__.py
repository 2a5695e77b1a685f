"""
chat-archive - searchable archive of group chat messages.

Subpackages:
- chatarchive.core: records, identity, errors, logging, settings
- chatarchive.store: Elasticsearch document store and MongoDB legacy store
- chatarchive.indexing: bulk writer and the live batch indexer
- chatarchive.migration: watermark resolution and backfill from the legacy store
- chatarchive.search: query building and result parsing
- chatarchive.chat: transport-agnostic chat commands, callbacks and rendering
- chatarchive.cli: ``chat-archive`` command line
"""

__version__ = "0.1.0"

"""
Shared pytest fixtures and configuration for chat-archive tests.

This module provides:
- Settings isolation (no stray ``ARCHIVE_*`` env vars, no config file)
- In-memory document and legacy stores
- Auto-marking of tests by location
"""

from pathlib import Path

import pytest

from chatarchive.core.settings import reset_settings
from chatarchive.indexing.bulk_writer import BulkWriter
from tests._support.fakes import FakeDocumentStore, FakeLegacyStore

INDEX = "messages"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run every test with default settings and no config file."""
    import os

    for key in list(os.environ):
        if key.startswith("ARCHIVE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ARCHIVE_CONFIG_FILE", str(tmp_path / "absent.toml"))
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def legacy() -> FakeLegacyStore:
    return FakeLegacyStore()


@pytest.fixture
def writer(store) -> BulkWriter:
    return BulkWriter(store, INDEX)

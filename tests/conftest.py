"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from syncstate.record_store import SyncRecordStore
from syncstate.store.memory_store import InMemoryDocumentStore


logger = logging.getLogger(__name__)


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires a running store)")


# ============================================================================
# Fixtures
# ============================================================================

class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def document_store():
    """Fixture providing an indexed in-memory document store."""
    store = InMemoryDocumentStore()
    store.ensure_unique_index(["entity_type", "entity_id"])
    yield store
    store.close()


@pytest.fixture
def record_store(document_store):
    """Fixture providing a last-writer-wins record store."""
    return SyncRecordStore(document_store)


@pytest.fixture
def versioned_record_store(document_store):
    """Fixture providing a record store with optimistic concurrency."""
    return SyncRecordStore(document_store, optimistic_concurrency=True)


@pytest.fixture
def clock():
    """Fixture providing a deterministic clock."""
    return FakeClock()


@pytest.fixture(autouse=True)
def clear_syncstate_env(monkeypatch):
    """Keep SYNCSTATE_* variables out of tests, including ones loaded from .env files."""
    for key in list(os.environ):
        if key.startswith("SYNCSTATE_"):
            monkeypatch.delenv(key, raising=False)
    yield
    # Values set by load_dotenv are not tracked by monkeypatch
    for key in list(os.environ):
        if key.startswith("SYNCSTATE_"):
            del os.environ[key]

"""
Shared fixtures: both store backends and engines built around them.
"""

import pytest

from lor_registry.core.store import InMemoryRegistryStore, SQLiteRegistryStore
from lor_registry.core.workflow import WorkflowEngine

OWNER = "0xOwner"


@pytest.fixture
def memory_store():
    """Fresh in-memory store for each test."""
    return InMemoryRegistryStore(owner=OWNER)


@pytest.fixture
def sqlite_store(tmp_path):
    """Fresh SQLite store in a temporary directory."""
    return SQLiteRegistryStore(db_path=str(tmp_path / "registry.db"), owner=OWNER)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Run the test against each store backend."""
    if request.param == "memory":
        return InMemoryRegistryStore(owner=OWNER)
    return SQLiteRegistryStore(db_path=str(tmp_path / "registry.db"), owner=OWNER)


@pytest.fixture
def engine(store):
    """Workflow engine with retries that do not sleep."""
    return WorkflowEngine(store, read_retry_attempts=3, read_retry_delay=0)

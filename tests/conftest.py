"""Shared fixtures: an in-memory store and managers wired to it."""

import pytest

from sharedmap.config import MapConfig
from sharedmap.lifecycle import ReferenceManager
from sharedmap.logging import Logger
from sharedmap.store.memory import MemoryStore
from sharedmap.sync import LockRegistry, LockScope


@pytest.fixture
def store() -> MemoryStore:
    """Return an empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def manager(store: MemoryStore) -> ReferenceManager:
    """Return a manager over the in-memory store with its own lock registry."""
    return ReferenceManager(store, config=MapConfig(backend="memory"), registry=LockRegistry(), logger=Logger())


@pytest.fixture
def atomic_manager(store: MemoryStore) -> ReferenceManager:
    """Return a manager that pops and counts references in one round trip."""
    config = MapConfig(backend="memory", atomic_release=True, lock_scope=LockScope.IDENTIFIER)
    return ReferenceManager(store, config=config, logger=Logger())

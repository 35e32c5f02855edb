"""sharedmap — reference-counted maps shared through a key-value store.

Re-exports public symbols so callers can write::

    from sharedmap import MapConfig, ReferenceManager, SharedMap

Typical usage::

    manager = ReferenceManager.from_config(MapConfig(redis_url="redis://cache:6379/0"))

    with manager.open() as orders:
        orders["o-1"] = "pending"
        peer = manager.open(orders.identifier)   # another reference
        assert peer["o-1"] == "pending"
        peer.release()
    # last reference gone: the map has been evicted from the store
"""

from sharedmap.config import MapConfig
from sharedmap.errors import (
    HandleReleasedError,
    InvalidArgumentError,
    SharedMapError,
    StoreError,
)
from sharedmap.handle import HandleState, SharedMap
from sharedmap.lifecycle import ReferenceManager, default_manager, set_default_manager
from sharedmap.logging import LogEntry, Logger, LogLevel
from sharedmap.store import MemoryStore, RedisStore, StoreClient, available_backends, create_store
from sharedmap.sync import LockRegistry, LockScope, ReadWriteLock

__all__ = [
    "HandleReleasedError",
    "HandleState",
    "InvalidArgumentError",
    "LockRegistry",
    "LockScope",
    "LogEntry",
    "LogLevel",
    "Logger",
    "MapConfig",
    "MemoryStore",
    "ReadWriteLock",
    "RedisStore",
    "ReferenceManager",
    "SharedMap",
    "SharedMapError",
    "StoreClient",
    "StoreError",
    "available_backends",
    "create_store",
    "default_manager",
    "set_default_manager",
]

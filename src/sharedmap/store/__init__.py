"""Store subsystem — clients for the key-value server holding map data.

Re-exports public symbols so callers can write::

    from sharedmap.store import MemoryStore, RedisStore, create_store

``create_store`` picks a backend by name, so switching between a real
server and the process-local store is a one-word configuration change::

    store = create_store(MapConfig(backend="memory"))
    store = create_store(MapConfig(backend="redis", redis_url="redis://cache:6379/2"))
"""

from collections.abc import Callable

from sharedmap.config import MapConfig
from sharedmap.errors import StoreError
from sharedmap.store.base import StoreClient
from sharedmap.store.memory import MemoryStore
from sharedmap.store.redis_store import RedisStore

_BACKENDS: dict[str, Callable[[MapConfig], StoreClient]] = {
    "memory": lambda _config: MemoryStore(),
    "redis": lambda config: RedisStore.from_url(config.redis_url),
}


def available_backends() -> list[str]:
    """Return the names accepted by ``create_store``."""
    return sorted(_BACKENDS)


def create_store(config: MapConfig) -> StoreClient:
    """Create the store client selected by ``config.backend``.

    Raises:
        StoreError: If the backend name is unknown.

    """
    factory = _BACKENDS.get(config.backend)
    if factory is None:
        msg = f"Unknown store backend: {config.backend!r} (expected one of {available_backends()})"
        raise StoreError(msg)
    return factory(config)


__all__ = [
    "MemoryStore",
    "RedisStore",
    "StoreClient",
    "available_backends",
    "create_store",
]

"""Reference lifecycle — deciding when a shared map can be evicted.

Many processes may hold handles on the same identifier, and none of
them is in charge.  The reference count therefore lives in the store
itself, next to the data:

    ``<identifier>``        hash — the map contents.
    ``lock#<identifier>``   list — one token per live handle.

Opening a handle pushes a token.  Releasing a handle pops one and then
reads the list length; whoever observes the count reach zero clears
the hash.  Think of it like the last person to leave a meeting room
wiping the whiteboard: nobody is assigned the job, it simply falls to
whoever walks out last.

Known race:
    The pop, the length read, and the clear are three separate store
    calls.  A handle opened by another process after the pop but
    before the clear can find its map emptied underneath it.  The
    window is narrow and accepted.  ``MapConfig.atomic_release``
    merges the pop and the length read into one transaction, which
    shrinks the window but does not close it, because the clear is
    still a separate step.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sharedmap.config import MapConfig
from sharedmap.errors import InvalidArgumentError, require_str
from sharedmap.logging import Logger, LogLevel
from sharedmap.store import create_store
from sharedmap.sync import LockRegistry, LockScope, ReadWriteLock, default_registry

if TYPE_CHECKING:
    from sharedmap.handle import SharedMap
    from sharedmap.store.base import StoreClient

LOG_SOURCE = "lifecycle"
DEFAULT_LOG_ENTRIES = 10_000


def require_identifier(identifier: object) -> str:
    """Return *identifier* if it is a non-empty string.

    Raises:
        InvalidArgumentError: If the identifier is None, not a string,
            or empty.

    """
    value = require_str(identifier, what="identifier")
    if not value:
        msg = "Argument 'identifier' can't be empty"
        raise InvalidArgumentError(msg)
    return value


class ReferenceManager:
    """Open, count, and release references to shared maps.

    A manager bundles the store client, the process-local lock
    registry, the configuration, and an audit log.  Handles delegate
    every store call to their manager, so all handles created through
    one manager share one guard.
    """

    def __init__(
        self,
        store: StoreClient,
        *,
        config: MapConfig | None = None,
        registry: LockRegistry | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a manager over an existing store client.

        Args:
            store: Client for the key-value server.
            config: Naming and release settings; defaults apply if None.
            registry: Lock registry; defaults to the process-wide one
                for process scope or a fresh one for identifier scope.
            logger: Audit log; a bounded one is created if None.

        """
        self._store = store
        self._config = config if config is not None else MapConfig()
        if registry is None:
            if self._config.lock_scope is LockScope.PROCESS:
                registry = default_registry()
            else:
                registry = LockRegistry(scope=self._config.lock_scope)
        self._registry = registry
        self._logger = logger if logger is not None else Logger(max_entries=DEFAULT_LOG_ENTRIES)

    @classmethod
    def from_config(cls, config: MapConfig | None = None) -> ReferenceManager:
        """Create a manager and its store client from configuration.

        Args:
            config: Settings to use; read from the environment if None.

        Returns:
            A manager wired to the configured backend.

        """
        if config is None:
            config = MapConfig.from_env()
        return cls(create_store(config), config=config)

    @property
    def store(self) -> StoreClient:
        """Return the store client."""
        return self._store

    @property
    def config(self) -> MapConfig:
        """Return the configuration."""
        return self._config

    @property
    def registry(self) -> LockRegistry:
        """Return the lock registry."""
        return self._registry

    @property
    def logger(self) -> Logger:
        """Return the audit log."""
        return self._logger

    def lock_for(self, identifier: str) -> ReadWriteLock:
        """Return the guard currently registered for *identifier* (inspection only)."""
        return self._registry.lock_for(identifier)

    def ref_list_name(self, identifier: str) -> str:
        """Return the name of the reference list for *identifier*."""
        return self._config.ref_list_name(require_identifier(identifier))

    @contextmanager
    def _logged(self, action: str, identifier: str) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            self._logger.log(
                LogLevel.ERROR,
                f"{action} failed: {type(exc).__name__}: {exc}",
                source=LOG_SOURCE,
                identifier=identifier,
            )
            raise

    # -- Lifecycle operations ------------------------------------------------

    def open(self, identifier: str | None = None) -> SharedMap:
        """Open a new handle on *identifier* (a fresh map if None).

        Each call adds exactly one reference, even for an identifier
        that is already open.
        """
        from sharedmap.handle import SharedMap  # noqa: PLC0415

        return SharedMap(identifier, manager=self)

    def add_reference(self, identifier: str) -> None:
        """Push one token onto the reference list of *identifier*.

        Raises:
            InvalidArgumentError: If the identifier is invalid.

        """
        list_name = self.ref_list_name(identifier)
        with self._logged("open", identifier), self._registry.write(identifier):
            self._store.list_push(list_name, self._config.token)
        self._logger.log(LogLevel.INFO, "Reference opened", source=LOG_SOURCE, identifier=identifier)

    def release(self, identifier: str) -> bool:
        """Drop one reference to *identifier*; evict the map at zero.

        Returns:
            True if this release observed the count reach zero and
            cleared the map.

        Raises:
            InvalidArgumentError: If the identifier is invalid.

        """
        list_name = self.ref_list_name(identifier)
        with self._logged("release", identifier):
            if self._config.atomic_release:
                with self._registry.write(identifier):
                    remaining = self._store.list_pop_length(list_name)
            else:
                with self._registry.write(identifier):
                    self._store.list_pop(list_name)
                with self._registry.read(identifier):
                    remaining = self._store.list_length(list_name)
        self._logger.log(
            LogLevel.INFO,
            f"Reference released ({remaining} remaining)",
            source=LOG_SOURCE,
            identifier=identifier,
        )
        if remaining != 0:
            return False
        self.evict(identifier)
        return True

    def release_later(self, identifier: str) -> threading.Thread:
        """Run ``release(identifier)`` on a background thread.

        Used as the finalizer of collected handles, so it only starts
        the thread: the collecting thread may already hold the guard or
        the audit log's lock.  Failures surface through
        ``threading.excepthook`` and the audit log, not to any caller.

        Returns:
            The started thread.

        """
        thread = threading.Thread(
            target=self._deferred_release,
            args=(identifier,),
            name=f"sharedmap-release-{identifier}",
            daemon=True,
        )
        thread.start()
        return thread

    def _deferred_release(self, identifier: str) -> None:
        self._logger.log(
            LogLevel.DEBUG,
            "Release deferred from finalizer",
            source=LOG_SOURCE,
            identifier=identifier,
        )
        self.release(identifier)

    def ref_count(self, identifier: str) -> int:
        """Return the number of live references to *identifier*."""
        list_name = self.ref_list_name(identifier)
        with self._registry.read(identifier):
            return self._store.list_length(list_name)

    def evict(self, identifier: str) -> int:
        """Delete every field of the map named *identifier*.

        Fields are deleted one by one, so a writer in another process
        adding fields mid-eviction may leave some behind.

        Returns:
            The number of fields deleted.

        """
        identifier = require_identifier(identifier)
        with self._logged("evict", identifier), self._registry.write(identifier):
            fields = self._store.hash_keys(identifier)
            for field in fields:
                self._store.hash_delete(identifier, field)
        self._logger.log(
            LogLevel.INFO,
            f"Map evicted ({len(fields)} fields)",
            source=LOG_SOURCE,
            identifier=identifier,
        )
        return len(fields)

    def close(self) -> None:
        """Close the store client."""
        self._store.close()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"ReferenceManager({self._store!r}, scope={self._registry.scope})"


_default_manager: ReferenceManager | None = None
_default_lock = threading.Lock()


def default_manager() -> ReferenceManager:
    """Return the process-wide manager, creating it from the environment."""
    global _default_manager  # noqa: PLW0603
    with _default_lock:
        if _default_manager is None:
            _default_manager = ReferenceManager.from_config()
        return _default_manager


def set_default_manager(manager: ReferenceManager | None) -> None:
    """Replace the process-wide manager (None resets to lazy creation)."""
    global _default_manager  # noqa: PLW0603
    with _default_lock:
        _default_manager = manager

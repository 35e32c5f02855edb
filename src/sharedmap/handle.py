"""Shared map handles — a mapping whose contents live in the store.

A ``SharedMap`` looks like a ``dict[str, str]``, but every read and
write goes to the store hash named by the handle's identifier.  Any
number of handles, in any number of processes, can point at the same
identifier; a write through one is visible through all of them.

Lifecycle::

    CONSTRUCTED ──open──▶ ACTIVE ──release──▶ RELEASED

The constructor opens a reference.  Releasing happens exactly once, by
whichever comes first:

    - an explicit ``release()`` call,
    - leaving a ``with`` block,
    - the garbage collector finalizing an unreachable handle.

The last path is best-effort only: when (or whether) an unreachable
object is collected is up to the interpreter, and the release itself
runs on a short-lived background thread, because a collection can
fire while the collecting thread already holds the guard.  Code that
cares about eviction should release explicitly or use ``with``.

Any operation on a released handle raises ``HandleReleasedError``.

Collections returned by ``key_set``, ``values``, and ``entry_set`` are
point-in-time copies.  Mutating them never touches the store.
"""

from __future__ import annotations

import uuid
import weakref
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from contextlib import AbstractContextManager
from enum import StrEnum
from types import TracebackType
from typing import Any

from sharedmap.errors import HandleReleasedError, InvalidArgumentError, require_str
from sharedmap.lifecycle import ReferenceManager, default_manager, require_identifier
from sharedmap.store.base import StoreClient


class HandleState(StrEnum):
    """Lifecycle states of a handle."""

    CONSTRUCTED = "constructed"
    ACTIVE = "active"
    RELEASED = "released"


def _as_dict(entries: Any) -> dict[Any, Any]:
    """Return *entries* as a dict, or raise InvalidArgumentError."""
    try:
        return dict(entries)
    except (TypeError, ValueError) as exc:
        msg = f"Expected a mapping or pairs, got {type(entries).__name__}: {exc}"
        raise InvalidArgumentError(msg) from exc


class SharedMap(MutableMapping[str, str]):
    """A reference-counted handle on a map stored remotely.

    Two handles are equal if they share an identifier, or failing
    that, if their current contents are equal.  The second rule means
    two unrelated maps that happen to hold the same entries compare
    equal.  Because contents can change at any time, handles are not
    hashable.
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        identifier: str | None = None,
        *,
        manager: ReferenceManager | None = None,
    ) -> None:
        """Open a handle, adding one reference to *identifier*.

        Args:
            identifier: The map to attach to.  If None, a fresh random
                identifier is generated.
            manager: The reference manager to use; the process-wide
                default if None.

        Raises:
            InvalidArgumentError: If the identifier is not a non-empty
                string.

        """
        self._manager = manager if manager is not None else default_manager()
        self._identifier = str(uuid.uuid4()) if identifier is None else require_identifier(identifier)
        self._state = HandleState.CONSTRUCTED
        self._manager.add_reference(self._identifier)
        self._state = HandleState.ACTIVE
        self._finalizer = weakref.finalize(self, self._manager.release_later, self._identifier)
        self._finalizer.atexit = False

    # -- Lifecycle -----------------------------------------------------------

    @property
    def identifier(self) -> str:
        """Return the identifier of the shared map."""
        return self._identifier

    @property
    def manager(self) -> ReferenceManager:
        """Return the reference manager this handle belongs to."""
        return self._manager

    @property
    def state(self) -> HandleState:
        """Return the lifecycle state."""
        return self._state

    @property
    def is_released(self) -> bool:
        """Return whether the handle has been released."""
        return self._state is HandleState.RELEASED

    def release(self) -> bool:
        """Release this handle's reference.

        Calling ``release`` again, or letting the handle be collected
        afterwards, does nothing.

        Returns:
            True if this release dropped the last reference and the map
            was evicted.

        """
        if self._state is HandleState.RELEASED:
            return False
        self._state = HandleState.RELEASED
        if self._finalizer.detach() is None:
            return False
        return self._manager.release(self._identifier)

    def __enter__(self) -> SharedMap:
        """Return the handle itself."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Release the handle."""
        self.release()

    def _require_active(self) -> None:
        if self._state is not HandleState.ACTIVE:
            msg = f"Handle on '{self._identifier}' is {self._state}"
            raise HandleReleasedError(msg)

    @property
    def _store(self) -> StoreClient:
        return self._manager.store

    def _reading(self) -> AbstractContextManager[None]:
        return self._manager.registry.read(self._identifier)

    def _writing(self) -> AbstractContextManager[None]:
        return self._manager.registry.write(self._identifier)

    # -- Queries -------------------------------------------------------------

    def size(self) -> int:
        """Return the number of entries (fetches the whole map)."""
        self._require_active()
        with self._reading():
            return len(self._store.hash_get_all(self._identifier))

    def is_empty(self) -> bool:
        """Return whether the map has no entries."""
        return self.size() == 0

    def contains_key(self, key: str) -> bool:
        """Return whether *key* is present."""
        self._require_active()
        require_str(key, what="key")
        with self._reading():
            return self._store.hash_get(self._identifier, key) is not None

    def contains_value(self, value: str) -> bool:
        """Return whether any entry holds *value* (scans every value)."""
        self._require_active()
        require_str(value, what="value")
        with self._reading():
            return value in self._store.hash_values(self._identifier)

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the value for *key*, or *default* if it is absent."""
        self._require_active()
        require_str(key, what="key")
        with self._reading():
            value = self._store.hash_get(self._identifier, key)
        return default if value is None else value

    def key_set(self) -> set[str]:
        """Return a snapshot of the keys."""
        self._require_active()
        with self._reading():
            return self._store.hash_keys(self._identifier)

    def values(self) -> list[str]:  # type: ignore[override]
        """Return a snapshot of the values."""
        self._require_active()
        with self._reading():
            return self._store.hash_values(self._identifier)

    def entry_set(self) -> set[tuple[str, str]]:
        """Return a snapshot of the ``(key, value)`` pairs."""
        return set(self.to_dict().items())

    def to_dict(self) -> dict[str, str]:
        """Return a snapshot of the whole map as a plain dict."""
        self._require_active()
        with self._reading():
            return self._store.hash_get_all(self._identifier)

    def keys(self) -> set[str]:  # type: ignore[override]
        """Return a snapshot of the keys."""
        return self.key_set()

    def items(self) -> list[tuple[str, str]]:  # type: ignore[override]
        """Return a snapshot of the ``(key, value)`` pairs."""
        return list(self.to_dict().items())

    # -- Mutations -----------------------------------------------------------

    def put(self, key: str, value: str) -> str | None:
        """Set *key* to *value*.

        The previous value is read and the new one written under one
        exclusive section of this process.  Another process writing the
        same key in between can make the returned previous value stale;
        the stored value is still whichever write landed last.

        Returns:
            The value previously stored for *key*, or None.

        """
        self._require_active()
        require_str(key, what="key")
        require_str(value, what="value")
        with self._writing():
            previous = self._store.hash_get(self._identifier, key)
            self._store.hash_set(self._identifier, key, value)
        return previous

    def remove(self, key: str) -> str | None:
        """Delete *key* if present.

        Returns:
            The value that was stored for *key*, or None.

        """
        self._require_active()
        require_str(key, what="key")
        with self._writing():
            previous = self._store.hash_get(self._identifier, key)
            if previous is not None:
                self._store.hash_delete(self._identifier, key)
        return previous

    def put_all(self, entries: Mapping[str, str] | Iterable[tuple[str, str]]) -> None:
        """Set every pair in *entries* with one store round trip.

        All pairs are validated before anything is written.

        Raises:
            InvalidArgumentError: If *entries* is not a mapping or an
                iterable of pairs, or holds a non-string key or value.

        """
        self._require_active()
        data = _as_dict(entries)
        for key, value in data.items():
            require_str(key, what="key")
            require_str(value, what="value")
        if not data:
            return
        with self._writing():
            self._store.hash_set_many(self._identifier, data)

    def update(self, other: Any = (), /, **kwargs: str) -> None:
        """Set every pair from *other* and *kwargs* (``dict.update`` style)."""
        data = _as_dict(other)
        data.update(kwargs)
        self.put_all(data)

    def clear(self) -> None:
        """Delete every entry currently present.

        Keys are deleted one at a time.  A key another process adds
        while the clear is running may survive it.
        """
        self._require_active()
        with self._writing():
            for key in self._store.hash_keys(self._identifier):
                self._store.hash_delete(self._identifier, key)

    def pop(self, key: str, *default: str) -> str:  # type: ignore[override]
        """Remove *key* and return its value, or *default* if absent.

        Raises:
            KeyError: If *key* is absent and no default was given.

        """
        previous = self.remove(key)
        if previous is not None:
            return previous
        if default:
            return default[0]
        raise KeyError(key)

    # -- Mapping protocol ----------------------------------------------------

    def __getitem__(self, key: str) -> str:
        """Return the value for *key*; raise KeyError if absent."""
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: str) -> None:
        """Set *key* to *value*."""
        self.put(key, value)

    def __delitem__(self, key: str) -> None:
        """Delete *key*; raise KeyError if absent."""
        if self.remove(key) is None:
            raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        """Return whether *key* is present."""
        return self.contains_key(key)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[str]:
        """Iterate over a snapshot of the keys."""
        return iter(self.key_set())

    def __len__(self) -> int:
        """Return the number of entries."""
        return self.size()

    def __bool__(self) -> bool:
        """Return whether the map has any entries."""
        return not self.is_empty()

    def __eq__(self, other: object) -> bool:
        """Compare by identifier, then by current contents."""
        if other is self:
            return True
        if not isinstance(other, SharedMap):
            return NotImplemented
        if self._identifier == other._identifier:
            return True
        return self.entry_set() == other.entry_set()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"SharedMap('{self._identifier}', {self._state})"

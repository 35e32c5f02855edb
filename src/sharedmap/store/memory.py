"""Process-local store — hashes and lists kept in plain dicts.

The in-memory store implements the full ``StoreClient`` protocol
without a server.  Every handle of the process that shares one
``MemoryStore`` instance sees the same data, which makes it the
backend of choice for tests and for single-process deployments.

A single lock makes each method atomic, mirroring the per-command
atomicity a real key-value server gives its clients.  Empty hashes and
lists are deleted, just as the server drops a key once its last field
or element goes away.
"""

import threading


class MemoryStore:
    """Thread-safe in-memory implementation of ``StoreClient``."""

    def __init__(self) -> None:
        """Create an empty store."""
        self._lock = threading.Lock()
        self._hashes: dict[str, dict[str, str]] = {}
        self._lists: dict[str, list[str]] = {}
        self._calls = 0

    @property
    def calls(self) -> int:
        """Return how many primitives have been issued against this store."""
        with self._lock:
            return self._calls

    def _count(self) -> None:
        self._calls += 1

    # -- Hash primitives -----------------------------------------------------

    def hash_get_all(self, name: str) -> dict[str, str]:
        """Return a copy of the hash, empty if absent."""
        with self._lock:
            self._count()
            return dict(self._hashes.get(name, {}))

    def hash_get(self, name: str, field: str) -> str | None:
        """Return the field value, or None."""
        with self._lock:
            self._count()
            return self._hashes.get(name, {}).get(field)

    def hash_set(self, name: str, field: str, value: str) -> None:
        """Create or overwrite one field."""
        with self._lock:
            self._count()
            self._hashes.setdefault(name, {})[field] = value

    def hash_set_many(self, name: str, mapping: dict[str, str]) -> None:
        """Create or overwrite several fields atomically."""
        if not mapping:
            return
        with self._lock:
            self._count()
            self._hashes.setdefault(name, {}).update(mapping)

    def hash_delete(self, name: str, field: str) -> None:
        """Remove one field if present."""
        with self._lock:
            self._count()
            fields = self._hashes.get(name)
            if fields is None:
                return
            fields.pop(field, None)
            if not fields:
                del self._hashes[name]

    def hash_keys(self, name: str) -> set[str]:
        """Return the field names."""
        with self._lock:
            self._count()
            return set(self._hashes.get(name, {}))

    def hash_values(self, name: str) -> list[str]:
        """Return the values."""
        with self._lock:
            self._count()
            return list(self._hashes.get(name, {}).values())

    # -- List primitives -----------------------------------------------------

    def list_push(self, name: str, token: str) -> None:
        """Push a token onto the head of the list."""
        with self._lock:
            self._count()
            self._lists.setdefault(name, []).insert(0, token)

    def list_pop(self, name: str) -> None:
        """Pop the head token if any."""
        with self._lock:
            self._count()
            self._pop_head(name)

    def list_length(self, name: str) -> int:
        """Return the list length."""
        with self._lock:
            self._count()
            return len(self._lists.get(name, []))

    def list_pop_length(self, name: str) -> int:
        """Pop the head token and return the remaining length."""
        with self._lock:
            self._count()
            self._pop_head(name)
            return len(self._lists.get(name, []))

    def _pop_head(self, name: str) -> None:
        tokens = self._lists.get(name)
        if not tokens:
            return
        tokens.pop(0)
        if not tokens:
            del self._lists[name]

    # -- Introspection -------------------------------------------------------

    def names(self) -> list[str]:
        """Return the names of every hash and list currently stored."""
        with self._lock:
            return sorted({*self._hashes, *self._lists})

    def flush(self) -> None:
        """Drop every hash and list."""
        with self._lock:
            self._hashes.clear()
            self._lists.clear()

    def close(self) -> None:
        """Do nothing; there are no connections to release."""

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        with self._lock:
            return f"MemoryStore({len(self._hashes)} hashes, {len(self._lists)} lists)"

"""Store protocol used by :class:`sharedmap.lifecycle.ReferenceManager`.

Handles and the lifecycle manager depend on this method surface rather
than on a particular client library, so the same map code runs against
Redis in production and against a process-local store in tests.

Two object kinds live in the store, both addressed by name:

- **hashes** — field → value mappings holding map contents.
- **lists** — token sequences whose length is a reference count.

Every method is a single store round trip and is expected to be atomic
on its own.  Nothing here promises atomicity across calls.
"""

from __future__ import annotations

from typing import Protocol


class StoreClient(Protocol):
    """Behavioral contract for store backends.

    Implementations must be safe for concurrent use from several
    threads, because handles on different threads share one client.
    """

    def hash_get_all(self, name: str) -> dict[str, str]:
        """Return a full field → value snapshot, empty if *name* is absent."""
        ...

    def hash_get(self, name: str, field: str) -> str | None:
        """Return the value of *field*, or None if it does not exist."""
        ...

    def hash_set(self, name: str, field: str, value: str) -> None:
        """Create or overwrite a single field."""
        ...

    def hash_set_many(self, name: str, mapping: dict[str, str]) -> None:
        """Create or overwrite several fields in one round trip."""
        ...

    def hash_delete(self, name: str, field: str) -> None:
        """Remove *field*; do nothing if it is absent."""
        ...

    def hash_keys(self, name: str) -> set[str]:
        """Return a snapshot of the field names."""
        ...

    def hash_values(self, name: str) -> list[str]:
        """Return a snapshot of the values."""
        ...

    def list_push(self, name: str, token: str) -> None:
        """Push *token* onto the list."""
        ...

    def list_pop(self, name: str) -> None:
        """Remove one token; do nothing if the list is empty."""
        ...

    def list_length(self, name: str) -> int:
        """Return the list length, 0 if *name* is absent."""
        ...

    def list_pop_length(self, name: str) -> int:
        """Pop one token and return the remaining length in one round trip."""
        ...

    def close(self) -> None:
        """Release client resources (connections, pools)."""
        ...

"""Redis store — the ``StoreClient`` protocol over redis-py.

Each primitive maps onto one Redis command:

    ==================  ===========
    primitive           command
    ==================  ===========
    hash_get_all        HGETALL
    hash_get            HGET
    hash_set            HSET
    hash_set_many       HSET (mapping form)
    hash_delete         HDEL
    hash_keys           HKEYS
    hash_values         HVALS
    list_push           LPUSH
    list_pop            LPOP
    list_length         LLEN
    list_pop_length     MULTI / LPOP / LLEN / EXEC
    ==================  ===========

Connection errors, timeouts, and server errors raised by redis-py are
not caught here; retrying is the connection pool's business.
"""

from __future__ import annotations

import redis


class RedisStore:
    """``StoreClient`` backed by a Redis server."""

    def __init__(self, client: redis.Redis) -> None:
        """Wrap an existing client.

        The client must be created with ``decode_responses=True`` so
        that fields and values come back as ``str``.
        """
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        """Connect to the server at *url* (e.g. ``redis://localhost:6379/0``)."""
        return cls(redis.Redis.from_url(url, encoding="utf-8", decode_responses=True))

    @property
    def client(self) -> redis.Redis:
        """Return the underlying redis-py client."""
        return self._client

    def ping(self) -> bool:
        """Return True if the server answers."""
        return bool(self._client.ping())

    def hash_get_all(self, name: str) -> dict[str, str]:
        """Return every field of the hash."""
        return dict(self._client.hgetall(name))

    def hash_get(self, name: str, field: str) -> str | None:
        """Return one field, or None."""
        return self._client.hget(name, field)

    def hash_set(self, name: str, field: str, value: str) -> None:
        """Set one field."""
        self._client.hset(name, field, value)

    def hash_set_many(self, name: str, mapping: dict[str, str]) -> None:
        """Set several fields with a single HSET."""
        if not mapping:
            return
        self._client.hset(name, mapping=mapping)

    def hash_delete(self, name: str, field: str) -> None:
        """Delete one field."""
        self._client.hdel(name, field)

    def hash_keys(self, name: str) -> set[str]:
        """Return the field names."""
        return set(self._client.hkeys(name))

    def hash_values(self, name: str) -> list[str]:
        """Return the values."""
        return list(self._client.hvals(name))

    def list_push(self, name: str, token: str) -> None:
        """LPUSH one token."""
        self._client.lpush(name, token)

    def list_pop(self, name: str) -> None:
        """LPOP one token."""
        self._client.lpop(name)

    def list_length(self, name: str) -> int:
        """Return LLEN."""
        return int(self._client.llen(name))

    def list_pop_length(self, name: str) -> int:
        """LPOP then LLEN inside one MULTI/EXEC transaction."""
        with self._client.pipeline(transaction=True) as pipe:
            pipe.lpop(name)
            pipe.llen(name)
            _, length = pipe.execute()
        return int(length)

    def close(self) -> None:
        """Close the client's connection pool."""
        self._client.close()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        kwargs = self._client.connection_pool.connection_kwargs
        return f"RedisStore({kwargs.get('host', '?')}:{kwargs.get('port', '?')}/{kwargs.get('db', 0)})"

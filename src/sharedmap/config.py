"""Configuration — how a process finds its store and guards it.

Configuration is a flat set of ``KEY=VALUE`` strings, usually taken
from the process environment so that every process sharing a map can
be pointed at the same server without code changes:

    ============================  ============================
    variable                      default
    ============================  ============================
    ``SHAREDMAP_BACKEND``         ``redis``
    ``SHAREDMAP_REDIS_URL``       ``redis://localhost:6379/0``
    ``SHAREDMAP_LOCK_NAMESPACE``  ``lock#``
    ``SHAREDMAP_LOCK_SCOPE``      ``process``
    ``SHAREDMAP_ATOMIC_RELEASE``  ``false``
    ``SHAREDMAP_TOKEN``           ``ok``
    ============================  ============================

Every process that opens the same identifier must agree on
``lock_namespace`` and ``token``, otherwise their reference counts live
in different lists.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from sharedmap.errors import StoreError
from sharedmap.sync import LockScope

ENV_PREFIX = "SHAREDMAP_"

DEFAULT_BACKEND = "redis"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_LOCK_NAMESPACE = "lock#"
DEFAULT_TOKEN = "ok"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    msg = f"{key} must be a boolean, got {raw!r}"
    raise StoreError(msg)


@dataclass(frozen=True)
class MapConfig:
    """Settings shared by every handle a manager opens.

    Attributes:
        backend: Store backend name (``redis`` or ``memory``).
        redis_url: Server URL for the ``redis`` backend.
        lock_namespace: Prefix that turns an identifier into the name
            of its reference list.
        lock_scope: Granularity of the process-local guard.
        atomic_release: Pop the reference and read the remaining count
            in one store round trip.
        token: The value pushed onto the reference list per handle.

    """

    backend: str = DEFAULT_BACKEND
    redis_url: str = DEFAULT_REDIS_URL
    lock_namespace: str = DEFAULT_LOCK_NAMESPACE
    lock_scope: LockScope = LockScope.PROCESS
    atomic_release: bool = False
    token: str = DEFAULT_TOKEN

    def __post_init__(self) -> None:
        """Validate and normalise field values.

        Raises:
            StoreError: If a field holds an unusable value.

        """
        if not self.lock_namespace:
            msg = "lock_namespace must not be empty"
            raise StoreError(msg)
        if not self.token:
            msg = "token must not be empty"
            raise StoreError(msg)
        try:
            scope = LockScope(self.lock_scope)
        except ValueError:
            msg = f"Unknown lock scope: {self.lock_scope!r}"
            raise StoreError(msg) from None
        object.__setattr__(self, "lock_scope", scope)
        object.__setattr__(self, "backend", self.backend.strip().lower())

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "MapConfig":
        """Build a configuration from ``SHAREDMAP_*`` variables.

        Args:
            environ: Variables to read; defaults to ``os.environ``.
                Unset variables keep their defaults.

        Returns:
            The resulting configuration.

        Raises:
            StoreError: If a variable holds an unusable value.

        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        for name in ("backend", "redis_url", "lock_namespace", "lock_scope", "token"):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is not None:
                kwargs[name] = raw
        raw_atomic = env.get(ENV_PREFIX + "ATOMIC_RELEASE")
        if raw_atomic is not None:
            kwargs["atomic_release"] = _parse_bool(ENV_PREFIX + "ATOMIC_RELEASE", raw_atomic)
        return cls(**kwargs)  # type: ignore[arg-type]

    def ref_list_name(self, identifier: str) -> str:
        """Return the name of the reference list for *identifier*."""
        return f"{self.lock_namespace}{identifier}"

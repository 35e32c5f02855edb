"""Lifecycle logging and audit trail.

Every handle open, release, and eviction is recorded as a structured
entry so operators can answer "who evicted this map, and when?" without
attaching a debugger to a running process.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source,
  identifier).
- **Logger** — an append-only, optionally bounded log with filtering.

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries** — log records should be immutable.
    - **Bounded deque** — a long-lived process opening many handles
      would otherwise grow the log without limit, so ``max_entries``
      drops the oldest records first.
"""

import threading
from collections import deque
from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "lifecycle").
        identifier: The map identifier the event concerns, if any.

    """

    level: LogLevel
    message: str
    source: str
    identifier: str | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message`` with the identifier, if any."""
        suffix = f" ({self.identifier})" if self.identifier is not None else ""
        return f"[{self.level.name}] {self.source}: {self.message}{suffix}"


class Logger:
    """Append-only log buffer with filtering.

    Handles on many threads log through the same manager, so appends
    and reads are serialized with a plain lock.
    """

    def __init__(self, *, max_entries: int | None = None) -> None:
        """Create an empty logger.

        Args:
            max_entries: If set, keep only the most recent entries.

        Raises:
            ValueError: If max_entries is not positive.

        """
        if max_entries is not None and max_entries <= 0:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        with self._lock:
            return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        identifier: str | None = None,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            identifier: Map identifier associated with the event.

        """
        entry = LogEntry(level=level, message=message, source=source, identifier=identifier)
        with self._lock:
            self._entries.append(entry)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        identifier: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            identifier: If set, only return entries about this map.

        Returns:
            A filtered list of log entries.

        """
        result = self.entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if identifier is not None:
            result = [e for e in result if e.identifier == identifier]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        with self._lock:
            self._entries.clear()

"""Concurrency guard — reader-writer locks serializing store traffic.

Every operation a process issues against the store runs under a
reader-writer lock:

    **Shared (read) mode**: ``get``, ``size``, ``contains_key``, the
    snapshot collections, and the reference-count read.  Any number of
    readers may hold the lock together.

    **Exclusive (write) mode**: ``put``, ``remove``, ``put_all``,
    ``clear``, and the reference push/pop.  One writer at a time, and
    no readers while it holds the lock.

The lock is writer-preferring: once a writer is waiting, new readers
queue behind it, so a steady stream of reads cannot starve a release.

The guard is process-local.  It keeps a multi-step sequence such as
"read the previous value, then write the new one" from interleaving
with other operations of the *same* process; it does nothing about
other processes talking to the same store.

``LockRegistry`` decides which lock an identifier maps to — one lock
for the whole process (the default) or one lock per identifier, which
lets unrelated maps proceed in parallel.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum


class ReadWriteLock:
    """Reader-writer lock — multiple readers OR one exclusive writer.

    Writer-preference: when a writer is waiting, new readers block
    rather than jumping ahead.  The lock is not re-entrant; acquiring
    it again from a thread that already holds it may deadlock.
    """

    def __init__(self, *, name: str) -> None:
        """Create an unlocked reader-writer lock with the given name."""
        self._name = name
        self._cond = threading.Condition(threading.Lock())
        self._readers: dict[int, int] = {}
        self._writer: int | None = None
        self._writers_waiting = 0

    @property
    def name(self) -> str:
        """Return the lock name."""
        return self._name

    @property
    def reader_count(self) -> int:
        """Return the number of active read acquisitions."""
        with self._cond:
            return sum(self._readers.values())

    @property
    def is_writing(self) -> bool:
        """Return whether a writer currently holds the lock."""
        with self._cond:
            return self._writer is not None

    @property
    def writer_thread(self) -> int | None:
        """Return the thread ident of the active writer, or None."""
        with self._cond:
            return self._writer

    @property
    def writers_waiting(self) -> int:
        """Return the number of threads blocked waiting to write."""
        with self._cond:
            return self._writers_waiting

    def acquire_read(self) -> None:
        """Block until read access is granted."""
        tid = threading.get_ident()
        with self._cond:
            while self._writer is not None or self._writers_waiting > 0:
                self._cond.wait()
            self._readers[tid] = self._readers.get(tid, 0) + 1

    def release_read(self) -> None:
        """Release read access held by the calling thread.

        Raises:
            ValueError: If the calling thread is not an active reader.

        """
        tid = threading.get_ident()
        with self._cond:
            held = self._readers.get(tid, 0)
            if held == 0:
                msg = f"Thread {tid} is not a reader of '{self._name}'"
                raise ValueError(msg)
            if held == 1:
                del self._readers[tid]
            else:
                self._readers[tid] = held - 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        """Block until exclusive write access is granted."""
        tid = threading.get_ident()
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = tid

    def release_write(self) -> None:
        """Release write access held by the calling thread.

        Raises:
            ValueError: If the calling thread is not the active writer.

        """
        tid = threading.get_ident()
        with self._cond:
            if self._writer != tid:
                msg = f"Thread {tid} is not the writer of '{self._name}'"
                raise ValueError(msg)
            self._writer = None
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock in exclusive mode for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        with self._cond:
            if self._writer is not None:
                state = f"writing by {self._writer}"
            elif self._readers:
                n = sum(self._readers.values())
                word = "reader" if n == 1 else "readers"
                state = f"{n} {word}"
            else:
                state = "idle"
        return f"ReadWriteLock('{self._name}', {state})"


class LockScope(StrEnum):
    """Granularity of the concurrency guard."""

    PROCESS = "process"
    IDENTIFIER = "identifier"


PROCESS_LOCK_NAME = "sharedmap"


class LockRegistry:
    """Registry handing out the reader-writer lock for an identifier.

    With ``LockScope.PROCESS`` every identifier shares one lock, so all
    store traffic of the process is serialized.  With
    ``LockScope.IDENTIFIER`` each identifier gets its own lock;
    operations on one map still serialize exactly as before, but
    unrelated maps no longer wait on each other.

    Per-identifier locks are counted: ``read`` and ``write`` check a
    lock out before waiting on it and check it back in afterwards.
    Once nobody holds or waits on a lock it is dropped, so a process
    that touches many short-lived maps does not accumulate locks.
    """

    def __init__(self, *, scope: LockScope = LockScope.PROCESS) -> None:
        """Create an empty registry with the given scope."""
        self._scope = LockScope(scope)
        self._guard = threading.Lock()
        self._process_lock = ReadWriteLock(name=PROCESS_LOCK_NAME)
        self._rwlocks: dict[str, ReadWriteLock] = {}
        self._users: dict[str, int] = {}

    @property
    def scope(self) -> LockScope:
        """Return the lock granularity."""
        return self._scope

    def lock_for(self, identifier: str) -> ReadWriteLock:
        """Return the lock currently guarding *identifier*.

        Meant for inspection.  In identifier scope the returned lock
        may be dropped as soon as no ``read``/``write`` block uses it,
        so hold it through those instead of acquiring it directly.
        """
        if self._scope is LockScope.PROCESS:
            return self._process_lock
        with self._guard:
            return self._lookup(identifier)

    def _lookup(self, identifier: str) -> ReadWriteLock:
        rwl = self._rwlocks.get(identifier)
        if rwl is None:
            rwl = ReadWriteLock(name=identifier)
            self._rwlocks[identifier] = rwl
        return rwl

    def _checkout(self, identifier: str) -> ReadWriteLock:
        if self._scope is LockScope.PROCESS:
            return self._process_lock
        with self._guard:
            self._users[identifier] = self._users.get(identifier, 0) + 1
            return self._lookup(identifier)

    def _checkin(self, identifier: str) -> None:
        if self._scope is LockScope.PROCESS:
            return
        with self._guard:
            users = self._users[identifier] - 1
            if users > 0:
                self._users[identifier] = users
                return
            del self._users[identifier]
            self._rwlocks.pop(identifier, None)

    @contextmanager
    def read(self, identifier: str) -> Iterator[None]:
        """Hold the lock for *identifier* in shared mode."""
        rwl = self._checkout(identifier)
        try:
            with rwl.read():
                yield
        finally:
            self._checkin(identifier)

    @contextmanager
    def write(self, identifier: str) -> Iterator[None]:
        """Hold the lock for *identifier* in exclusive mode."""
        rwl = self._checkout(identifier)
        try:
            with rwl.write():
                yield
        finally:
            self._checkin(identifier)

    def list_locks(self) -> list[str]:
        """Return names of the locks currently registered."""
        if self._scope is LockScope.PROCESS:
            return [PROCESS_LOCK_NAME]
        with self._guard:
            return list(self._rwlocks)


_default_registry = LockRegistry()


def default_registry() -> LockRegistry:
    """Return the process-wide registry shared by default managers."""
    return _default_registry

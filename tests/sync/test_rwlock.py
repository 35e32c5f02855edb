"""Tests for the concurrency guard.

A ReadWriteLock lets many readers in together but gives a writer the
room to itself.  A LockRegistry maps identifiers onto locks, either
one lock for the whole process or one per identifier.
"""

import threading
import time

import pytest

from sharedmap.sync import PROCESS_LOCK_NAME, LockRegistry, LockScope, ReadWriteLock, default_registry

SETTLE_SECONDS = 0.05
JOIN_TIMEOUT = 5.0


class TestReadWriteLock:
    """Verify shared and exclusive acquisition."""

    def test_new_lock_is_idle(self) -> None:
        """A fresh lock has no readers and no writer."""
        rwl = ReadWriteLock(name="db")
        assert rwl.name == "db"
        assert rwl.reader_count == 0
        assert not rwl.is_writing
        assert repr(rwl) == "ReadWriteLock('db', idle)"

    def test_read_context_counts_reader(self) -> None:
        """Inside read(), the reader is counted."""
        rwl = ReadWriteLock(name="db")
        with rwl.read():
            assert rwl.reader_count == 1
            assert "1 reader" in repr(rwl)
        assert rwl.reader_count == 0

    def test_write_context_sets_writer(self) -> None:
        """Inside write(), the calling thread is the writer."""
        rwl = ReadWriteLock(name="db")
        with rwl.write():
            assert rwl.is_writing
            assert rwl.writer_thread == threading.get_ident()
        assert not rwl.is_writing

    def test_readers_share(self) -> None:
        """Two threads can hold read access at once."""
        rwl = ReadWriteLock(name="db")
        inside = threading.Barrier(2, timeout=JOIN_TIMEOUT)

        def reader() -> None:
            with rwl.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(JOIN_TIMEOUT)
        assert not inside.broken

    def test_writer_excludes_reader(self) -> None:
        """A reader waits until the writer is done."""
        rwl = ReadWriteLock(name="db")
        events: list[str] = []
        rwl.acquire_write()

        def reader() -> None:
            with rwl.read():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(SETTLE_SECONDS)
        events.append("write-done")
        rwl.release_write()
        t.join(JOIN_TIMEOUT)
        assert events == ["write-done", "read"]

    def test_waiting_writer_blocks_new_readers(self) -> None:
        """Writer preference: a queued writer goes before later readers."""
        rwl = ReadWriteLock(name="db")
        events: list[str] = []
        rwl.acquire_read()

        def writer() -> None:
            with rwl.write():
                events.append("write")

        def late_reader() -> None:
            with rwl.read():
                events.append("read")

        w = threading.Thread(target=writer)
        w.start()
        while rwl.writers_waiting == 0:
            time.sleep(0.001)
        r = threading.Thread(target=late_reader)
        r.start()
        time.sleep(SETTLE_SECONDS)
        rwl.release_read()
        w.join(JOIN_TIMEOUT)
        r.join(JOIN_TIMEOUT)
        assert events == ["write", "read"]

    def test_release_read_without_acquire_raises(self) -> None:
        """Releasing read access that is not held is an error."""
        rwl = ReadWriteLock(name="db")
        with pytest.raises(ValueError, match="not a reader"):
            rwl.release_read()

    def test_release_write_by_non_writer_raises(self) -> None:
        """Only the writer thread can release write access."""
        rwl = ReadWriteLock(name="db")
        with pytest.raises(ValueError, match="not the writer"):
            rwl.release_write()

    def test_lock_released_on_exception(self) -> None:
        """An exception inside write() still releases the lock."""
        rwl = ReadWriteLock(name="db")
        msg = "boom"
        with pytest.raises(RuntimeError, match=msg), rwl.write():
            raise RuntimeError(msg)
        assert not rwl.is_writing


class TestLockRegistry:
    """Verify scope-dependent lock lookup."""

    def test_process_scope_shares_one_lock(self) -> None:
        """Every identifier maps to the same lock in process scope."""
        registry = LockRegistry()
        assert registry.scope is LockScope.PROCESS
        assert registry.lock_for("a") is registry.lock_for("b")
        assert registry.list_locks() == [PROCESS_LOCK_NAME]

    def test_identifier_scope_separates_locks(self) -> None:
        """Each identifier gets its own lock in identifier scope."""
        registry = LockRegistry(scope=LockScope.IDENTIFIER)
        a = registry.lock_for("a")
        assert a is registry.lock_for("a")
        assert a is not registry.lock_for("b")
        assert a.name == "a"
        assert sorted(registry.list_locks()) == ["a", "b"]

    def test_scope_from_string(self) -> None:
        """The scope can be given by its string value."""
        registry = LockRegistry(scope="identifier")  # type: ignore[arg-type]
        assert registry.scope is LockScope.IDENTIFIER

    def test_identifier_scope_does_not_block_other_maps(self) -> None:
        """A writer on one identifier does not block another identifier."""
        registry = LockRegistry(scope=LockScope.IDENTIFIER)
        done = threading.Event()

        def other() -> None:
            with registry.write("b"):
                done.set()

        with registry.write("a"):
            t = threading.Thread(target=other)
            t.start()
            assert done.wait(JOIN_TIMEOUT)
        t.join(JOIN_TIMEOUT)

    def test_unused_identifier_lock_is_dropped(self) -> None:
        """A per-identifier lock goes away once no block uses it."""
        registry = LockRegistry(scope=LockScope.IDENTIFIER)
        with registry.write("a"):
            assert registry.list_locks() == ["a"]
        with registry.read("b"):
            assert registry.list_locks() == ["b"]
        assert registry.list_locks() == []

    def test_lock_kept_while_a_writer_waits(self) -> None:
        """A queued writer keeps the lock, so both writers use the same one."""
        registry = LockRegistry(scope=LockScope.IDENTIFIER)
        seen: list[ReadWriteLock] = []

        def second_writer() -> None:
            with registry.write("a"):
                seen.append(registry.lock_for("a"))

        with registry.write("a"):
            first = registry.lock_for("a")
            t = threading.Thread(target=second_writer)
            t.start()
            deadline = time.monotonic() + JOIN_TIMEOUT
            while first.writers_waiting == 0 and time.monotonic() < deadline:
                time.sleep(SETTLE_SECONDS)
            assert first.writers_waiting == 1
        t.join(JOIN_TIMEOUT)
        assert seen == [first]
        assert registry.list_locks() == []

    def test_failed_block_still_checks_in(self) -> None:
        """An exception inside a block does not leak the lock."""
        registry = LockRegistry(scope=LockScope.IDENTIFIER)
        msg = "boom"
        with pytest.raises(RuntimeError, match=msg), registry.write("a"):
            raise RuntimeError(msg)
        assert registry.list_locks() == []

    def test_process_lock_is_never_dropped(self) -> None:
        """Process scope keeps its single lock after use."""
        registry = LockRegistry()
        lock = registry.lock_for("a")
        with registry.write("a"):
            assert lock.is_writing
        assert registry.lock_for("b") is lock

    def test_default_registry_is_process_wide(self) -> None:
        """The default registry is a shared process-scope registry."""
        assert default_registry() is default_registry()
        assert default_registry().scope is LockScope.PROCESS

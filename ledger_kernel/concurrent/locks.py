"""
Module: ledger_kernel.concurrent.locks
Responsibility: Reentrant reader/writer lock used as the engine-wide "big
    lock" and for each Account's per-collection guards, plus a registry of
    named locks.
Architecture position: Kernel > Concurrent.  Imported by domain and services.
    No outward dependencies except exceptions.

Semantics:
    - Any number of readers, or exactly one writer.
    - The writer may re-acquire the write lock and may take the read lock.
    - A reader may re-acquire the read lock even while writers are queued.
    - Waiting writers block NEW readers, so a steady stream of readers
      cannot starve a writer.
    - A thread that holds only the read lock and asks for the write lock
      gets LockUpgradeError rather than a silent deadlock.

Failure modes:
    - LockUpgradeError on read -> write upgrade attempts.
    - RuntimeError when releasing a lock the thread does not hold.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ledger_kernel.exceptions import LockUpgradeError


class ReentrantReadWriteLock:
    """
    Writer-preferring reentrant reader/writer lock.

    Contract:
        Use ``read_lock()`` and ``write_lock()`` as context managers; they
        release in a ``finally`` so exceptions never leak a held lock.
    """

    def __init__(self, name: str = "lock") -> None:
        self.name = name
        self._cond = threading.Condition(threading.Lock())
        self._writer: int | None = None
        self._write_holds = 0
        self._readers: dict[int, int] = {}
        self._waiting_writers = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me or me in self._readers:
                self._readers[me] = self._readers.get(me, 0) + 1
                return
            while self._writer is not None or self._waiting_writers:
                self._cond.wait()
            self._readers[me] = 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            count = self._readers.get(me, 0)
            if count == 0:
                raise RuntimeError(f"Read lock '{self.name}' is not held by this thread")
            if count == 1:
                del self._readers[me]
                if not self._readers:
                    self._cond.notify_all()
            else:
                self._readers[me] = count - 1

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_holds += 1
                return
            if me in self._readers:
                raise LockUpgradeError(self.name)
            self._waiting_writers += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = me
            self._write_holds = 1

    def release_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer != me:
                raise RuntimeError(f"Write lock '{self.name}' is not held by this thread")
            self._write_holds -= 1
            if self._write_holds == 0:
                self._writer = None
                self._cond.notify_all()

    # ------------------------------------------------------------------
    # Context managers and introspection
    # ------------------------------------------------------------------

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    def is_write_locked_by_current_thread(self) -> bool:
        return self._writer == threading.get_ident()

    def is_write_locked(self) -> bool:
        return self._writer is not None

    def __repr__(self) -> str:
        return (
            f"ReentrantReadWriteLock({self.name!r}, writer={self._writer}, "
            f"readers={len(self._readers)}, waiting_writers={self._waiting_writers})"
        )


class LockManager:
    """Hands out one shared ReentrantReadWriteLock per name."""

    def __init__(self) -> None:
        self._locks: dict[str, ReentrantReadWriteLock] = {}
        self._guard = threading.Lock()

    def get_lock(self, name: str) -> ReentrantReadWriteLock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = ReentrantReadWriteLock(name)
                self._locks[name] = lock
            return lock

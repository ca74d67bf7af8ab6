"""Tests for ReentrantReadWriteLock and LockManager."""

import threading
import time

import pytest

from ledger_kernel.concurrent.locks import LockManager, ReentrantReadWriteLock
from ledger_kernel.exceptions import LockUpgradeError


class TestReentrancy:
    def test_writer_can_reenter(self):
        lock = ReentrantReadWriteLock("t")
        with lock.write_lock():
            with lock.write_lock():
                assert lock.is_write_locked_by_current_thread()
            assert lock.is_write_locked_by_current_thread()
        assert not lock.is_write_locked()

    def test_writer_can_take_read_lock(self):
        lock = ReentrantReadWriteLock("t")
        with lock.write_lock():
            with lock.read_lock():
                assert lock.is_write_locked_by_current_thread()
        assert not lock.is_write_locked()

    def test_reader_can_reenter(self):
        lock = ReentrantReadWriteLock("t")
        with lock.read_lock():
            with lock.read_lock():
                pass

    def test_upgrade_raises_instead_of_deadlocking(self):
        lock = ReentrantReadWriteLock("upgrade")
        with lock.read_lock():
            with pytest.raises(LockUpgradeError) as exc_info:
                lock.acquire_write()
        assert exc_info.value.lock_name == "upgrade"

    def test_release_without_hold_raises(self):
        lock = ReentrantReadWriteLock("t")
        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()


@pytest.mark.concurrency
class TestExclusion:
    def test_readers_share_the_lock(self):
        lock = ReentrantReadWriteLock("t")
        barrier = threading.Barrier(3, timeout=5)
        entered = []

        def reader():
            with lock.read_lock():
                entered.append(threading.get_ident())
                barrier.wait()

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)
        assert len(entered) == 3

    def test_writer_excludes_readers(self):
        lock = ReentrantReadWriteLock("t")
        order = []
        writer_holding = threading.Event()

        def writer():
            with lock.write_lock():
                writer_holding.set()
                time.sleep(0.05)
                order.append("writer")

        def reader():
            writer_holding.wait(5)
            with lock.read_lock():
                order.append("reader")

        w = threading.Thread(target=writer)
        r = threading.Thread(target=reader)
        w.start()
        r.start()
        w.join(5)
        r.join(5)
        assert order == ["writer", "reader"]

    def test_writers_serialize(self):
        lock = ReentrantReadWriteLock("t")
        counter = {"value": 0}

        def bump():
            for _ in range(200):
                with lock.write_lock():
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)
        assert counter["value"] == 800


class TestLockManager:
    def test_same_name_same_lock(self):
        manager = LockManager()
        assert manager.get_lock("engine") is manager.get_lock("engine")
        assert manager.get_lock("engine") is not manager.get_lock("other")

"""Locking primitives for the ledger kernel."""

from ledger_kernel.concurrent.locks import LockManager, ReentrantReadWriteLock

__all__ = ["LockManager", "ReentrantReadWriteLock"]

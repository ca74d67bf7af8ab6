"""Persistence contracts and the memory and SQL backends."""

from ledger_kernel.dao.base import EngineDAO
from ledger_kernel.dao.memory import MemoryEngineDAO

__all__ = ["EngineDAO", "MemoryEngineDAO"]

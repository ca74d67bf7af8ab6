"""Engine facade, engine registry and background services."""

from ledger_kernel.services.engine import Engine
from ledger_kernel.services.engine_factory import (
    boot_local_engine,
    close_all_engines,
    close_engine,
    get_engine,
)

__all__ = [
    "Engine",
    "boot_local_engine",
    "close_all_engines",
    "close_engine",
    "get_engine",
]

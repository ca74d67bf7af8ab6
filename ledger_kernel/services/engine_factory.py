"""
Module: ledger_kernel.services.engine_factory
Responsibility: Process-wide registry of named engines.  Boots an engine
    over a memory or SQL DAO and closes it together with its message bus.
Architecture position: Kernel > Services.  Entry point for callers; the
    only place that constructs Engine instances.

Invariants enforced:
    - At most one open engine per name.
    - Closing an engine also closes the message bus of the same name.

Failure modes:
    - DuplicateEngineError when booting a name that is already open.
"""

from __future__ import annotations

import threading

from ledger_config import get_active_settings
from ledger_config.schema import EngineSettings
from ledger_kernel.dao.base import EngineDAO
from ledger_kernel.dao.memory import MemoryEngineDAO
from ledger_kernel.dao.sql import SqlEngineDAO
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import DuplicateEngineError, require
from ledger_kernel.logging_config import get_logger
from ledger_kernel.message.bus import MessageBus
from ledger_kernel.services.engine import Engine
from ledger_kernel.services.updates import ExchangeRateUpdateClient, SecurityUpdateClient

logger = get_logger("services.engine_factory")

DEFAULT_ENGINE = "default"
MEMORY = "memory"

_engines: dict[str, Engine] = {}
_registry_lock = threading.Lock()


def _build_dao(dao: EngineDAO | str | None) -> EngineDAO:
    if dao is None or dao == MEMORY:
        return MemoryEngineDAO()
    if isinstance(dao, str):
        return SqlEngineDAO(dao)
    return dao


def boot_local_engine(
    name: str = DEFAULT_ENGINE,
    dao: EngineDAO | str | None = None,
    settings: EngineSettings | None = None,
    clock: Clock | None = None,
    security_update_client: SecurityUpdateClient | None = None,
    exchange_rate_update_client: ExchangeRateUpdateClient | None = None,
) -> Engine:
    """
    Open the ledger ``name``.

    ``dao`` is an EngineDAO, ``"memory"`` (the default) or a SQLAlchemy
    database URL.  Settings default to ``get_active_settings()``.
    """
    require(name, "name", "boot_local_engine")
    with _registry_lock:
        if name in _engines:
            raise DuplicateEngineError(name)
        engine = Engine(
            _build_dao(dao),
            name,
            settings=settings or get_active_settings(),
            clock=clock,
            security_update_client=security_update_client,
            exchange_rate_update_client=exchange_rate_update_client,
        )
        _engines[name] = engine
    logger.info("engine_booted", extra={"engine": name, "dao": type(engine.dao).__name__})
    return engine


def get_engine(name: str = DEFAULT_ENGINE) -> Engine | None:
    with _registry_lock:
        return _engines.get(name)


def close_engine(name: str = DEFAULT_ENGINE) -> bool:
    """Shut down the engine ``name``; False when no such engine is open."""
    with _registry_lock:
        engine = _engines.pop(name, None)
    if engine is None:
        return False
    engine.shutdown()
    MessageBus.close_instance(name)
    logger.info("engine_closed", extra={"engine": name})
    return True


def close_all_engines() -> None:
    with _registry_lock:
        names = list(_engines)
    for name in names:
        close_engine(name)


def get_engine_names() -> list[str]:
    with _registry_lock:
        return sorted(_engines)

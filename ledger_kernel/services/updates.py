"""
Module: ledger_kernel.services.updates
Responsibility: Contracts for the network clients that fetch security
    prices and exchange rates, the staleness policy that decides whether an
    automatic update should run, and the callables that run updates in the
    background.
Architecture position: Kernel > Services.  Concrete clients live outside
    this package; the engine only knows "run this and report failure".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ledger_kernel.domain.commodity import QuoteSource, SecurityNode
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.background import BackgroundCallable, BackgroundCounter

if TYPE_CHECKING:
    from ledger_kernel.services.engine import Engine

logger = get_logger("services.updates")

_FRIDAY = 4


class SecurityUpdateClient(ABC):
    """Fetches price history and corporate events for one security."""

    @abstractmethod
    def update_history(self, engine: Engine, node: SecurityNode) -> bool:
        """Add recent price history through ``engine``; False on failure."""

    def update_events(self, engine: Engine, node: SecurityNode) -> bool:
        return True


class ExchangeRateUpdateClient(ABC):
    @abstractmethod
    def update_rates(self, engine: Engine) -> bool:
        """Record current rates through ``engine.set_exchange_rate``; False on failure."""


def should_automatic_update_occur(last_update: datetime | None, now: datetime) -> bool:
    """
    True when an automatic update is due.

    Never twice on the same day, and not on a weekend when the last update
    already happened on or after the preceding Friday, since markets are
    closed.
    """
    if last_update is None:
        return True
    if last_update.date() == now.date():
        return False
    if now.weekday() > _FRIDAY:
        last_friday = now.date() - timedelta(days=now.weekday() - _FRIDAY)
        if last_update.date() >= last_friday:
            return False
    return True


def build_security_update_callables(
    engine: Engine,
    client: SecurityUpdateClient,
    counter: BackgroundCounter | None = None,
) -> list[BackgroundCallable]:
    """One callable per security that has a quote source."""
    callables = []
    for node in engine.get_securities():
        if node.quote_source is QuoteSource.NONE:
            continue

        def update(node: SecurityNode = node) -> bool:
            ok = client.update_history(engine, node)
            ok = client.update_events(engine, node) and ok
            if not ok:
                logger.warning("security_update_unsuccessful", extra={"symbol": node.symbol})
            return ok

        callables.append(BackgroundCallable(update, counter, name=f"update-{node.symbol}"))
    return callables

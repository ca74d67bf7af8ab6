"""
Module: ledger_kernel.domain.exchange_rate
Responsibility: Pairwise exchange-rate history between two currencies and
    the canonical rate-id rule that decides which direction is stored.
Architecture position: Kernel > Domain.  Pure data plus lookups; the engine
    owns mutation and persistence.

Invariants enforced:
    - One history node per date.  Replacing a date is done by the engine,
      which trashes the old node before adding the new one.
    - The id of a currency pair is independent of argument order.

Failure modes:
    - ``add_history_node`` returns False for a date that already exists.
"""

from __future__ import annotations

import threading
from bisect import bisect_right, insort
from datetime import date
from decimal import Decimal
from functools import total_ordering
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.stored_object import StoredObject
from ledger_kernel.domain.values import ONE, ZERO

if TYPE_CHECKING:
    from ledger_kernel.domain.commodity import CurrencyNode


def build_exchange_rate_id(base: CurrencyNode, exchange: CurrencyNode) -> str:
    """
    Return the canonical id for a currency pair.

    The symbol that sorts later case-insensitively comes first, and stored
    rates are expressed in that direction.  For USD/EUR the id is "USDEUR"
    and the stored rate converts USD into EUR.  The direction is an accident
    of symbol spelling, but persisted histories depend on it, so the rule
    must not change.
    """
    if base.symbol.lower() > exchange.symbol.lower():
        return base.symbol + exchange.symbol
    return exchange.symbol + base.symbol


def is_canonical_direction(base: CurrencyNode, exchange: CurrencyNode) -> bool:
    """True when a base->exchange rate is stored as-is rather than inverted."""
    return base.symbol.lower() > exchange.symbol.lower()


@total_ordering
class ExchangeRateHistoryNode(StoredObject):
    """A single dated rate observation."""

    def __init__(self, on_date: date, rate: Decimal, uuid: UUID | None = None) -> None:
        super().__init__(uuid)
        self.date = on_date
        self.rate = rate

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ExchangeRateHistoryNode):
            return NotImplemented
        return (self.date, str(self.uuid)) < (other.date, str(other.uuid))

    __eq__ = StoredObject.__eq__
    __hash__ = StoredObject.__hash__

    def __repr__(self) -> str:
        return f"ExchangeRateHistoryNode({self.date.isoformat()}, {self.rate})"


class ExchangeRate(StoredObject):
    """
    Dated rate history for one canonical currency pair.

    Contract:
        Rates are stored in the canonical direction of ``rate_id``.  Callers
        wanting the other direction go through ``CurrencyNode``.

    Guarantees:
        - History is kept sorted by date.
        - ``get_rate(day)`` is an exact-date lookup returning ZERO when there
          is no observation for that day.
        - ``get_closest_rate(day)`` falls back to the latest observation on
          or before ``day``.
    """

    def __init__(self, rate_id: str, uuid: UUID | None = None) -> None:
        super().__init__(uuid)
        self.rate_id = rate_id
        self._history: list[ExchangeRateHistoryNode] = []
        self._lock = threading.RLock()

    @property
    def history(self) -> list[ExchangeRateHistoryNode]:
        with self._lock:
            return list(self._history)

    def contains(self, on_date: date) -> bool:
        return self.get_history_node(on_date) is not None

    def get_history_node(self, on_date: date) -> ExchangeRateHistoryNode | None:
        with self._lock:
            for node in self._history:
                if node.date == on_date:
                    return node
        return None

    def add_history_node(self, node: ExchangeRateHistoryNode) -> bool:
        with self._lock:
            if any(n.date == node.date for n in self._history):
                return False
            insort(self._history, node)
            return True

    def remove_history_node(self, node: ExchangeRateHistoryNode) -> bool:
        with self._lock:
            if node in self._history:
                self._history.remove(node)
                return True
            return False

    def get_rate(self, on_date: date | None = None) -> Decimal:
        """Exact-date rate, ZERO if none; latest rate (ONE if empty) without a date."""
        with self._lock:
            if on_date is None:
                return self._history[-1].rate if self._history else ONE
            node = self.get_history_node(on_date)
            return node.rate if node is not None else ZERO

    def get_closest_rate(self, on_date: date) -> Decimal | None:
        """Latest rate observed on or before ``on_date``."""
        with self._lock:
            dates = [n.date for n in self._history]
            index = bisect_right(dates, on_date)
            if index == 0:
                return None
            return self._history[index - 1].rate

    def __repr__(self) -> str:
        return f"ExchangeRate({self.rate_id}, points={len(self._history)})"

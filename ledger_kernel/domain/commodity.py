"""
Module: ledger_kernel.domain.commodity
Responsibility: Units of account (currencies) and tradable instruments
    (securities), including security price history and corporate events.
Architecture position: Kernel > Domain.  Depends on exchange_rate and values.

Invariants enforced:
    - A SecurityNode has at most one price-history node per date.
    - Security history events are de-duplicated by value equality.
    - Currency conversion inverts stored rates with the shared math context.

Failure modes:
    - ``add_history_node`` returns False when the date already exists.
"""

from __future__ import annotations

import threading
from bisect import bisect_right, insort
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import total_ordering
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from ledger_kernel.domain.exchange_rate import is_canonical_direction
from ledger_kernel.domain.stored_object import StoredObject
from ledger_kernel.domain.values import ONE, ZERO, invert, multiply

if TYPE_CHECKING:
    from ledger_kernel.domain.exchange_rate import ExchangeRate


class QuoteSource(Enum):
    """Where automatic price updates for a security come from."""

    NONE = "none"
    YAHOO = "yahoo"
    YAHOO_UK = "yahoo_uk"
    ALPHA_VANTAGE = "alpha_vantage"


class SecurityHistoryEventType(Enum):
    DIVIDEND = "dividend"
    SPLIT = "split"


class ExchangeRateSource(Protocol):
    """Lookup a CurrencyNode uses to find the rate history for a pair."""

    def get_exchange_rate_node(
        self, base: CurrencyNode, exchange: CurrencyNode
    ) -> ExchangeRate | None: ...


@total_ordering
class CommodityNode(StoredObject):
    """
    Abstract unit of value: a currency or a security.

    Ordering and display are by symbol; identity is by uuid.
    """

    def __init__(
        self,
        symbol: str = "",
        scale: int = 2,
        description: str = "",
        prefix: str = "",
        suffix: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.symbol = symbol
        self.scale = scale
        self.description = description
        self.prefix = prefix
        self.suffix = suffix

    def copy_fields_from(self, template: CommodityNode) -> None:
        self.symbol = template.symbol
        self.scale = template.scale
        self.description = template.description
        self.prefix = template.prefix
        self.suffix = template.suffix

    def format(self, amount: Decimal) -> str:
        quantum = Decimal(1).scaleb(-self.scale)
        return f"{self.prefix}{amount.quantize(quantum)}{self.suffix}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CommodityNode):
            return NotImplemented
        return (self.symbol, str(self.uuid)) < (other.symbol, str(other.uuid))

    __eq__ = StoredObject.__eq__
    __hash__ = StoredObject.__hash__

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol!r}, scale={self.scale})"


class CurrencyNode(CommodityNode):
    """
    A currency.  Converts amounts into other currencies through the
    exchange-rate source the DAO attaches when the node is stored.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.exchange_rate_source: ExchangeRateSource | None = None

    def get_exchange_rate(
        self, exchange: CurrencyNode | None, on_date: date | None = None
    ) -> Decimal:
        """
        Rate that converts an amount in this currency into ``exchange``.

        With no date the latest observation is used; with a date the
        closest observation on or before it.  Missing history yields ONE.
        """
        if exchange is None or exchange == self:
            return ONE
        if self.exchange_rate_source is None:
            return ONE

        rate_node = self.exchange_rate_source.get_exchange_rate_node(self, exchange)
        if rate_node is None:
            return ONE

        if on_date is None:
            stored = rate_node.get_rate()
        else:
            stored = rate_node.get_closest_rate(on_date)
            if stored is None:
                return ONE

        if stored == ZERO:
            return ONE
        if is_canonical_direction(self, exchange):
            return stored
        return invert(stored)

    def convert(self, amount: Decimal, exchange: CurrencyNode, on_date: date | None = None) -> Decimal:
        return multiply(amount, self.get_exchange_rate(exchange, on_date))


@total_ordering
class SecurityHistoryNode(StoredObject):
    """One day of price history.  Ordered by date; identity by uuid."""

    def __init__(
        self,
        on_date: date,
        price: Decimal,
        high: Decimal = ZERO,
        low: Decimal = ZERO,
        volume: int = 0,
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.date = on_date
        self.price = price
        self.high = high
        self.low = low
        self.volume = volume

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SecurityHistoryNode):
            return NotImplemented
        return (self.date, str(self.uuid)) < (other.date, str(other.uuid))

    __eq__ = StoredObject.__eq__
    __hash__ = StoredObject.__hash__

    def __repr__(self) -> str:
        return f"SecurityHistoryNode({self.date.isoformat()}, {self.price})"


@dataclass(frozen=True)
class SecurityHistoryEvent:
    """A dividend or split, identified by its full value."""

    type: SecurityHistoryEventType
    date: date
    value: Decimal


class SecurityNode(CommodityNode):
    """
    A tradable instrument priced in its reported currency.

    Contract:
        ``reported_currency`` must be set before the node is stored.

    Guarantees:
        - History is kept sorted by date with one node per date.
        - ``get_closest_history_node(day)`` returns the latest node on or
          before ``day``.
    """

    def __init__(
        self,
        symbol: str = "",
        scale: int = 2,
        description: str = "",
        prefix: str = "",
        suffix: str = "",
        reported_currency: CurrencyNode | None = None,
        quote_source: QuoteSource = QuoteSource.NONE,
        isin: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(symbol, scale, description, prefix, suffix, uuid)
        self.reported_currency = reported_currency
        self.quote_source = quote_source
        self.isin = isin
        self._history: list[SecurityHistoryNode] = []
        self._events: set[SecurityHistoryEvent] = set()
        self._lock = threading.RLock()

    def copy_fields_from(self, template: CommodityNode) -> None:
        super().copy_fields_from(template)
        if isinstance(template, SecurityNode):
            self.reported_currency = template.reported_currency
            self.quote_source = template.quote_source
            self.isin = template.isin

    # -- price history ---------------------------------------------------

    @property
    def history(self) -> list[SecurityHistoryNode]:
        with self._lock:
            return list(self._history)

    def add_history_node(self, node: SecurityHistoryNode) -> bool:
        with self._lock:
            if any(n.date == node.date for n in self._history):
                return False
            insort(self._history, node)
            return True

    def remove_history_node(self, on_date: date) -> SecurityHistoryNode | None:
        with self._lock:
            for node in self._history:
                if node.date == on_date:
                    self._history.remove(node)
                    return node
        return None

    def get_history_node(self, on_date: date) -> SecurityHistoryNode | None:
        with self._lock:
            for node in self._history:
                if node.date == on_date:
                    return node
        return None

    def get_closest_history_node(self, on_date: date) -> SecurityHistoryNode | None:
        with self._lock:
            index = bisect_right([n.date for n in self._history], on_date)
            return self._history[index - 1] if index else None

    def get_latest_history_node(self) -> SecurityHistoryNode | None:
        with self._lock:
            return self._history[-1] if self._history else None

    def get_market_price(self, on_date: date, currency: CurrencyNode) -> Decimal:
        """Closest-prior history price converted into ``currency``."""
        node = self.get_closest_history_node(on_date)
        if node is None or self.reported_currency is None:
            return ZERO
        return multiply(node.price, self.reported_currency.get_exchange_rate(currency))

    # -- corporate events ------------------------------------------------

    @property
    def history_events(self) -> list[SecurityHistoryEvent]:
        with self._lock:
            return sorted(self._events, key=lambda e: (e.date, e.type.value, e.value))

    def add_history_event(self, event: SecurityHistoryEvent) -> bool:
        with self._lock:
            if event in self._events:
                return False
            self._events.add(event)
            return True

    def remove_history_event(self, event: SecurityHistoryEvent) -> bool:
        with self._lock:
            if event not in self._events:
                return False
            self._events.discard(event)
            return True

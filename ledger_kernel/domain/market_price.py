"""
Market price resolution for a security on a given date.

Resolution order:
    1. An exact price-history node for the date wins outright.
    2. Otherwise the closest prior history node is the baseline.
    3. An investment transaction in that security dated after the baseline
       and before the requested date (or on it) replaces the baseline when
       its price is positive.  Later transactions in the iteration win over
       earlier ones because the baseline date moves forward with them.
    4. The price is converted from the security's reported currency into
       the requested base currency at the current rate.

Transaction prices are usually fresher than scheduled history, but a
dividend's zero price must never replace a real price.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.commodity import CurrencyNode, SecurityNode
from ledger_kernel.domain.investment import InvestmentTransaction
from ledger_kernel.domain.transaction import Transaction
from ledger_kernel.domain.values import ZERO, multiply

_EPOCH = date(1970, 1, 1)


def get_market_price(
    transactions: Iterable[Transaction],
    node: SecurityNode,
    base_currency: CurrencyNode,
    on_date: date,
) -> Decimal:
    if node.get_history_node(on_date) is not None:
        return node.get_market_price(on_date, base_currency)

    price_date = _EPOCH
    price = ZERO

    closest = node.get_closest_history_node(on_date)
    if closest is not None:
        price = closest.price
        price_date = closest.date

    for transaction in transactions:
        if not isinstance(transaction, InvestmentTransaction):
            continue
        if transaction.security_node != node:
            continue
        t_date = transaction.date
        if (price_date < t_date < on_date) or t_date == on_date:
            candidate = transaction.price
            if candidate is not None and candidate > ZERO:
                price = candidate
                price_date = t_date

    if node.reported_currency is None:
        return price
    return multiply(price, node.reported_currency.get_exchange_rate(base_currency))

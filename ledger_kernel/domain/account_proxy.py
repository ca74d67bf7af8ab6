"""
Balance strategies selected by account type.

``AccountProxy`` sums signed transaction amounts, which is all a banking,
income, expense or equity account needs.  ``InvestmentAccountProxy`` adds
the market value of the securities held, priced through
``market_price.get_market_price``.

The proxies read the account's transaction list through its public,
lock-guarded accessors.  They never touch the balance cache; ``Account``
owns caching.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from ledger_kernel.domain.investment import InvestmentTransaction
from ledger_kernel.domain.market_price import get_market_price
from ledger_kernel.domain.transaction import ReconciledState, Transaction
from ledger_kernel.domain.values import ZERO, multiply

if TYPE_CHECKING:
    from ledger_kernel.domain.account import Account
    from ledger_kernel.domain.commodity import SecurityNode


def _sum(account: Account, transactions: list[Transaction]) -> Decimal:
    total = ZERO
    for transaction in transactions:
        total += transaction.get_amount(account)
    return total


class AccountProxy:
    """Sum-of-signed-amounts balance strategy."""

    def __init__(self, account: Account) -> None:
        self.account = account

    def get_balance(self) -> Decimal:
        return _sum(self.account, self.account.get_sorted_transactions())

    def get_balance_at(self, index: int) -> Decimal:
        """Running balance including the transaction at ``index``."""
        transactions = self.account.get_sorted_transactions()
        return _sum(self.account, transactions[: index + 1])

    def get_balance_between(self, start: date, end: date) -> Decimal:
        return _sum(self.account, self.account.get_transactions(start, end))

    def get_balance_to(self, end: date) -> Decimal:
        transactions = [t for t in self.account.get_sorted_transactions() if t.date <= end]
        return _sum(self.account, transactions)

    def get_reconciled_balance(self) -> Decimal:
        transactions = [
            t
            for t in self.account.get_sorted_transactions()
            if t.get_reconciled(self.account) is not ReconciledState.NOT_RECONCILED
        ]
        return _sum(self.account, transactions)

    def get_cash_balance(self) -> Decimal:
        return self.get_balance()

    def get_market_value(self, on_date: date | None = None) -> Decimal:
        return ZERO


class InvestmentAccountProxy(AccountProxy):
    """Cash plus the market value of every security held."""

    def get_cash_balance(self) -> Decimal:
        return super().get_balance()

    def get_shares(
        self,
        node: SecurityNode,
        on_date: date | None = None,
        transactions: list[Transaction] | None = None,
    ) -> Decimal:
        if transactions is None:
            transactions = self.account.get_sorted_transactions()
        shares = ZERO
        for transaction in transactions:
            if not isinstance(transaction, InvestmentTransaction):
                continue
            if transaction.security_node != node:
                continue
            if transaction.investment_account is not self.account:
                continue
            if on_date is not None and transaction.date > on_date:
                continue
            shares += transaction.share_delta
        return shares

    def _value_of(self, transactions: list[Transaction], on_date: date) -> Decimal:
        all_transactions = self.account.get_sorted_transactions()
        value = ZERO
        for node in self.account.get_securities():
            shares = self.get_shares(node, on_date, transactions)
            if shares == ZERO:
                continue
            price = get_market_price(all_transactions, node, self.account.currency_node, on_date)
            value += multiply(shares, price)
        return value

    def get_market_value(self, on_date: date | None = None) -> Decimal:
        on_date = on_date or self.account.clock.today()
        return self._value_of(self.account.get_sorted_transactions(), on_date)

    def get_balance(self) -> Decimal:
        return self.get_cash_balance() + self.get_market_value()

    def get_balance_at(self, index: int) -> Decimal:
        transactions = self.account.get_sorted_transactions()[: index + 1]
        if not transactions:
            return ZERO
        return _sum(self.account, transactions) + self._value_of(
            transactions, transactions[-1].date
        )

    def get_balance_between(self, start: date, end: date) -> Decimal:
        transactions = self.account.get_transactions(start, end)
        return _sum(self.account, transactions) + self._value_of(transactions, end)

    def get_balance_to(self, end: date) -> Decimal:
        transactions = [t for t in self.account.get_sorted_transactions() if t.date <= end]
        return _sum(self.account, transactions) + self._value_of(transactions, end)

    def get_reconciled_balance(self) -> Decimal:
        transactions = [
            t
            for t in self.account.get_sorted_transactions()
            if t.get_reconciled(self.account) is not ReconciledState.NOT_RECONCILED
        ]
        today = self.account.clock.today()
        return _sum(self.account, transactions) + self._value_of(transactions, today)

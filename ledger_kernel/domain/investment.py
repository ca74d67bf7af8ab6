"""
Module: ledger_kernel.domain.investment
Responsibility: Investment transactions.  Each investment action (buy,
    sell, dividend, reinvested dividend, split, merge, add, remove, return
    of capital) is one frozen variant carrying only its own fields, and a
    single validation function maps every variant to its entry-shape rules.
Architecture position: Kernel > Domain.  Extends transaction; used by
    transaction_factory, market_price, account_proxy and the engine.

Shape of an investment transaction:
    - Exactly one INVESTMENT-tagged single entry in the investment account.
      Its amount is the cash effect of the action on that account
      (negative for purchases, positive for sales, zero for share-only
      actions).
    - Dividend, reinvested dividend and return of capital add one income
      entry (tag DIVIDEND or RETURN_OF_CAPITAL) crediting the investment
      account from an income account.
    - Buy and sell may add INVESTMENT_CASH_TRANSFER entries that move the
      cash to or from an external cash account.

Invariants enforced:
    - Quantities are strictly positive; direction comes from the variant.
    - Prices and fees are non-negative.
    - Dividend and return-of-capital amounts are strictly positive.
    - Actions without a price report ZERO, so they never override a
      security's market price.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Union
from uuid import UUID

from ledger_kernel.domain.transaction import (
    Transaction,
    TransactionTag,
    TransactionType,
)
from ledger_kernel.domain.values import ZERO

if TYPE_CHECKING:
    from ledger_kernel.domain.account import Account
    from ledger_kernel.domain.commodity import SecurityNode
    from ledger_kernel.domain.transaction import TransactionEntry


# ---------------------------------------------------------------------------
# Action variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuyShares:
    quantity: Decimal
    price: Decimal
    fees: Decimal = ZERO


@dataclass(frozen=True)
class SellShares:
    quantity: Decimal
    price: Decimal
    fees: Decimal = ZERO


@dataclass(frozen=True)
class Dividend:
    amount: Decimal


@dataclass(frozen=True)
class ReinvestDividend:
    quantity: Decimal
    price: Decimal
    fees: Decimal = ZERO


@dataclass(frozen=True)
class SplitShares:
    quantity: Decimal


@dataclass(frozen=True)
class MergeShares:
    quantity: Decimal


@dataclass(frozen=True)
class AddShares:
    quantity: Decimal
    price: Decimal = ZERO


@dataclass(frozen=True)
class RemoveShares:
    quantity: Decimal
    price: Decimal = ZERO


@dataclass(frozen=True)
class ReturnOfCapital:
    amount: Decimal


InvestmentAction = Union[
    BuyShares,
    SellShares,
    Dividend,
    ReinvestDividend,
    SplitShares,
    MergeShares,
    AddShares,
    RemoveShares,
    ReturnOfCapital,
]


def action_type(action: InvestmentAction) -> TransactionType:
    match action:
        case BuyShares():
            return TransactionType.BUYSHARE
        case SellShares():
            return TransactionType.SELLSHARE
        case Dividend():
            return TransactionType.DIVIDEND
        case ReinvestDividend():
            return TransactionType.REINVESTDIV
        case SplitShares():
            return TransactionType.SPLITSHARE
        case MergeShares():
            return TransactionType.MERGESHARE
        case AddShares():
            return TransactionType.ADDSHARE
        case RemoveShares():
            return TransactionType.REMOVESHARE
        case ReturnOfCapital():
            return TransactionType.RETURNOFCAPITAL
    return TransactionType.INVALID


def share_delta(action: InvestmentAction) -> Decimal:
    """Signed change in shares held caused by the action."""
    match action:
        case BuyShares(quantity=q) | ReinvestDividend(quantity=q) | SplitShares(quantity=q) | AddShares(quantity=q):
            return q
        case SellShares(quantity=q) | MergeShares(quantity=q) | RemoveShares(quantity=q):
            return -q
    return ZERO


def action_price(action: InvestmentAction) -> Decimal:
    match action:
        case BuyShares(price=p) | SellShares(price=p) | ReinvestDividend(price=p):
            return p
        case AddShares(price=p) | RemoveShares(price=p):
            return p
    return ZERO


def cash_effect(action: InvestmentAction) -> Decimal:
    """Expected amount of the investment entry (cash change in the account)."""
    match action:
        case BuyShares(quantity=q, price=p, fees=f) | ReinvestDividend(quantity=q, price=p, fees=f):
            return -(q * p + f)
        case SellShares(quantity=q, price=p, fees=f):
            return q * p - f
    return ZERO


def income_amount(action: InvestmentAction) -> Decimal:
    """Amount the income entry must carry, ZERO when the action has none."""
    match action:
        case Dividend(amount=a) | ReturnOfCapital(amount=a):
            return a
        case ReinvestDividend(quantity=q, price=p, fees=f):
            return q * p + f
    return ZERO


def income_tag(action: InvestmentAction) -> TransactionTag | None:
    match action:
        case Dividend() | ReinvestDividend():
            return TransactionTag.DIVIDEND
        case ReturnOfCapital():
            return TransactionTag.RETURN_OF_CAPITAL
    return None


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


class InvestmentTransaction(Transaction):
    """
    A transaction that changes a security position.

    Contract:
        Built by ``transaction_factory``; the engine checks it with
        ``validate_investment_transaction`` before accepting it.
    """

    def __init__(
        self,
        on_date: date,
        investment_account: Account | None,
        security_node: SecurityNode | None,
        action: InvestmentAction,
        number: str = "",
        payee: str = "",
        memo: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(on_date, number, payee, memo, uuid)
        self.investment_account = investment_account
        self.security_node = security_node
        self.action = action

    @property
    def transaction_type(self) -> TransactionType:
        if self.get_investment_entry() is None:
            return TransactionType.INVALID
        return action_type(self.action)

    @property
    def price(self) -> Decimal:
        return action_price(self.action)

    @property
    def quantity(self) -> Decimal:
        return getattr(self.action, "quantity", ZERO)

    @property
    def share_delta(self) -> Decimal:
        return share_delta(self.action)

    def get_investment_entry(self) -> TransactionEntry | None:
        for entry in self._entries:
            if (
                entry.transaction_tag is TransactionTag.INVESTMENT
                and entry.is_single_entry()
                and entry.credit_account is self.investment_account
            ):
                return entry
        return None

    def get_income_entries(self) -> list[TransactionEntry]:
        tags = (TransactionTag.DIVIDEND, TransactionTag.RETURN_OF_CAPITAL)
        return [e for e in self._entries if e.transaction_tag in tags]

    def clone(self) -> InvestmentTransaction:
        copy = InvestmentTransaction(
            self.date, self.investment_account, self.security_node, self.action
        )
        self._copy_header_into(copy)
        for entry in self._entries:
            copy.add_entry(entry.clone())
        return copy


def validate_investment_transaction(transaction: InvestmentTransaction) -> list[str]:
    """
    Check an investment transaction against its action's entry shape.

    Returns a list of human-readable problems; empty means valid.
    """
    problems: list[str] = []
    action = transaction.action

    if transaction.investment_account is None:
        problems.append("missing investment account")
    if transaction.security_node is None:
        problems.append("missing security")

    investment_entry = transaction.get_investment_entry()
    if investment_entry is None:
        problems.append("missing investment entry")
    elif investment_entry.credit_amount != cash_effect(action):
        problems.append(
            f"investment entry amount {investment_entry.credit_amount} "
            f"does not match {cash_effect(action)}"
        )

    match action:
        case BuyShares(quantity=q, price=p, fees=f) | SellShares(quantity=q, price=p, fees=f) | ReinvestDividend(quantity=q, price=p, fees=f):
            if q <= ZERO:
                problems.append("quantity must be positive")
            if p < ZERO:
                problems.append("price must not be negative")
            if f < ZERO:
                problems.append("fees must not be negative")
        case AddShares(quantity=q, price=p) | RemoveShares(quantity=q, price=p):
            if q <= ZERO:
                problems.append("quantity must be positive")
            if p < ZERO:
                problems.append("price must not be negative")
        case SplitShares(quantity=q) | MergeShares(quantity=q):
            if q <= ZERO:
                problems.append("quantity must be positive")
        case Dividend(amount=a) | ReturnOfCapital(amount=a):
            if a <= ZERO:
                problems.append("amount must be positive")
        case _:
            problems.append(f"unknown investment action {type(action).__name__}")

    expected_tag = income_tag(action)
    income_entries = transaction.get_income_entries()
    if expected_tag is None:
        if income_entries:
            problems.append("unexpected income entry")
    else:
        matching = [e for e in income_entries if e.transaction_tag is expected_tag]
        if len(matching) != 1 or len(income_entries) != 1:
            problems.append(f"expected exactly one {expected_tag.name} entry")
        elif matching[0].get_amount(transaction.investment_account) != income_amount(action):
            problems.append("income entry amount does not match the action")

    return problems

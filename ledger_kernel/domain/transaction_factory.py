"""
Builders for the common transaction shapes.

Callers assemble transactions here and hand them to ``Engine.add_transaction``;
nothing in this module touches the engine or persistence.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ledger_kernel.domain.account import Account
from ledger_kernel.domain.commodity import SecurityNode
from ledger_kernel.domain.investment import (
    AddShares,
    BuyShares,
    Dividend,
    InvestmentAction,
    InvestmentTransaction,
    MergeShares,
    ReinvestDividend,
    RemoveShares,
    ReturnOfCapital,
    SellShares,
    SplitShares,
    cash_effect,
    income_amount,
    income_tag,
)
from ledger_kernel.domain.transaction import Transaction, TransactionEntry, TransactionTag
from ledger_kernel.domain.values import ZERO


def generate_double_entry_transaction(
    credit_account: Account,
    debit_account: Account,
    amount: Decimal,
    on_date: date,
    memo: str = "",
    payee: str = "",
    number: str = "",
) -> Transaction:
    """Move ``amount`` out of ``debit_account`` into ``credit_account``."""
    transaction = Transaction(on_date, number, payee)
    entry = TransactionEntry(credit_account, debit_account, amount, memo)
    transaction.add_entry(entry)
    transaction.memo = memo
    return transaction


def generate_multi_currency_transaction(
    credit_account: Account,
    debit_account: Account,
    credit_amount: Decimal,
    debit_amount: Decimal,
    on_date: date,
    memo: str = "",
    payee: str = "",
    number: str = "",
) -> Transaction:
    """
    Transfer between accounts in different currencies.

    ``credit_amount`` is in the credit account's currency and
    ``debit_amount`` (given positive) in the debit account's; their ratio
    is the rate of the transfer.
    """
    transaction = Transaction(on_date, number, payee, memo)
    entry = TransactionEntry(credit_account, debit_account, memo=memo)
    entry.credit_amount = abs(credit_amount)
    entry.debit_amount = -abs(debit_amount)
    transaction.add_entry(entry)
    return transaction


def generate_single_entry_transaction(
    account: Account,
    amount: Decimal,
    on_date: date,
    memo: str = "",
    payee: str = "",
    number: str = "",
) -> Transaction:
    """Adjust one account's balance by ``amount`` (opening balances, fixes)."""
    transaction = Transaction(on_date, number, payee, memo)
    transaction.add_entry(TransactionEntry(account, account, amount, memo))
    return transaction


def generate_split_transaction(
    common_account: Account,
    splits: list[tuple[Account, Decimal]],
    on_date: date,
    memo: str = "",
    payee: str = "",
    number: str = "",
) -> Transaction:
    """
    Spread money out of ``common_account`` over several accounts.

    Each ``(account, amount)`` credits ``account`` and debits the common
    account by ``amount``.
    """
    transaction = Transaction(on_date, number, payee, memo)
    for account, amount in splits:
        transaction.add_entry(TransactionEntry(account, common_account, amount, memo))
    return transaction


# ---------------------------------------------------------------------------
# Investment transactions
# ---------------------------------------------------------------------------


def _investment_transaction(
    investment_account: Account,
    node: SecurityNode,
    action: InvestmentAction,
    on_date: date,
    memo: str,
    income_account: Account | None = None,
    cash_account: Account | None = None,
) -> InvestmentTransaction:
    transaction = InvestmentTransaction(
        on_date, investment_account, node, action, payee=node.symbol, memo=memo
    )

    investment_entry = TransactionEntry(
        investment_account, investment_account, cash_effect(action), memo
    )
    investment_entry.transaction_tag = TransactionTag.INVESTMENT
    transaction.add_entry(investment_entry)

    tag = income_tag(action)
    if tag is not None:
        income = TransactionEntry(investment_account, income_account, income_amount(action), memo)
        income.transaction_tag = tag
        transaction.add_entry(income)

    transfer = cash_effect(action)
    if cash_account is not None and cash_account is not investment_account and transfer != ZERO:
        # Buying pulls cash in from the external account, selling pushes it out
        if transfer < ZERO:
            entry = TransactionEntry(investment_account, cash_account, -transfer, memo)
        else:
            entry = TransactionEntry(cash_account, investment_account, transfer, memo)
        entry.transaction_tag = TransactionTag.INVESTMENT_CASH_TRANSFER
        transaction.add_entry(entry)

    return transaction


def generate_buy_transaction(
    investment_account: Account,
    node: SecurityNode,
    quantity: Decimal,
    price: Decimal,
    on_date: date,
    fees: Decimal = ZERO,
    cash_account: Account | None = None,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, BuyShares(quantity, price, fees), on_date, memo,
        cash_account=cash_account,
    )


def generate_sell_transaction(
    investment_account: Account,
    node: SecurityNode,
    quantity: Decimal,
    price: Decimal,
    on_date: date,
    fees: Decimal = ZERO,
    cash_account: Account | None = None,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, SellShares(quantity, price, fees), on_date, memo,
        cash_account=cash_account,
    )


def generate_dividend_transaction(
    investment_account: Account,
    income_account: Account,
    node: SecurityNode,
    amount: Decimal,
    on_date: date,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, Dividend(amount), on_date, memo, income_account=income_account
    )


def generate_reinvest_dividend_transaction(
    investment_account: Account,
    income_account: Account,
    node: SecurityNode,
    quantity: Decimal,
    price: Decimal,
    on_date: date,
    fees: Decimal = ZERO,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, ReinvestDividend(quantity, price, fees), on_date, memo,
        income_account=income_account,
    )


def generate_return_of_capital_transaction(
    investment_account: Account,
    income_account: Account,
    node: SecurityNode,
    amount: Decimal,
    on_date: date,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, ReturnOfCapital(amount), on_date, memo,
        income_account=income_account,
    )


def generate_share_split_transaction(
    investment_account: Account, node: SecurityNode, quantity: Decimal, on_date: date, memo: str = ""
) -> InvestmentTransaction:
    return _investment_transaction(investment_account, node, SplitShares(quantity), on_date, memo)


def generate_merge_transaction(
    investment_account: Account, node: SecurityNode, quantity: Decimal, on_date: date, memo: str = ""
) -> InvestmentTransaction:
    return _investment_transaction(investment_account, node, MergeShares(quantity), on_date, memo)


def generate_add_shares_transaction(
    investment_account: Account,
    node: SecurityNode,
    quantity: Decimal,
    price: Decimal,
    on_date: date,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, AddShares(quantity, price), on_date, memo
    )


def generate_remove_shares_transaction(
    investment_account: Account,
    node: SecurityNode,
    quantity: Decimal,
    price: Decimal,
    on_date: date,
    memo: str = "",
) -> InvestmentTransaction:
    return _investment_transaction(
        investment_account, node, RemoveShares(quantity, price), on_date, memo
    )

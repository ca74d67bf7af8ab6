"""
Module: ledger_kernel.domain.transaction
Responsibility: The atomic unit of double-entry bookkeeping.  A Transaction
    owns one or more TransactionEntry objects; each entry moves an amount
    from a debit account to a credit account.
Architecture position: Kernel > Domain.  Referenced by account, investment,
    reminder and the engine.  References Account only for typing.

Invariants enforced:
    - ``set_amount(x)`` keeps an entry self-balancing: credit = x, debit = -x.
    - A multi-currency entry carries independent credit and debit amounts
      whose ratio is the exchange rate at transaction time.
    - Reconciled state is tracked per side of each entry, so the same
      transaction can be reconciled in one account and open in another.

Failure modes:
    - No exceptions.  Shape problems (missing accounts, zero entries,
      no common account in a split) are reported by the engine's
      validation, never raised here.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from functools import total_ordering
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.stored_object import StoredObject
from ledger_kernel.domain.values import ZERO

if TYPE_CHECKING:
    from ledger_kernel.domain.account import Account
    from ledger_kernel.domain.tag import Tag


class TransactionType(Enum):
    SINGLENTRY = "single_entry"
    DOUBLEENTRY = "double_entry"
    SPLITENTRY = "split_entry"
    BUYSHARE = "buy_share"
    SELLSHARE = "sell_share"
    DIVIDEND = "dividend"
    REINVESTDIV = "reinvest_dividend"
    SPLITSHARE = "split_share"
    MERGESHARE = "merge_share"
    ADDSHARE = "add_share"
    REMOVESHARE = "remove_share"
    RETURNOFCAPITAL = "return_of_capital"
    INVALID = "invalid"


class ReconciledState(Enum):
    NOT_RECONCILED = "not_reconciled"
    CLEARED = "cleared"
    RECONCILED = "reconciled"


class TransactionTag(Enum):
    """What an entry represents inside its transaction."""

    BANK = "bank"
    GAIN_LOSS = "gain_loss"
    INVESTMENT = "investment"
    INVESTMENT_CASH_TRANSFER = "investment_cash_transfer"
    INVESTMENT_FEE = "investment_fee"
    DIVIDEND = "dividend"
    RETURN_OF_CAPITAL = "return_of_capital"


class TransactionEntry(StoredObject):
    """
    One leg pair of a transaction.

    Single-entry when the credit and debit account are the same account;
    ``get_amount`` then reports the credit amount.
    """

    def __init__(
        self,
        credit_account: Account | None = None,
        debit_account: Account | None = None,
        amount: Decimal | None = None,
        memo: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.credit_account = credit_account
        self.debit_account = debit_account
        self.credit_amount: Decimal | None = None
        self.debit_amount: Decimal | None = None
        self.memo = memo
        self.transaction_tag: TransactionTag | None = TransactionTag.BANK
        self.credit_reconciled = ReconciledState.NOT_RECONCILED
        self.debit_reconciled = ReconciledState.NOT_RECONCILED
        if amount is not None:
            self.set_amount(amount)

    def set_amount(self, amount: Decimal) -> None:
        self.credit_amount = amount
        self.debit_amount = -amount

    def is_single_entry(self) -> bool:
        return self.credit_account is not None and self.credit_account is self.debit_account

    def is_multi_currency(self) -> bool:
        if self.credit_account is None or self.debit_account is None:
            return False
        return self.credit_account.currency_node != self.debit_account.currency_node

    def get_amount(self, account: Account) -> Decimal:
        if account is self.credit_account:
            return self.credit_amount if self.credit_amount is not None else ZERO
        if account is self.debit_account:
            return self.debit_amount if self.debit_amount is not None else ZERO
        return ZERO

    def references(self, account: Account) -> bool:
        return account is self.credit_account or account is self.debit_account

    def get_reconciled(self, account: Account) -> ReconciledState:
        if account is self.credit_account:
            return self.credit_reconciled
        if account is self.debit_account:
            return self.debit_reconciled
        return ReconciledState.NOT_RECONCILED

    def set_reconciled(self, account: Account, state: ReconciledState) -> None:
        if account is self.credit_account:
            self.credit_reconciled = state
        if account is self.debit_account:
            self.debit_reconciled = state

    def has_null_field(self) -> bool:
        return (
            self.credit_account is None
            or self.debit_account is None
            or self.credit_amount is None
            or self.debit_amount is None
            or self.transaction_tag is None
        )

    def copy_into(self, other: TransactionEntry) -> TransactionEntry:
        other.credit_account = self.credit_account
        other.debit_account = self.debit_account
        other.credit_amount = self.credit_amount
        other.debit_amount = self.debit_amount
        other.memo = self.memo
        other.transaction_tag = self.transaction_tag
        other.credit_reconciled = self.credit_reconciled
        other.debit_reconciled = self.debit_reconciled
        return other

    def clone(self) -> TransactionEntry:
        return self.copy_into(TransactionEntry())

    def __repr__(self) -> str:
        credit = self.credit_account.name if self.credit_account else None
        debit = self.debit_account.name if self.debit_account else None
        return (
            f"TransactionEntry(credit={credit}:{self.credit_amount}, "
            f"debit={debit}:{self.debit_amount})"
        )


@total_ordering
class Transaction(StoredObject):
    """
    A dated group of entries.

    Contract:
        Entries are added with ``add_entry`` before the transaction is
        handed to the engine.  After that, changes go through the engine.

    Guarantees:
        - ``get_accounts()`` is the set of non-null accounts of all entries.
        - Ordering is by date, number, entry timestamp, then uuid.
    """

    def __init__(
        self,
        on_date: date,
        number: str = "",
        payee: str = "",
        memo: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.date: date = on_date
        self.number = number
        self.payee = payee
        self.memo = memo
        self.fitid = ""
        self.timestamp: datetime = datetime.now(timezone.utc)
        self.tags: set[Tag] = set()
        self._entries: list[TransactionEntry] = []

    # -- entries ---------------------------------------------------------

    @property
    def entries(self) -> list[TransactionEntry]:
        return list(self._entries)

    def add_entry(self, entry: TransactionEntry) -> None:
        if entry not in self._entries:
            self._entries.append(entry)

    def remove_entry(self, entry: TransactionEntry) -> None:
        if entry in self._entries:
            self._entries.remove(entry)

    def size(self) -> int:
        return len(self._entries)

    # -- derived shape ---------------------------------------------------

    @property
    def transaction_type(self) -> TransactionType:
        if len(self._entries) == 1:
            if self._entries[0].is_single_entry():
                return TransactionType.SINGLENTRY
            return TransactionType.DOUBLEENTRY
        if len(self._entries) > 1:
            return TransactionType.SPLITENTRY
        return TransactionType.INVALID

    def get_accounts(self) -> set[Account]:
        accounts: set[Account] = set()
        for entry in self._entries:
            if entry.credit_account is not None:
                accounts.add(entry.credit_account)
            if entry.debit_account is not None:
                accounts.add(entry.debit_account)
        return accounts

    def get_common_account(self) -> Account | None:
        """The account referenced by every entry, if there is one."""
        if not self._entries:
            return None
        for account in self.get_accounts():
            if all(entry.references(account) for entry in self._entries):
                return account
        return None

    def get_amount(self, account: Account) -> Decimal:
        total = ZERO
        for entry in self._entries:
            total += entry.get_amount(account)
        return total

    def get_memo(self, account: Account | None = None) -> str:
        if self.memo or account is None:
            return self.memo
        for entry in self._entries:
            if entry.references(account) and entry.memo:
                return entry.memo
        return ""

    # -- reconciliation --------------------------------------------------

    def get_reconciled(self, account: Account) -> ReconciledState:
        for entry in self._entries:
            if entry.references(account):
                return entry.get_reconciled(account)
        return ReconciledState.NOT_RECONCILED

    def set_reconciled(self, account: Account, state: ReconciledState) -> None:
        for entry in self._entries:
            entry.set_reconciled(account, state)

    def are_accounts_locked(self) -> bool:
        return any(account.locked for account in self.get_accounts())

    def contains_tag(self, tag: Tag) -> bool:
        return tag in self.tags

    # -- copying ---------------------------------------------------------

    def _copy_header_into(self, other: Transaction) -> None:
        other.date = self.date
        other.number = self.number
        other.payee = self.payee
        other.memo = self.memo
        other.fitid = self.fitid
        other.tags = set(self.tags)

    def clone(self) -> Transaction:
        """A copy with fresh uuids that references the same accounts."""
        copy = Transaction(self.date)
        self._copy_header_into(copy)
        for entry in self._entries:
            copy.add_entry(entry.clone())
        return copy

    # -- ordering --------------------------------------------------------

    def sort_key(self) -> tuple:
        return (self.date, self.number, self.timestamp, str(self.uuid))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    __eq__ = StoredObject.__eq__
    __hash__ = StoredObject.__hash__

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.date.isoformat()}, payee={self.payee!r}, "
            f"type={self.transaction_type.name}, entries={len(self._entries)})"
        )

"""
Module: ledger_kernel.domain.account
Responsibility: Hierarchical account node.  Owns its transactions, its
    children, the securities it may hold and a string attribute map, and
    computes cached balances through a type-specific proxy.
Architecture position: Kernel > Domain.  Mutated only by the engine, which
    holds the engine-wide write lock while it does so.

Invariants enforced:
    - A placeholder account never holds transactions.
    - An account is never its own child, and a child appears once.
    - The account type of an immutable type is never changed.
    - Attribute keys are non-empty.
    - The balance caches are cleared on every transaction add/remove and on
      currency change, and recomputed on the next read.

Locking:
    The engine's write lock already serializes every engine-mediated
    mutation, which is the stronger guarantee.  Each of the four collections
    (transactions, children, securities, attributes) additionally has its
    own ReentrantReadWriteLock so that code reading an Account directly,
    outside the engine, never sees a torn collection.  The balance cache
    cells are read and written under the transaction lock.

Failure modes:
    - ImmutableAccountTypeError from ``_set_account_type``.
    - InvalidAttributeKeyError from ``_set_attribute`` / ``get_attribute``.
    - AccountCloneError from ``clone`` and ``copy.copy``.
"""

from __future__ import annotations

from bisect import insort
from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import total_ordering
from uuid import UUID

from ledger_kernel.concurrent.locks import ReentrantReadWriteLock
from ledger_kernel.domain.account_proxy import AccountProxy, InvestmentAccountProxy
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commodity import CurrencyNode, SecurityNode
from ledger_kernel.domain.stored_object import StoredObject
from ledger_kernel.domain.transaction import Transaction
from ledger_kernel.domain.values import ZERO, multiply
from ledger_kernel.exceptions import (
    AccountCloneError,
    ImmutableAccountTypeError,
    InvalidAttributeKeyError,
    require,
)

MAX_ATTRIBUTE_LENGTH = 8192
DEFAULT_ACCOUNT_SEPARATOR = ":"


class AccountGroup(Enum):
    ASSET = "asset"
    EQUITY = "equity"
    EXPENSE = "expense"
    INCOME = "income"
    INVEST = "invest"
    LIABILITY = "liability"
    ROOT = "root"
    SIMPLEINVEST = "simple_invest"


class AccountType(Enum):
    """Account types with their reporting group and mutability."""

    BANK = ("bank", AccountGroup.ASSET, True)
    CASH = ("cash", AccountGroup.ASSET, True)
    CHECKING = ("checking", AccountGroup.ASSET, True)
    CREDIT = ("credit", AccountGroup.LIABILITY, True)
    EQUITY = ("equity", AccountGroup.EQUITY, True)
    EXPENSE = ("expense", AccountGroup.EXPENSE, True)
    INCOME = ("income", AccountGroup.INCOME, True)
    INVEST = ("invest", AccountGroup.INVEST, False)
    ASSET = ("asset", AccountGroup.ASSET, True)
    LIABILITY = ("liability", AccountGroup.LIABILITY, True)
    MONEYMKRT = ("money_market", AccountGroup.ASSET, True)
    MUTUAL = ("mutual", AccountGroup.INVEST, False)
    SIMPLEINVEST = ("simple_invest", AccountGroup.SIMPLEINVEST, True)
    ROOT = ("root", AccountGroup.ROOT, False)

    def __init__(self, key: str, group: AccountGroup, mutable: bool) -> None:
        self.key = key
        self.group = group
        self.mutable = mutable

    @classmethod
    def from_key(cls, key: str) -> AccountType:
        for member in cls:
            if member.key == key:
                return member
        raise ValueError(f"Unknown account type: {key}")


class _CacheCell:
    """A memoized value; ``None`` means stale."""

    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value: Decimal | None = None

    def clear(self) -> None:
        self.value = None


@total_ordering
class Account(StoredObject):
    """
    A node in the account tree.

    Contract:
        Structural changes (parent, children, transactions, type, currency,
        attributes) go through the engine.  The public flags and text fields
        may be set directly on a template account handed to
        ``Engine.modify_account``.

    Guarantees:
        - ``get_children()`` is sorted by name (case-insensitive), then uuid.
        - ``get_sorted_transactions()`` is sorted by date, number, entry
          timestamp, then uuid.
        - ``get_balance()`` equals a cold recomputation at all times.
    """

    def __init__(
        self,
        account_type: AccountType | None = None,
        currency_node: CurrencyNode | None = None,
        name: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self._account_type = account_type
        self._currency_node = currency_node
        self.name = name
        self.description = ""
        self.notes = ""
        self.account_number = ""
        self.bank_id = ""
        self.account_code = 0
        self.locked = False
        self.placeholder = False
        self.visible = True
        self.excluded_from_budget = False

        self._parent: Account | None = None
        self._children: list[Account] = []
        self._transactions: list[Transaction] = []
        self._securities: list[SecurityNode] = []
        self._attributes: dict[str, str] = {}

        self._transaction_lock = ReentrantReadWriteLock("account.transactions")
        self._child_lock = ReentrantReadWriteLock("account.children")
        self._securities_lock = ReentrantReadWriteLock("account.securities")
        self._attribute_lock = ReentrantReadWriteLock("account.attributes")

        self._balance = _CacheCell()
        self._reconciled_balance = _CacheCell()
        self._proxy: AccountProxy | None = None
        self._clock: Clock = SystemClock()

    # ------------------------------------------------------------------
    # Type and currency
    # ------------------------------------------------------------------

    @property
    def account_type(self) -> AccountType | None:
        return self._account_type

    def _set_account_type(self, account_type: AccountType) -> None:
        require(account_type, "account_type", "_set_account_type")
        if self._account_type is not None and self._account_type is not account_type:
            if not self._account_type.mutable:
                raise ImmutableAccountTypeError(
                    self.name, self._account_type.name, account_type.name
                )
        self._account_type = account_type
        self._proxy = None
        self.clear_cached_balances()

    @property
    def currency_node(self) -> CurrencyNode | None:
        return self._currency_node

    def _set_currency_node(self, node: CurrencyNode) -> None:
        if node != self._currency_node:
            self._currency_node = node
            self.clear_cached_balances()

    def member_of(self, group: AccountGroup) -> bool:
        return self._account_type is not None and self._account_type.group is group

    def is_investment(self) -> bool:
        return self.member_of(AccountGroup.INVEST)

    @property
    def clock(self) -> Clock:
        """Source of "today" for market valuation."""
        return self._clock

    def _set_clock(self, clock: Clock) -> None:
        if clock is not self._clock:
            self._clock = clock
            self.clear_cached_balances()

    def get_proxy(self) -> AccountProxy:
        if self._proxy is None:
            if self.is_investment():
                self._proxy = InvestmentAccountProxy(self)
            else:
                self._proxy = AccountProxy(self)
        return self._proxy

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    @property
    def parent(self) -> Account | None:
        return self._parent

    def _set_parent(self, parent: Account | None) -> None:
        self._parent = parent

    def add_child(self, child: Account) -> bool:
        """Attach ``child``; False if it is this account or already a child."""
        with self._child_lock.write_lock():
            if child is self or child in self._children:
                return False
            self._children.append(child)
            child._set_parent(self)
            return True

    def remove_child(self, child: Account) -> bool:
        with self._child_lock.write_lock():
            if child not in self._children:
                return False
            self._children.remove(child)
            child._set_parent(None)
            return True

    def get_children(self) -> list[Account]:
        with self._child_lock.read_lock():
            return sorted(self._children, key=lambda a: (a.name.lower(), str(a.uuid)))

    def get_children_by_code(self) -> list[Account]:
        with self._child_lock.read_lock():
            return sorted(
                self._children,
                key=lambda a: (a.account_code, a.name.lower(), str(a.uuid)),
            )

    def get_child_count(self) -> int:
        with self._child_lock.read_lock():
            return len(self._children)

    def is_parent(self) -> bool:
        return self.get_child_count() > 0

    def contains(self, item: Account | Transaction) -> bool:
        """Direct membership of a child account or a transaction."""
        if isinstance(item, Transaction):
            with self._transaction_lock.read_lock():
                return item in self._transactions
        with self._child_lock.read_lock():
            return item in self._children

    def is_descendant(self, other: Account) -> bool:
        """True when ``other`` is a child, grandchild, ... of this account."""
        for child in self.get_children():
            if child is other or child.is_descendant(other):
                return True
        return False

    def iter_descendants(self) -> Iterator[Account]:
        for child in self.get_children():
            yield child
            yield from child.iter_descendants()

    def get_ancestors(self) -> list[Account]:
        """This account and its parents up to, and including, the root."""
        ancestors: list[Account] = []
        node: Account | None = self
        while node is not None:
            ancestors.append(node)
            node = node.parent
        return ancestors

    def get_depth(self) -> int:
        depth = 0
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def get_path_name(self, separator: str = DEFAULT_ACCOUNT_SEPARATOR) -> str:
        """Full name from below the root, joined with ``separator``."""
        names = [a.name for a in reversed(self.get_ancestors()) if a.parent is not None]
        return separator.join(names) if names else self.name

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(self, transaction: Transaction) -> bool:
        if self.placeholder:
            return False
        with self._transaction_lock.write_lock():
            if transaction in self._transactions:
                return False
            insort(self._transactions, transaction)
            self._clear_cache_locked()
            return True

    def remove_transaction(self, transaction: Transaction) -> bool:
        with self._transaction_lock.write_lock():
            if transaction not in self._transactions:
                return False
            self._transactions.remove(transaction)
            self._clear_cache_locked()
            return True

    def get_sorted_transactions(self) -> list[Transaction]:
        with self._transaction_lock.read_lock():
            return list(self._transactions)

    def get_transactions(self, start: date, end: date) -> list[Transaction]:
        with self._transaction_lock.read_lock():
            return [t for t in self._transactions if start <= t.date <= end]

    def get_transaction_count(self) -> int:
        with self._transaction_lock.read_lock():
            return len(self._transactions)

    def get_transaction_at(self, index: int) -> Transaction:
        with self._transaction_lock.read_lock():
            return self._transactions[index]

    def index_of(self, transaction: Transaction) -> int:
        with self._transaction_lock.read_lock():
            return self._transactions.index(transaction)

    def get_next_transaction_number(self) -> str:
        """One more than the highest numeric check number, or ""."""
        highest: int | None = None
        with self._transaction_lock.read_lock():
            for transaction in self._transactions:
                number = transaction.number.strip()
                if number.isdigit():
                    value = int(number)
                    highest = value if highest is None else max(highest, value)
        return "" if highest is None else str(highest + 1)

    # ------------------------------------------------------------------
    # Securities
    # ------------------------------------------------------------------

    def add_security(self, node: SecurityNode) -> bool:
        with self._securities_lock.write_lock():
            if node in self._securities:
                return False
            insort(self._securities, node)
        self.clear_cached_balances()
        return True

    def remove_security(self, node: SecurityNode) -> bool:
        with self._securities_lock.write_lock():
            if node not in self._securities:
                return False
            self._securities.remove(node)
        self.clear_cached_balances()
        return True

    def get_securities(self) -> list[SecurityNode]:
        with self._securities_lock.read_lock():
            return list(self._securities)

    def contains_security(self, node: SecurityNode) -> bool:
        with self._securities_lock.read_lock():
            return node in self._securities

    def get_used_securities(self) -> set[SecurityNode]:
        """Securities referenced by this account's investment transactions."""
        from ledger_kernel.domain.investment import InvestmentTransaction

        with self._transaction_lock.read_lock():
            return {
                t.security_node
                for t in self._transactions
                if isinstance(t, InvestmentTransaction) and t.security_node is not None
            }

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def _set_attribute(self, key: str, value: str | None) -> None:
        if not key:
            raise InvalidAttributeKeyError(key)
        with self._attribute_lock.write_lock():
            if value is None:
                self._attributes.pop(key, None)
            else:
                self._attributes[key] = value

    def get_attribute(self, key: str) -> str | None:
        if not key:
            raise InvalidAttributeKeyError(key)
        with self._attribute_lock.read_lock():
            return self._attributes.get(key)

    def get_attributes(self) -> dict[str, str]:
        with self._attribute_lock.read_lock():
            return dict(self._attributes)

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def _clear_cache_locked(self) -> None:
        self._balance.clear()
        self._reconciled_balance.clear()

    def clear_cached_balances(self) -> None:
        with self._transaction_lock.write_lock():
            self._clear_cache_locked()

    def get_balance(self) -> Decimal:
        with self._transaction_lock.read_lock():
            if self._balance.value is None:
                self._balance.value = self.get_proxy().get_balance()
            return self._balance.value

    def get_reconciled_balance(self) -> Decimal:
        with self._transaction_lock.read_lock():
            if self._reconciled_balance.value is None:
                self._reconciled_balance.value = self.get_proxy().get_reconciled_balance()
            return self._reconciled_balance.value

    def get_balance_at(self, index: int) -> Decimal:
        with self._transaction_lock.read_lock():
            return self.get_proxy().get_balance_at(index)

    def get_balance_between(self, start: date, end: date) -> Decimal:
        with self._transaction_lock.read_lock():
            return self.get_proxy().get_balance_between(start, end)

    def get_balance_to(self, end: date) -> Decimal:
        with self._transaction_lock.read_lock():
            return self.get_proxy().get_balance_to(end)

    def get_cash_balance(self) -> Decimal:
        with self._transaction_lock.read_lock():
            return self.get_proxy().get_cash_balance()

    def get_market_value(self, on_date: date | None = None) -> Decimal:
        with self._transaction_lock.read_lock():
            return self.get_proxy().get_market_value(on_date)

    def adjust_for_exchange_rate(self, amount: Decimal, node: CurrencyNode | None) -> Decimal:
        if node is None or self._currency_node is None or node == self._currency_node:
            return amount
        return multiply(amount, self._currency_node.get_exchange_rate(node))

    def get_tree_balance(self, node: CurrencyNode | None = None) -> Decimal:
        """Own balance plus every descendant's, in ``node`` (default: own currency)."""
        node = node or self._currency_node
        total = self.adjust_for_exchange_rate(self.get_balance(), node)
        for child in self.get_children():
            total += child.get_tree_balance(node)
        return total

    def get_tree_balance_between(
        self, start: date, end: date, node: CurrencyNode | None = None
    ) -> Decimal:
        node = node or self._currency_node
        total = self.adjust_for_exchange_rate(self.get_balance_between(start, end), node)
        for child in self.get_children():
            total += child.get_tree_balance_between(start, end, node)
        return total

    def get_tree_balance_to(self, end: date, node: CurrencyNode | None = None) -> Decimal:
        node = node or self._currency_node
        total = self.adjust_for_exchange_rate(self.get_balance_to(end), node)
        for child in self.get_children():
            total += child.get_tree_balance_to(end, node)
        return total

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def clone(self) -> Account:
        raise AccountCloneError(self.name)

    def __copy__(self) -> Account:
        raise AccountCloneError(self.name)

    def __deepcopy__(self, memo: dict) -> Account:
        raise AccountCloneError(self.name)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return (self.name.lower(), str(self.uuid)) < (other.name.lower(), str(other.uuid))

    __eq__ = StoredObject.__eq__
    __hash__ = StoredObject.__hash__

    def __repr__(self) -> str:
        type_name = self._account_type.name if self._account_type else None
        return f"{type(self).__name__}({self.name!r}, type={type_name})"


class RootAccount(Account):
    """The single synthetic root of the account tree."""

    def __init__(
        self,
        currency_node: CurrencyNode | None = None,
        name: str = "Root",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(AccountType.ROOT, currency_node, name, uuid)

    def get_balance(self) -> Decimal:
        return ZERO

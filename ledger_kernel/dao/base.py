"""
Module: ledger_kernel.dao.base
Responsibility: Abstract persistence contracts consumed by the engine.  One
    DAO per aggregate family plus an EngineDAO that hands them out.
Architecture position: Kernel > DAO.  The engine depends only on these
    contracts; memory.py and sql.py implement them.  MUST NOT import from
    services/.

Invariants enforced:
    - Mutating methods return True on success and False when the store
      could not apply the change.  They never raise for storage failures;
      the implementation logs the failure and reports False.
    - List accessors exclude objects marked for removal.
    - ``is_dirty()`` reports whether anything changed since the last save.

Failure modes:
    - Implementations log storage errors with ``logger.exception`` and
      return False so the engine can publish a ``_FAILED`` message.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar
from uuid import UUID

from ledger_kernel.domain.stored_object import StoredObject

if TYPE_CHECKING:
    from ledger_kernel.domain.account import Account, RootAccount
    from ledger_kernel.domain.budget import Budget
    from ledger_kernel.domain.commodity import (
        CommodityNode,
        CurrencyNode,
        SecurityHistoryNode,
        SecurityNode,
    )
    from ledger_kernel.domain.config import Config
    from ledger_kernel.domain.exchange_rate import ExchangeRate, ExchangeRateHistoryNode
    from ledger_kernel.domain.reminder import Reminder
    from ledger_kernel.domain.stored_object import TrashObject
    from ledger_kernel.domain.tag import Tag
    from ledger_kernel.domain.transaction import Transaction

T = TypeVar("T", bound=StoredObject)


class AbstractDAO(ABC):
    """Dirty-flag bookkeeping shared by every family DAO."""

    @abstractmethod
    def is_dirty(self) -> bool: ...

    @abstractmethod
    def mark_clean(self) -> None: ...


class AccountDAO(AbstractDAO):
    @abstractmethod
    def add_root_account(self, root: RootAccount) -> bool: ...

    @abstractmethod
    def get_root_account(self) -> RootAccount | None: ...

    @abstractmethod
    def add_account(self, parent: Account, child: Account) -> bool: ...

    @abstractmethod
    def update_account(self, account: Account) -> bool: ...

    @abstractmethod
    def get_account_list(self) -> list[Account]: ...

    @abstractmethod
    def get_account_by_uuid(self, uuid: UUID) -> Account | None: ...


class BudgetDAO(AbstractDAO):
    @abstractmethod
    def add(self, budget: Budget) -> bool: ...

    @abstractmethod
    def update(self, budget: Budget) -> bool: ...

    @abstractmethod
    def get_budgets(self) -> list[Budget]: ...

    @abstractmethod
    def get_budget_by_uuid(self, uuid: UUID) -> Budget | None: ...


class CommodityDAO(AbstractDAO):
    """
    Currencies, securities and exchange rates.

    Contract:
        Implementations attach themselves as ``exchange_rate_source`` to
        every CurrencyNode they store, so currencies can resolve rates.
    """

    @abstractmethod
    def add_commodity(self, node: CommodityNode) -> bool: ...

    @abstractmethod
    def update_commodity_node(self, node: CommodityNode) -> bool: ...

    @abstractmethod
    def get_currencies(self) -> list[CurrencyNode]: ...

    @abstractmethod
    def get_securities(self) -> list[SecurityNode]: ...

    @abstractmethod
    def get_currency_by_symbol(self, symbol: str) -> CurrencyNode | None: ...

    @abstractmethod
    def get_security_by_symbol(self, symbol: str) -> SecurityNode | None: ...

    @abstractmethod
    def add_security_history(self, node: SecurityNode, history: SecurityHistoryNode) -> bool: ...

    @abstractmethod
    def remove_security_history(self, node: SecurityNode, history: SecurityHistoryNode) -> bool: ...

    @abstractmethod
    def add_exchange_rate(self, rate: ExchangeRate) -> bool: ...

    @abstractmethod
    def add_exchange_rate_history(
        self, rate: ExchangeRate, history: ExchangeRateHistoryNode
    ) -> bool: ...

    @abstractmethod
    def remove_exchange_rate_history(
        self, rate: ExchangeRate, history: ExchangeRateHistoryNode
    ) -> bool: ...

    @abstractmethod
    def get_exchange_rate_by_id(self, rate_id: str) -> ExchangeRate | None: ...

    @abstractmethod
    def get_exchange_rates(self) -> list[ExchangeRate]: ...

    @abstractmethod
    def get_exchange_rate_node(
        self, base: CurrencyNode, exchange: CurrencyNode
    ) -> ExchangeRate | None: ...


class ConfigDAO(AbstractDAO):
    @abstractmethod
    def get_default_config(self) -> Config: ...

    @abstractmethod
    def update(self, config: Config) -> bool: ...


class ReminderDAO(AbstractDAO):
    @abstractmethod
    def add_reminder(self, reminder: Reminder) -> bool: ...

    @abstractmethod
    def update_reminder(self, reminder: Reminder) -> bool: ...

    @abstractmethod
    def get_reminder_list(self) -> list[Reminder]: ...

    @abstractmethod
    def get_reminder_by_uuid(self, uuid: UUID) -> Reminder | None: ...


class TransactionDAO(AbstractDAO):
    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> bool: ...

    @abstractmethod
    def update_transaction(self, transaction: Transaction) -> bool: ...

    @abstractmethod
    def remove_transaction(self, transaction: Transaction) -> bool: ...

    @abstractmethod
    def get_transactions(self) -> list[Transaction]: ...

    @abstractmethod
    def get_transaction_by_uuid(self, uuid: UUID) -> Transaction | None: ...


class TrashDAO(AbstractDAO):
    """
    Removed objects awaiting eviction.

    Contract:
        ``add`` records a wrapper for an object that is already marked for
        removal.  ``remove`` physically deletes both the wrapper and the
        wrapped object.
    """

    @abstractmethod
    def add(self, trash_object: TrashObject) -> bool: ...

    @abstractmethod
    def remove(self, trash_object: TrashObject) -> bool: ...

    @abstractmethod
    def get_trash_objects(self) -> list[TrashObject]: ...


class TagDAO(AbstractDAO):
    @abstractmethod
    def add(self, tag: Tag) -> bool: ...

    @abstractmethod
    def update(self, tag: Tag) -> bool: ...

    @abstractmethod
    def get_tags(self) -> list[Tag]: ...


class EngineDAO(ABC):
    """
    Entry point to a storage backend.

    Contract:
        Each getter returns the same family DAO instance for the lifetime
        of the EngineDAO.

    Guarantees:
        - ``is_dirty()`` is the OR of every family DAO's dirty flag.
        - ``get_object_by_uuid`` only returns instances of ``cls``.
    """

    @abstractmethod
    def get_account_dao(self) -> AccountDAO: ...

    @abstractmethod
    def get_budget_dao(self) -> BudgetDAO: ...

    @abstractmethod
    def get_commodity_dao(self) -> CommodityDAO: ...

    @abstractmethod
    def get_config_dao(self) -> ConfigDAO: ...

    @abstractmethod
    def get_reminder_dao(self) -> ReminderDAO: ...

    @abstractmethod
    def get_transaction_dao(self) -> TransactionDAO: ...

    @abstractmethod
    def get_trash_dao(self) -> TrashDAO: ...

    @abstractmethod
    def get_tag_dao(self) -> TagDAO: ...

    @abstractmethod
    def get_object_by_uuid(self, cls: type[T], uuid: UUID) -> T | None: ...

    @abstractmethod
    def get_stored_objects(self) -> list[StoredObject]: ...

    @abstractmethod
    def shutdown(self) -> None: ...

    def is_remote(self) -> bool:
        return False

    def _family_daos(self) -> list[AbstractDAO]:
        return [
            self.get_account_dao(),
            self.get_budget_dao(),
            self.get_commodity_dao(),
            self.get_config_dao(),
            self.get_reminder_dao(),
            self.get_transaction_dao(),
            self.get_trash_dao(),
            self.get_tag_dao(),
        ]

    def is_dirty(self) -> bool:
        return any(dao.is_dirty() for dao in self._family_daos())

    def mark_clean(self) -> None:
        for dao in self._family_daos():
            dao.mark_clean()

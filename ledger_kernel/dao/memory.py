"""
Module: ledger_kernel.dao.memory
Responsibility: In-memory DAO family.  Every stored object lives in one
    uuid-keyed map shared by the family DAOs; each family DAO keeps its own
    dirty flag.
Architecture position: Kernel > DAO.  Default backend for tests and for
    engines booted without a database URL.  The SQL backend subclasses
    these classes and adds write-through persistence.

Invariants enforced:
    - An object is in the store once, under its uuid.
    - Removal only marks objects; physical deletion happens when the trash
      wrapper is evicted.
"""

from __future__ import annotations

import threading
from uuid import UUID

from ledger_kernel.dao.base import (
    AccountDAO,
    BudgetDAO,
    CommodityDAO,
    ConfigDAO,
    EngineDAO,
    ReminderDAO,
    T,
    TagDAO,
    TransactionDAO,
    TrashDAO,
)
from ledger_kernel.domain.account import Account, RootAccount
from ledger_kernel.domain.budget import Budget
from ledger_kernel.domain.commodity import (
    CommodityNode,
    CurrencyNode,
    SecurityHistoryNode,
    SecurityNode,
)
from ledger_kernel.domain.config import Config
from ledger_kernel.domain.exchange_rate import (
    ExchangeRate,
    ExchangeRateHistoryNode,
    build_exchange_rate_id,
)
from ledger_kernel.domain.reminder import Reminder
from ledger_kernel.domain.stored_object import StoredObject, TrashObject
from ledger_kernel.domain.tag import Tag
from ledger_kernel.domain.transaction import Transaction
from ledger_kernel.logging_config import get_logger

logger = get_logger("dao.memory")


class ObjectStore:
    """Thread-safe uuid -> StoredObject map."""

    def __init__(self) -> None:
        self._objects: dict[UUID, StoredObject] = {}
        self._lock = threading.RLock()

    def put(self, obj: StoredObject) -> None:
        with self._lock:
            self._objects[obj.uuid] = obj

    def get(self, uuid: UUID) -> StoredObject | None:
        with self._lock:
            return self._objects.get(uuid)

    def contains(self, uuid: UUID) -> bool:
        with self._lock:
            return uuid in self._objects

    def discard(self, uuid: UUID) -> StoredObject | None:
        with self._lock:
            return self._objects.pop(uuid, None)

    def values(self, cls: type[T], include_marked: bool = False) -> list[T]:
        with self._lock:
            return [
                obj
                for obj in self._objects.values()
                if isinstance(obj, cls) and (include_marked or not obj.marked_for_removal)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class _MemoryDAO:
    def __init__(self, store: ObjectStore) -> None:
        self._store = store
        self._dirty = False

    def _touch(self) -> bool:
        self._dirty = True
        return True

    def is_dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False


class MemoryAccountDAO(_MemoryDAO, AccountDAO):
    def add_root_account(self, root: RootAccount) -> bool:
        self._store.put(root)
        return self._touch()

    def get_root_account(self) -> RootAccount | None:
        roots = self._store.values(RootAccount)
        return roots[0] if roots else None

    def add_account(self, parent: Account, child: Account) -> bool:
        self._store.put(child)
        return self._touch()

    def update_account(self, account: Account) -> bool:
        if not self._store.contains(account.uuid):
            return False
        return self._touch()

    def get_account_list(self) -> list[Account]:
        return self._store.values(Account)

    def get_account_by_uuid(self, uuid: UUID) -> Account | None:
        obj = self._store.get(uuid)
        return obj if isinstance(obj, Account) else None


class MemoryBudgetDAO(_MemoryDAO, BudgetDAO):
    def add(self, budget: Budget) -> bool:
        self._store.put(budget)
        return self._touch()

    def update(self, budget: Budget) -> bool:
        if not self._store.contains(budget.uuid):
            return False
        return self._touch()

    def get_budgets(self) -> list[Budget]:
        return self._store.values(Budget)

    def get_budget_by_uuid(self, uuid: UUID) -> Budget | None:
        obj = self._store.get(uuid)
        return obj if isinstance(obj, Budget) else None


class MemoryCommodityDAO(_MemoryDAO, CommodityDAO):
    def add_commodity(self, node: CommodityNode) -> bool:
        if isinstance(node, CurrencyNode):
            node.exchange_rate_source = self
        self._store.put(node)
        return self._touch()

    def update_commodity_node(self, node: CommodityNode) -> bool:
        if not self._store.contains(node.uuid):
            return False
        return self._touch()

    def get_currencies(self) -> list[CurrencyNode]:
        return self._store.values(CurrencyNode)

    def get_securities(self) -> list[SecurityNode]:
        return self._store.values(SecurityNode)

    def get_currency_by_symbol(self, symbol: str) -> CurrencyNode | None:
        for node in self.get_currencies():
            if node.symbol == symbol:
                return node
        return None

    def get_security_by_symbol(self, symbol: str) -> SecurityNode | None:
        for node in self.get_securities():
            if node.symbol == symbol:
                return node
        return None

    def add_security_history(self, node: SecurityNode, history: SecurityHistoryNode) -> bool:
        self._store.put(history)
        return self._touch()

    def remove_security_history(self, node: SecurityNode, history: SecurityHistoryNode) -> bool:
        return self._touch()

    def add_exchange_rate(self, rate: ExchangeRate) -> bool:
        self._store.put(rate)
        return self._touch()

    def add_exchange_rate_history(
        self, rate: ExchangeRate, history: ExchangeRateHistoryNode
    ) -> bool:
        self._store.put(history)
        return self._touch()

    def remove_exchange_rate_history(
        self, rate: ExchangeRate, history: ExchangeRateHistoryNode
    ) -> bool:
        return self._touch()

    def get_exchange_rate_by_id(self, rate_id: str) -> ExchangeRate | None:
        for rate in self.get_exchange_rates():
            if rate.rate_id == rate_id:
                return rate
        return None

    def get_exchange_rates(self) -> list[ExchangeRate]:
        return self._store.values(ExchangeRate)

    def get_exchange_rate_node(
        self, base: CurrencyNode, exchange: CurrencyNode
    ) -> ExchangeRate | None:
        return self.get_exchange_rate_by_id(build_exchange_rate_id(base, exchange))


class MemoryConfigDAO(_MemoryDAO, ConfigDAO):
    def __init__(self, store: ObjectStore) -> None:
        super().__init__(store)
        self._config_lock = threading.Lock()

    def get_default_config(self) -> Config:
        with self._config_lock:
            configs = self._store.values(Config)
            if configs:
                return configs[0]
            config = Config()
            self._store.put(config)
            self._touch()
            logger.info("default_config_created", extra={"config_id": str(config.uuid)})
            return config

    def update(self, config: Config) -> bool:
        if not self._store.contains(config.uuid):
            return False
        return self._touch()


class MemoryReminderDAO(_MemoryDAO, ReminderDAO):
    def add_reminder(self, reminder: Reminder) -> bool:
        self._store.put(reminder)
        return self._touch()

    def update_reminder(self, reminder: Reminder) -> bool:
        if not self._store.contains(reminder.uuid):
            return False
        return self._touch()

    def get_reminder_list(self) -> list[Reminder]:
        return self._store.values(Reminder)

    def get_reminder_by_uuid(self, uuid: UUID) -> Reminder | None:
        obj = self._store.get(uuid)
        return obj if isinstance(obj, Reminder) else None


class MemoryTransactionDAO(_MemoryDAO, TransactionDAO):
    def add_transaction(self, transaction: Transaction) -> bool:
        self._store.put(transaction)
        return self._touch()

    def update_transaction(self, transaction: Transaction) -> bool:
        if not self._store.contains(transaction.uuid):
            return False
        return self._touch()

    def remove_transaction(self, transaction: Transaction) -> bool:
        return self._touch()

    def get_transactions(self) -> list[Transaction]:
        return self._store.values(Transaction)

    def get_transaction_by_uuid(self, uuid: UUID) -> Transaction | None:
        obj = self._store.get(uuid)
        return obj if isinstance(obj, Transaction) else None


class MemoryTrashDAO(_MemoryDAO, TrashDAO):
    def add(self, trash_object: TrashObject) -> bool:
        self._store.put(trash_object)
        return self._touch()

    def remove(self, trash_object: TrashObject) -> bool:
        if self._store.discard(trash_object.uuid) is None:
            return False
        self._store.discard(trash_object.object.uuid)
        return self._touch()

    def get_trash_objects(self) -> list[TrashObject]:
        return sorted(self._store.values(TrashObject))


class MemoryTagDAO(_MemoryDAO, TagDAO):
    def add(self, tag: Tag) -> bool:
        self._store.put(tag)
        return self._touch()

    def update(self, tag: Tag) -> bool:
        if not self._store.contains(tag.uuid):
            return False
        return self._touch()

    def get_tags(self) -> list[Tag]:
        return self._store.values(Tag)


class MemoryEngineDAO(EngineDAO):
    """EngineDAO over a single in-process ObjectStore."""

    account_dao_class = MemoryAccountDAO
    budget_dao_class = MemoryBudgetDAO
    commodity_dao_class = MemoryCommodityDAO
    config_dao_class = MemoryConfigDAO
    reminder_dao_class = MemoryReminderDAO
    transaction_dao_class = MemoryTransactionDAO
    trash_dao_class = MemoryTrashDAO
    tag_dao_class = MemoryTagDAO

    def __init__(self, store: ObjectStore | None = None) -> None:
        self.store = store or ObjectStore()
        self._account_dao = self.account_dao_class(self.store)
        self._budget_dao = self.budget_dao_class(self.store)
        self._commodity_dao = self.commodity_dao_class(self.store)
        self._config_dao = self.config_dao_class(self.store)
        self._reminder_dao = self.reminder_dao_class(self.store)
        self._transaction_dao = self.transaction_dao_class(self.store)
        self._trash_dao = self.trash_dao_class(self.store)
        self._tag_dao = self.tag_dao_class(self.store)

    def get_account_dao(self) -> AccountDAO:
        return self._account_dao

    def get_budget_dao(self) -> BudgetDAO:
        return self._budget_dao

    def get_commodity_dao(self) -> CommodityDAO:
        return self._commodity_dao

    def get_config_dao(self) -> ConfigDAO:
        return self._config_dao

    def get_reminder_dao(self) -> ReminderDAO:
        return self._reminder_dao

    def get_transaction_dao(self) -> TransactionDAO:
        return self._transaction_dao

    def get_trash_dao(self) -> TrashDAO:
        return self._trash_dao

    def get_tag_dao(self) -> TagDAO:
        return self._tag_dao

    def get_object_by_uuid(self, cls: type[T], uuid: UUID) -> T | None:
        obj = self.store.get(uuid)
        return obj if isinstance(obj, cls) else None

    def get_stored_objects(self) -> list[StoredObject]:
        return [
            obj
            for obj in self.store.values(StoredObject)
            if not isinstance(obj, TrashObject)
        ]

    def shutdown(self) -> None:
        logger.info("memory_dao_shutdown", extra={"objects": len(self.store)})

"""
Module: ledger_kernel.dao.sql
Responsibility: SQLAlchemy-backed DAO family.  Keeps the in-memory object
    graph of the memory backend and writes every change through to the
    database by merging the rows of the affected top-level object.
Architecture position: Kernel > DAO.  Built on dao/memory.py, dao/mapping.py,
    models/ and db/.  Selected by ``boot_local_engine`` when given a database URL.

Invariants enforced:
    - A change is reported successful only after its session commits.
    - Embedded objects (price and rate history, budget goals) are persisted
      as child rows of their owner.
    - On open the graph is rebuilt in dependency order; trash rows whose
      object no longer exists are dropped.

Failure modes:
    - SQLAlchemyError during a write is logged with ``logger.exception``
      and reported as False.  The in-memory change has already been made;
      the engine decides whether to undo it.
"""


from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.dao.mapping import LOAD_ORDER, GraphLoader, record_type, to_records
from ledger_kernel.dao.memory import (
    MemoryAccountDAO,
    MemoryBudgetDAO,
    MemoryCommodityDAO,
    MemoryConfigDAO,
    MemoryEngineDAO,
    MemoryReminderDAO,
    MemoryTagDAO,
    MemoryTransactionDAO,
    MemoryTrashDAO,
    ObjectStore,
)
from ledger_kernel.db.engine import Database
from ledger_kernel.domain.commodity import CurrencyNode, SecurityNode
from ledger_kernel.domain.exchange_rate import ExchangeRate
from ledger_kernel.domain.reminder import Reminder
from ledger_kernel.domain.stored_object import StoredObject, TrashObject
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import TransactionRecord, TrashRecord

logger = get_logger("dao.sql")


def _merge(session: Session, obj: StoredObject) -> None:
    for record in to_records(obj):
        session.merge(record)


def _drop_stale_templates(session: Session, reminder: Reminder) -> None:
    """Delete template rows of ``reminder`` other than its current one."""
    query = select(TransactionRecord).where(
        TransactionRecord.reminder_id == reminder.uuid,
        TransactionRecord.marked_for_removal.is_(False),
    )
    if reminder.transaction is not None:
        query = query.where(TransactionRecord.id != reminder.transaction.uuid)
    for record in session.scalars(query).all():
        session.delete(record)


class _SqlWriter:
    """Write-through helpers mixed into each memory family DAO."""

    def __init__(self, store: ObjectStore, database: Database) -> None:
        super().__init__(store)
        self._db = database

    def _persist(self, *objects: StoredObject) -> bool:
        try:
            with self._db.session_scope() as session:
                for obj in objects:
                    _merge(session, obj)
                    if isinstance(obj, Reminder):
                        _drop_stale_templates(session, obj)
        except SQLAlchemyError:
            logger.exception(
                "sql_persist_failed",
                extra={"object_ids": [str(o.uuid) for o in objects]},
            )
            return False
        self.mark_clean()
        return True
class SqlAccountDAO(_SqlWriter, MemoryAccountDAO):
    def add_root_account(self, root):
        return super().add_root_account(root) and self._persist(root)

    def add_account(self, parent, child):
        return super().add_account(parent, child) and self._persist(child)

    def update_account(self, account):
        return super().update_account(account) and self._persist(account)


class SqlBudgetDAO(_SqlWriter, MemoryBudgetDAO):
    def add(self, budget):
        return super().add(budget) and self._persist(budget)

    def update(self, budget):
        return super().update(budget) and self._persist(budget)


class SqlCommodityDAO(_SqlWriter, MemoryCommodityDAO):
    def add_commodity(self, node):
        return super().add_commodity(node) and self._persist(node)

    def update_commodity_node(self, node):
        return super().update_commodity_node(node) and self._persist(node)

    def add_security_history(self, node, history):
        return super().add_security_history(node, history) and self._persist(node)

    def remove_security_history(self, node, history):
        return super().remove_security_history(node, history) and self._persist(node)

    def add_exchange_rate(self, rate):
        return super().add_exchange_rate(rate) and self._persist(rate)

    def add_exchange_rate_history(self, rate, history):
        return super().add_exchange_rate_history(rate, history) and self._persist(rate)

    def remove_exchange_rate_history(self, rate, history):
        return super().remove_exchange_rate_history(rate, history) and self._persist(rate)


class SqlConfigDAO(_SqlWriter, MemoryConfigDAO):
    def get_default_config(self):
        config = super().get_default_config()
        if self.is_dirty():
            self._persist(config)
        return config

    def update(self, config):
        return super().update(config) and self._persist(config)


class SqlReminderDAO(_SqlWriter, MemoryReminderDAO):
    def add_reminder(self, reminder):
        return super().add_reminder(reminder) and self._persist(reminder)

    def update_reminder(self, reminder):
        return super().update_reminder(reminder) and self._persist(reminder)


class SqlTransactionDAO(_SqlWriter, MemoryTransactionDAO):
    def add_transaction(self, transaction):
        return super().add_transaction(transaction) and self._persist(transaction)

    def update_transaction(self, transaction):
        return super().update_transaction(transaction) and self._persist(transaction)

    def remove_transaction(self, transaction):
        return super().remove_transaction(transaction) and self._persist(transaction)


class SqlTagDAO(_SqlWriter, MemoryTagDAO):
    def add(self, tag):
        return super().add(tag) and self._persist(tag)

    def update(self, tag):
        return super().update(tag) and self._persist(tag)


class SqlTrashDAO(_SqlWriter, MemoryTrashDAO):
    def add(self, trash_object: TrashObject) -> bool:
        if not super().add(trash_object):
            return False
        obj = trash_object.object
        row_type = record_type(obj)
        try:
            with self._db.session_scope() as session:
                session.merge(
                    TrashRecord(
                        id=trash_object.uuid,
                        object_id=obj.uuid,
                        kind=row_type.__tablename__ if row_type else type(obj).__name__,
                        removed_at=trash_object.date,
                    )
                )
                if row_type is not None:
                    _merge(session, obj)
        except SQLAlchemyError:
            logger.exception("sql_trash_add_failed", extra={"object_id": str(obj.uuid)})
            return False
        self.mark_clean()
        return True

    def remove(self, trash_object: TrashObject) -> bool:
        if not super().remove(trash_object):
            return False
        obj = trash_object.object
        row_type = record_type(obj)
        try:
            with self._db.session_scope() as session:
                session.execute(delete(TrashRecord).where(TrashRecord.id == trash_object.uuid))
                record = session.get(row_type, obj.uuid) if row_type is not None else None
                if record is not None:
                    # ORM delete so owned child rows go with it
                    session.delete(record)
        except SQLAlchemyError:
            logger.exception("sql_trash_remove_failed", extra={"object_id": str(obj.uuid)})
            return False
        self.mark_clean()
        return True


class SqlEngineDAO(MemoryEngineDAO):
    """
    EngineDAO persisted to a SQL database.

    Contract:
        ``database_url`` is any SQLAlchemy URL; the tables are created if
        missing and the existing ledger, if any, is loaded.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database = Database(database_url, echo=echo)
        self.database.create_tables()
        self.store = ObjectStore()

        self._account_dao = SqlAccountDAO(self.store, self.database)
        self._budget_dao = SqlBudgetDAO(self.store, self.database)
        self._commodity_dao = SqlCommodityDAO(self.store, self.database)
        self._config_dao = SqlConfigDAO(self.store, self.database)
        self._reminder_dao = SqlReminderDAO(self.store, self.database)
        self._transaction_dao = SqlTransactionDAO(self.store, self.database)
        self._trash_dao = SqlTrashDAO(self.store, self.database)
        self._tag_dao = SqlTagDAO(self.store, self.database)

        self._load()

    def _load(self) -> None:
        loader = GraphLoader()
        with self.database.session_scope() as session:
            records = [row for row_type in LOAD_ORDER for row in session.scalars(select(row_type)).all()]
            objects = loader.load(records)
            trash_rows = [
                (row.id, row.object_id, row.removed_at)
                for row in session.scalars(select(TrashRecord)).all()
            ]

        for obj in objects:
            self.store.put(obj)
            if isinstance(obj, CurrencyNode):
                obj.exchange_rate_source = self._commodity_dao
            if isinstance(obj, SecurityNode):
                for history in obj.history:
                    self.store.put(history)
            if isinstance(obj, ExchangeRate):
                for history in obj.history:
                    self.store.put(history)

        orphaned = []
        for trash_id, object_id, removed_at in trash_rows:
            trash = loader.load_trash(object_id, removed_at, trash_id)
            if trash is None:
                orphaned.append(trash_id)
                continue
            trash.object.marked_for_removal = True
            self.store.put(trash)

        if orphaned:
            with self.database.session_scope() as session:
                session.execute(delete(TrashRecord).where(TrashRecord.id.in_(orphaned)))

        logger.info(
            "sql_ledger_loaded",
            extra={
                "objects": len(records),
                "trash": len(trash_rows) - len(orphaned),
                "orphaned_trash": len(orphaned),
            },
        )

    def shutdown(self) -> None:
        super().shutdown()
        self.database.dispose()

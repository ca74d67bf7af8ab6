"""
Module: ledger_kernel.dao.mapping
Responsibility: Translate between the in-memory ledger graph and the ORM
    rows in models/.  ``to_records`` builds the row (with its owned child
    rows) for one top-level object; ``GraphLoader`` rebuilds and relinks
    the graph from rows read back.
Architecture position: Kernel > DAO.  Used by the SQL backend only.  No
    session or engine access; rows may be transient or loaded.

Invariants enforced:
    - Owned child rows carry their owner's id, so merging an owner row
      updates its existing children in place and deletes dropped ones.
    - References between top-level objects are uuid columns, resolved
      once every object of the referenced kind has been rebuilt.
    - A reminder's template transaction is a ``transactions`` row tagged
      with the reminder id.  It is never linked into the account tree.

Failure modes:
    - KeyError / ValueError on rows holding unknown enum values or action
      kinds.  The loader lets these propagate; a corrupt store is not
      silently half-loaded.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from ledger_kernel.db.base import LedgerRecord
from ledger_kernel.domain.account import Account, AccountType, RootAccount
from ledger_kernel.domain.budget import Budget, BudgetGoal, BudgetPeriod
from ledger_kernel.domain.commodity import (
    CommodityNode,
    CurrencyNode,
    QuoteSource,
    SecurityHistoryEvent,
    SecurityHistoryEventType,
    SecurityHistoryNode,
    SecurityNode,
)
from ledger_kernel.domain.config import Config
from ledger_kernel.domain.exchange_rate import ExchangeRate, ExchangeRateHistoryNode
from ledger_kernel.domain.investment import (
    AddShares,
    BuyShares,
    Dividend,
    InvestmentTransaction,
    MergeShares,
    ReinvestDividend,
    RemoveShares,
    ReturnOfCapital,
    SellShares,
    SplitShares,
)
from ledger_kernel.domain.reminder import Reminder, ReminderType
from ledger_kernel.domain.stored_object import StoredObject, TrashObject
from ledger_kernel.domain.tag import Tag
from ledger_kernel.domain.transaction import (
    ReconciledState,
    Transaction,
    TransactionEntry,
    TransactionTag,
)
from ledger_kernel.models import (
    KIND_CURRENCY,
    KIND_SECURITY,
    AccountAttributeRecord,
    AccountRecord,
    AccountSecurityRecord,
    BudgetGoalAmountRecord,
    BudgetGoalRecord,
    BudgetRecord,
    CommodityRecord,
    ConfigRecord,
    ExchangeRateHistoryRecord,
    ExchangeRateRecord,
    ReminderRecord,
    SecurityEventRecord,
    SecurityPriceRecord,
    TagRecord,
    TransactionEntryRecord,
    TransactionRecord,
    TransactionTagRecord,
)

# Row types in the order the loader rebuilds them
LOAD_ORDER: tuple[type[LedgerRecord], ...] = (
    CommodityRecord,
    ExchangeRateRecord,
    TagRecord,
    AccountRecord,
    TransactionRecord,
    BudgetRecord,
    ReminderRecord,
    ConfigRecord,
)

_ACTIONS: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        BuyShares,
        SellShares,
        Dividend,
        ReinvestDividend,
        SplitShares,
        MergeShares,
        AddShares,
        RemoveShares,
        ReturnOfCapital,
    )
}


def _id(obj: StoredObject | None) -> UUID | None:
    return None if obj is None else obj.uuid


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Objects to rows
# ---------------------------------------------------------------------------


def record_type(obj: StoredObject) -> type[LedgerRecord] | None:
    """The row type an object is stored as, None for embedded objects."""
    match obj:
        case Account():
            return AccountRecord
        case CommodityNode():
            return CommodityRecord
        case ExchangeRate():
            return ExchangeRateRecord
        case Transaction():
            return TransactionRecord
        case Budget():
            return BudgetRecord
        case Reminder():
            return ReminderRecord
        case Tag():
            return TagRecord
        case Config():
            return ConfigRecord
    return None


def to_records(obj: StoredObject) -> list[LedgerRecord]:
    """
    Rows for a top-level object: its own and, for a reminder, its template.

    Raises TypeError for embedded kinds.
    """
    match obj:
        case Account():
            records: list[LedgerRecord] = [_account_record(obj)]
        case CommodityNode():
            records = [_commodity_record(obj)]
        case ExchangeRate():
            records = [
                ExchangeRateRecord(
                    id=obj.uuid,
                    rate_id=obj.rate_id,
                    history=[
                        ExchangeRateHistoryRecord(
                            id=node.uuid,
                            exchange_rate_id=obj.uuid,
                            on_date=node.date,
                            rate=node.rate,
                        )
                        for node in obj.history
                    ],
                )
            ]
        case Transaction():
            records = [transaction_record(obj)]
        case Budget():
            records = [_budget_record(obj)]
        case Reminder():
            records = [_reminder_record(obj)]
            if obj.transaction is not None:
                records.append(transaction_record(obj.transaction, reminder=obj))
        case Tag():
            records = [
                TagRecord(id=obj.uuid, name=obj.name, description=obj.description, color=obj.color)
            ]
        case Config():
            records = [_config_record(obj)]
        case _:
            raise TypeError(f"{type(obj).__name__} is not a top-level record")
    records[0].marked_for_removal = obj.marked_for_removal
    return records


def _account_record(account: Account) -> AccountRecord:
    return AccountRecord(
        id=account.uuid,
        is_root=isinstance(account, RootAccount),
        account_type=account.account_type.key if account.account_type else None,
        currency_id=_id(account.currency_node),
        parent_id=_id(account.parent),
        name=account.name,
        description=account.description,
        notes=account.notes,
        account_number=account.account_number,
        bank_id=account.bank_id,
        account_code=account.account_code,
        locked=account.locked,
        placeholder=account.placeholder,
        visible=account.visible,
        excluded_from_budget=account.excluded_from_budget,
        securities=[
            AccountSecurityRecord(account_id=account.uuid, security_id=node.uuid)
            for node in account.get_securities()
        ],
        attributes=[
            AccountAttributeRecord(account_id=account.uuid, key=key, value=value)
            for key, value in sorted(account.get_attributes().items())
        ],
    )


def _commodity_record(node: CommodityNode) -> CommodityRecord:
    record = CommodityRecord(
        id=node.uuid,
        kind=KIND_CURRENCY,
        symbol=node.symbol,
        scale=node.scale,
        description=node.description,
        prefix=node.prefix,
        suffix=node.suffix,
    )
    if isinstance(node, SecurityNode):
        record.kind = KIND_SECURITY
        record.reported_currency_id = _id(node.reported_currency)
        record.quote_source = node.quote_source.value
        record.isin = node.isin
        record.prices = [
            SecurityPriceRecord(
                id=h.uuid,
                security_id=node.uuid,
                on_date=h.date,
                price=h.price,
                high=h.high,
                low=h.low,
                volume=h.volume,
            )
            for h in node.history
        ]
        record.events = [
            SecurityEventRecord(
                security_id=node.uuid,
                position=i,
                event_type=e.type.value,
                on_date=e.date,
                value=e.value,
            )
            for i, e in enumerate(node.history_events)
        ]
    return record


def transaction_record(
    transaction: Transaction, reminder: Reminder | None = None
) -> TransactionRecord:
    """
    Row for ``transaction``.  With ``reminder`` the row is that reminder's
    template; without it ``reminder_id`` is left unset, so merging the row
    keeps whatever template tag the stored row already has.
    """
    record = TransactionRecord(
        id=transaction.uuid,
        on_date=transaction.date,
        number=transaction.number,
        payee=transaction.payee,
        memo=transaction.memo,
        fitid=transaction.fitid,
        timestamp=transaction.timestamp,
        entries=[
            TransactionEntryRecord(
                id=entry.uuid,
                transaction_id=transaction.uuid,
                position=i,
                credit_account_id=_id(entry.credit_account),
                debit_account_id=_id(entry.debit_account),
                credit_amount=entry.credit_amount,
                debit_amount=entry.debit_amount,
                memo=entry.memo,
                entry_tag=entry.transaction_tag.value if entry.transaction_tag else None,
                credit_reconciled=entry.credit_reconciled.value,
                debit_reconciled=entry.debit_reconciled.value,
            )
            for i, entry in enumerate(transaction.entries)
        ],
        tags=[
            TransactionTagRecord(transaction_id=transaction.uuid, tag_id=uuid)
            for uuid in sorted((tag.uuid for tag in transaction.tags), key=str)
        ],
        marked_for_removal=transaction.marked_for_removal,
    )
    if reminder is not None:
        record.reminder_id = reminder.uuid
    if isinstance(transaction, InvestmentTransaction):
        action = transaction.action
        record.investment_account_id = _id(transaction.investment_account)
        record.security_id = _id(transaction.security_node)
        record.action_kind = type(action).__name__
        for field in dataclasses.fields(action):
            setattr(record, f"action_{field.name}", getattr(action, field.name))
    return record


def _budget_record(budget: Budget) -> BudgetRecord:
    return BudgetRecord(
        id=budget.uuid,
        name=budget.name,
        description=budget.description,
        budget_period=budget.budget_period.value,
        goals=[
            BudgetGoalRecord(
                id=goal.uuid,
                budget_id=budget.uuid,
                account_id=account_id,
                budget_period=goal.budget_period.value,
                amounts=[
                    BudgetGoalAmountRecord(goal_id=goal.uuid, period_index=index, amount=amount)
                    for index, amount in sorted(goal.get_goals().items())
                ],
            )
            for account_id, goal in budget.goals_by_account_id().items()
        ],
    )


def _reminder_record(reminder: Reminder) -> ReminderRecord:
    return ReminderRecord(
        id=reminder.uuid,
        description=reminder.description,
        reminder_type=reminder.reminder_type.value,
        start_date=reminder.start_date,
        end_date=reminder.end_date,
        last_date=reminder.last_date,
        increment=reminder.increment,
        enabled=reminder.enabled,
        auto_create=reminder.auto_create,
        days_advance=reminder.days_advance,
        notes=reminder.notes,
        account_id=_id(reminder.account),
        transaction_id=_id(reminder.transaction),
    )


def _config_record(config: Config) -> ConfigRecord:
    return ConfigRecord(
        id=config.uuid,
        default_currency_id=_id(config.default_currency),
        account_separator=config.account_separator,
        transaction_numbers=list(config.transaction_numbers),
        preferences=dict(config.preferences),
        last_securities_update=config.last_securities_update,
        major_version=config.major_version,
        minor_version=config.minor_version,
        create_backups=config.create_backups,
        retained_backup_limit=config.retained_backup_limit,
        remove_old_backups=config.remove_old_backups,
    )


# ---------------------------------------------------------------------------
# Rows to objects
# ---------------------------------------------------------------------------


class GraphLoader:
    """
    Rebuilds the ledger object graph from rows.

    Contract:
        Call ``load`` once with every top-level row.  It returns the
        objects that belong in the object store: everything except
        reminder templates, which hang off their reminder.  Rows marked
        for removal are rebuilt but not linked into the account tree.

    Guarantees:
        - Accounts are attached to their parents and transactions to their
          accounts.
        - Every rebuilt object, templates included, is in ``objects``.
    """

    def __init__(self) -> None:
        self.objects: dict[UUID, StoredObject] = {}
        self._templates: set[UUID] = set()

    def _get(self, uuid: UUID | None) -> Any:
        if uuid is None:
            return None
        return self.objects.get(uuid)

    def load(self, records: Iterable[LedgerRecord]) -> list[StoredObject]:
        by_type: dict[type, list[Any]] = {}
        for record in records:
            by_type.setdefault(type(record), []).append(record)

        loaded: list[StoredObject] = []
        for row_type in LOAD_ORDER:
            rows = by_type.get(row_type, [])
            if row_type is CommodityRecord:
                # reported currencies first
                rows = sorted(rows, key=lambda row: row.kind != KIND_CURRENCY)
            for row in rows:
                obj = self._build(row)
                obj.marked_for_removal = bool(row.marked_for_removal)
                self.objects[obj.uuid] = obj
                loaded.append(obj)
            if row_type is AccountRecord:
                self._link_accounts(rows)
            elif row_type is TransactionRecord:
                self._link_transactions(rows)
        return [obj for obj in loaded if obj.uuid not in self._templates]

    def load_trash(self, object_id: UUID, removed_at: datetime, trash_id: UUID) -> TrashObject | None:
        obj = self.objects.get(object_id)
        if obj is None:
            return None
        return TrashObject(obj, _aware(removed_at), trash_id)

    def _build(self, row: Any) -> StoredObject:
        match row:
            case CommodityRecord():
                return self._commodity(row)
            case ExchangeRateRecord():
                rate = ExchangeRate(row.rate_id, uuid=row.id)
                for h in row.history:
                    rate.add_history_node(ExchangeRateHistoryNode(h.on_date, h.rate, h.id))
                return rate
            case TagRecord():
                return Tag(row.name, row.description, row.color, uuid=row.id)
            case AccountRecord():
                return self._account(row)
            case TransactionRecord():
                if row.reminder_id is not None:
                    self._templates.add(row.id)
                return self.transaction(row)
            case BudgetRecord():
                return self._budget(row)
            case ReminderRecord():
                return self._reminder(row)
            case ConfigRecord():
                return self._config(row)
        raise TypeError(f"unexpected row {row!r}")

    # -- per row type ------------------------------------------------------

    def _commodity(self, row: CommodityRecord) -> CommodityNode:
        if row.kind == KIND_CURRENCY:
            return CurrencyNode(
                row.symbol, row.scale, row.description, row.prefix, row.suffix, uuid=row.id
            )
        node = SecurityNode(
            row.symbol,
            row.scale,
            row.description,
            row.prefix,
            row.suffix,
            reported_currency=self._get(row.reported_currency_id),
            quote_source=QuoteSource(row.quote_source),
            isin=row.isin,
            uuid=row.id,
        )
        for h in row.prices:
            node.add_history_node(
                SecurityHistoryNode(h.on_date, h.price, h.high, h.low, h.volume, uuid=h.id)
            )
        for e in row.events:
            node.add_history_event(
                SecurityHistoryEvent(SecurityHistoryEventType(e.event_type), e.on_date, e.value)
            )
        return node

    def _account(self, row: AccountRecord) -> Account:
        currency = self._get(row.currency_id)
        if row.is_root:
            account: Account = RootAccount(currency, row.name, uuid=row.id)
        else:
            account_type = AccountType.from_key(row.account_type) if row.account_type else None
            account = Account(account_type, currency, row.name, uuid=row.id)
        account.description = row.description
        account.notes = row.notes
        account.account_number = row.account_number
        account.bank_id = row.bank_id
        account.account_code = row.account_code
        account.locked = row.locked
        account.placeholder = row.placeholder
        account.visible = row.visible
        account.excluded_from_budget = row.excluded_from_budget
        for held in row.securities:
            node = self._get(held.security_id)
            if node is not None:
                account.add_security(node)
        for attribute in row.attributes:
            account._set_attribute(attribute.key, attribute.value)
        return account

    def _link_accounts(self, rows: list[AccountRecord]) -> None:
        for row in rows:
            account = self.objects[row.id]
            if account.marked_for_removal:
                continue
            parent = self._get(row.parent_id)
            if isinstance(parent, Account):
                parent.add_child(account)

    def _entry(self, row: TransactionEntryRecord) -> TransactionEntry:
        entry = TransactionEntry(
            self._get(row.credit_account_id),
            self._get(row.debit_account_id),
            memo=row.memo,
            uuid=row.id,
        )
        entry.credit_amount = row.credit_amount
        entry.debit_amount = row.debit_amount
        entry.transaction_tag = TransactionTag(row.entry_tag) if row.entry_tag else None
        entry.credit_reconciled = ReconciledState(row.credit_reconciled)
        entry.debit_reconciled = ReconciledState(row.debit_reconciled)
        return entry

    def transaction(self, row: TransactionRecord) -> Transaction:
        if row.action_kind is not None:
            action_cls = _ACTIONS[row.action_kind]
            action = action_cls(
                **{f.name: getattr(row, f"action_{f.name}") for f in dataclasses.fields(action_cls)}
            )
            transaction: Transaction = InvestmentTransaction(
                row.on_date,
                self._get(row.investment_account_id),
                self._get(row.security_id),
                action,
                uuid=row.id,
            )
        else:
            transaction = Transaction(row.on_date, uuid=row.id)
        transaction.number = row.number
        transaction.payee = row.payee
        transaction.memo = row.memo
        transaction.fitid = row.fitid
        transaction.timestamp = _aware(row.timestamp)
        tags = (self._get(t.tag_id) for t in row.tags)
        transaction.tags = {tag for tag in tags if tag is not None}
        for entry in sorted(row.entries, key=lambda e: e.position):
            transaction.add_entry(self._entry(entry))
        return transaction

    def _link_transactions(self, rows: list[TransactionRecord]) -> None:
        for row in rows:
            transaction = self.objects[row.id]
            if transaction.marked_for_removal or row.id in self._templates:
                continue
            for account in transaction.get_accounts():
                account.add_transaction(transaction)

    def _budget(self, row: BudgetRecord) -> Budget:
        budget = Budget(row.name, BudgetPeriod(row.budget_period), row.description, uuid=row.id)
        for g in row.goals:
            account = self._get(g.account_id)
            if account is None:
                continue
            goal = BudgetGoal(
                BudgetPeriod(g.budget_period),
                {a.period_index: a.amount for a in g.amounts},
                uuid=g.id,
            )
            budget._set_budget_goal(account, goal)
        return budget

    def _reminder(self, row: ReminderRecord) -> Reminder:
        reminder = Reminder(
            row.description,
            ReminderType(row.reminder_type),
            row.start_date,
            row.increment,
            uuid=row.id,
        )
        reminder.end_date = row.end_date
        reminder.last_date = row.last_date
        reminder.enabled = row.enabled
        reminder.auto_create = row.auto_create
        reminder.days_advance = row.days_advance
        reminder.notes = row.notes
        reminder.account = self._get(row.account_id)
        reminder.transaction = self._get(row.transaction_id)
        return reminder

    def _config(self, row: ConfigRecord) -> Config:
        config = Config(uuid=row.id)
        config.default_currency = self._get(row.default_currency_id)
        config.account_separator = row.account_separator
        config.transaction_numbers = list(row.transaction_numbers)
        config.preferences = dict(row.preferences)
        config.last_securities_update = _aware(row.last_securities_update)
        config.major_version = row.major_version
        config.minor_version = row.minor_version
        config.create_backups = row.create_backups
        config.retained_backup_limit = row.retained_backup_limit
        config.remove_old_backups = row.remove_old_backups
        return config

"""
SQLite-backed engines: every change is written through and the ledger
reopens with the same graph.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import TEST_DATE
from ledger_kernel.domain.account import Account, AccountType
from ledger_kernel.domain.budget import Budget, BudgetGoal
from ledger_kernel.domain.commodity import SecurityHistoryNode, SecurityNode
from ledger_kernel.domain.currency import DefaultCurrencies
from ledger_kernel.domain.reminder import Reminder, ReminderType
from ledger_kernel.domain.tag import Tag
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction
from ledger_kernel.dao.sql import SqlEngineDAO
from ledger_kernel.models import (
    BudgetGoalRecord,
    SecurityPriceRecord,
    TransactionEntryRecord,
    TransactionRecord,
)
from ledger_kernel.services.engine_factory import boot_local_engine, close_engine


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def open_ledger(engine_name, database_url, settings, deterministic_clock):
    """Factory that (re)opens the SQLite ledger under ``engine_name``."""
    opened = []

    def _open():
        engine = boot_local_engine(
            engine_name, dao=database_url, settings=settings, clock=deterministic_clock
        )
        opened.append(engine)
        return engine

    yield _open
    close_engine(engine_name)


def _populate(engine):
    usd = engine.get_default_currency()
    cad = DefaultCurrencies.build_node("CAD")
    engine.add_currency(cad)

    root = engine.get_root_account()
    checking = Account(AccountType.BANK, usd, "Checking")
    groceries = Account(AccountType.EXPENSE, usd, "Groceries")
    engine.add_account(root, checking)
    engine.add_account(root, groceries)
    engine.set_account_attribute(checking, "iban", "DE44")

    t = generate_double_entry_transaction(groceries, checking, Decimal("42.50"), TEST_DATE)
    engine.add_transaction(t)

    acme = SecurityNode("ACME", reported_currency=usd)
    engine.add_security(acme)
    engine.add_security_history(acme, SecurityHistoryNode(TEST_DATE, Decimal("12.5")))
    engine.set_exchange_rate(usd, cad, Decimal("1.35"), TEST_DATE)

    budget = Budget("Household")
    engine.add_budget(budget)
    engine.update_budget_goals(budget, groceries, BudgetGoal(goals={1: Decimal("60")}))

    reminder = Reminder("Shop", ReminderType.WEEKLY, TEST_DATE)
    reminder.transaction = t.clone()
    engine.add_reminder(reminder)

    engine.add_tag(Tag("work"))
    engine.set_preference("theme", "dark")
    return t


class TestReopen:
    def test_uses_sql_backend(self, open_ledger):
        assert isinstance(open_ledger().dao, SqlEngineDAO)

    def test_fresh_database_boots_root_and_currency(self, open_ledger):
        engine = open_ledger()
        assert engine.get_root_account() is not None
        assert engine.get_default_currency().symbol == "USD"

    def test_ledger_survives_close(self, open_ledger, engine_name):
        t = _populate(open_ledger())
        close_engine(engine_name)

        engine = open_ledger()
        checking = engine.get_account_by_name("Checking")
        groceries = engine.get_account_by_name("Groceries")
        usd = engine.get_default_currency()
        cad = engine.get_currency("CAD")

        assert checking.parent is engine.get_root_account()
        assert checking.get_balance() == Decimal("-42.50")
        assert groceries.get_balance() == Decimal("42.50")
        assert [x.uuid for x in engine.get_transactions()] == [t.uuid]
        assert engine.get_account_attribute(checking, "iban") == "DE44"

        assert engine.get_security("ACME").get_history_node(TEST_DATE).price == Decimal("12.5")
        assert usd.get_exchange_rate(cad, TEST_DATE) == Decimal("1.35")

        [budget] = engine.get_budget_list()
        assert budget.get_budget_goal(groceries).get_goal(1) == Decimal("60")
        [reminder] = engine.get_reminders()
        assert reminder.transaction is not None
        assert [tag.name for tag in engine.get_tags()] == ["work"]
        assert engine.get_preference("theme") == "dark"

    def test_reopened_ledger_accepts_changes(self, open_ledger, engine_name):
        _populate(open_ledger())
        close_engine(engine_name)

        engine = open_ledger()
        checking = engine.get_account_by_name("Checking")
        groceries = engine.get_account_by_name("Groceries")
        assert engine.add_transaction(
            generate_double_entry_transaction(groceries, checking, Decimal("7.50"), TEST_DATE)
        )
        close_engine(engine_name)

        engine = open_ledger()
        assert engine.get_account_by_name("Checking").get_balance() == Decimal("-50.00")


class TestTrashPersistence:
    def test_trash_survives_reopen(self, open_ledger, engine_name):
        engine = open_ledger()
        tag = Tag("old")
        engine.add_tag(tag)
        engine.remove_tag(tag)
        close_engine(engine_name)

        engine = open_ledger()
        assert engine.get_tags() == []
        trash = engine.get_trash_object(tag.uuid)
        assert trash is not None
        assert trash.object.name == "old"

    def test_evicted_objects_are_deleted(self, open_ledger, engine_name, deterministic_clock):
        engine = open_ledger()
        tag = Tag("gone")
        engine.add_tag(tag)
        engine.remove_tag(tag)
        deterministic_clock.advance(121)
        assert engine.empty_trash() == 1
        close_engine(engine_name)

        engine = open_ledger()
        assert engine.get_trash_objects() == []
        assert engine.get_stored_object_by_uuid(Tag, tag.uuid) is None

    def test_removed_transaction_not_relinked(self, open_ledger, engine_name):
        engine = open_ledger()
        t = _populate(engine)
        engine.remove_transaction(t)
        close_engine(engine_name)

        engine = open_ledger()
        assert engine.get_account_by_name("Checking").get_transaction_count() == 0
        assert engine.get_transactions() == []


def _count(engine, row_type, *where):
    with engine.dao.database.session_scope() as session:
        return session.scalar(select(func.count()).select_from(row_type).where(*where))


class TestTypedRows:
    def test_amounts_keep_their_scale(self, open_ledger, engine_name):
        engine = open_ledger()
        acme = SecurityNode("ACME", reported_currency=engine.get_default_currency())
        engine.add_security(acme)
        engine.add_security_history(acme, SecurityHistoryNode(TEST_DATE, Decimal("12.3400")))
        close_engine(engine_name)

        price = open_ledger().get_security("ACME").get_history_node(TEST_DATE).price
        assert str(price) == "12.3400"

    def test_removed_price_row_deleted(self, open_ledger, engine_name):
        engine = open_ledger()
        acme = SecurityNode("ACME", reported_currency=engine.get_default_currency())
        engine.add_security(acme)
        engine.add_security_history(acme, SecurityHistoryNode(TEST_DATE, Decimal("12")))
        engine.add_security_history(acme, SecurityHistoryNode(date(2024, 1, 16), Decimal("13")))
        assert _count(engine, SecurityPriceRecord) == 2

        assert engine.remove_security_history(acme, TEST_DATE)
        assert _count(engine, SecurityPriceRecord) == 1
        close_engine(engine_name)

        reopened = open_ledger().get_security("ACME")
        assert [h.date for h in reopened.history] == [date(2024, 1, 16)]

    def test_replaced_goal_row_deleted(self, open_ledger):
        engine = open_ledger()
        _populate(engine)
        groceries = engine.get_account_by_name("Groceries")
        [budget] = engine.get_budget_list()

        assert engine.update_budget_goals(budget, groceries, BudgetGoal(goals={1: Decimal("75")}))
        assert _count(engine, BudgetGoalRecord) == 1

    def test_template_rows_stay_out_of_balances(self, open_ledger, engine_name):
        engine = open_ledger()
        _populate(engine)
        assert _count(engine, TransactionRecord, TransactionRecord.reminder_id.is_not(None)) == 1
        close_engine(engine_name)

        engine = open_ledger()
        assert engine.get_account_by_name("Checking").get_transaction_count() == 1
        assert len(engine.get_transactions()) == 1

    def test_replaced_template_row_deleted(self, open_ledger, engine_name):
        engine = open_ledger()
        t = _populate(engine)
        [reminder] = engine.get_reminders()
        old_template = reminder.transaction

        template = Reminder("Shop", ReminderType.WEEKLY, TEST_DATE)
        template.transaction = t.clone()
        assert engine.update_reminder(reminder, template)

        assert _count(engine, TransactionRecord, TransactionRecord.id == old_template.uuid) == 0
        assert _count(engine, TransactionEntryRecord) == 2
        close_engine(engine_name)

        [reopened] = open_ledger().get_reminders()
        assert reopened.transaction.uuid == template.transaction.uuid

    def test_evicted_transaction_takes_its_entries(self, open_ledger, deterministic_clock):
        engine = open_ledger()
        t = _populate(engine)
        engine.remove_transaction(t)
        deterministic_clock.advance(121)
        engine.empty_trash()

        assert _count(engine, TransactionRecord, TransactionRecord.id == t.uuid) == 0
        entries = _count(engine, TransactionEntryRecord, TransactionEntryRecord.transaction_id == t.uuid)
        assert entries == 0

"""
End-to-end ledger scenarios through the engine facade.

Each test walks one user-level story: build accounts, post or reject a
transaction, and check balances, counts and published messages.
"""

from datetime import date
from decimal import Decimal

from conftest import TEST_DATE
from ledger_kernel.domain.account import Account, AccountType
from ledger_kernel.domain.currency import DefaultCurrencies
from ledger_kernel.domain.transaction import Transaction, TransactionEntry
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction
from ledger_kernel.message.channels import ChannelEvent, MessageProperty


class TestGroceryPurchase:
    def test_double_entry_moves_money(self, engine, usd, deterministic_clock):
        root = engine.get_root_account()
        checking = Account(AccountType.BANK, usd, "Checking")
        groceries = Account(AccountType.EXPENSE, usd, "Groceries")
        assert engine.add_account(root, checking)
        assert engine.add_account(root, groceries)

        t = generate_double_entry_transaction(
            groceries, checking, Decimal("42.50"), deterministic_clock.today()
        )
        assert engine.add_transaction(t)

        assert checking.get_balance() == Decimal("-42.50")
        assert groceries.get_balance() == Decimal("42.50")
        assert checking.get_transaction_count() == 1
        assert groceries.get_transaction_count() == 1


class TestNullDebitAccount:
    def test_rejected_once_per_referenced_account(self, engine, checking, groceries, recorder):
        entry = TransactionEntry(checking, None, Decimal("10"))
        t = Transaction(TEST_DATE)
        t.add_entry(entry)

        assert not engine.add_transaction(t)
        assert checking.get_transaction_count() == 0
        assert groceries.get_transaction_count() == 0

        failures = recorder.of(ChannelEvent.TRANSACTION_ADD_FAILED)
        assert [m.get_object(MessageProperty.ACCOUNT) for m in failures] == [checking]


class TestExchangeRateInversion:
    def test_reverse_direction_is_reciprocal(self, engine, usd):
        eur = DefaultCurrencies.build_node("EUR")
        assert engine.add_currency(eur)
        on_date = date(2024, 1, 1)

        assert engine.set_exchange_rate(usd, eur, Decimal("0.90"), on_date)

        assert usd.get_exchange_rate(eur, on_date) == Decimal("0.90")
        reverse = eur.get_exchange_rate(usd, on_date)
        assert abs(reverse - Decimal("1.111111")) < Decimal("0.000001")
        assert abs(reverse * Decimal("0.90") - 1) < Decimal("1e-12")


class TestPlaceholderAccount:
    def test_transaction_against_placeholder_refused(self, engine, checking, new_account, usd, recorder):
        old = new_account("Old", AccountType.EXPENSE, usd)
        assert engine.set_account_placeholder(old, True)
        recorder.clear()

        t = generate_double_entry_transaction(old, checking, Decimal("5"), TEST_DATE)
        assert not engine.add_transaction(t)

        assert old.get_transaction_count() == 0
        assert checking.get_transaction_count() == 0
        assert engine.get_transactions() == []
        assert set(recorder.events()) == {ChannelEvent.TRANSACTION_ADD_FAILED}


class TestRemoveParentAccount:
    def test_account_with_child_stays(self, engine, usd, new_account, recorder):
        parent = new_account("Assets", AccountType.ASSET, usd)
        child = new_account("Bank", AccountType.BANK, usd, parent=parent)
        recorder.clear()

        assert not engine.remove_account(parent)
        assert parent in engine.get_root_account().get_children()
        assert child.parent is parent
        assert engine.is_stored(parent)
        assert recorder.events() == [ChannelEvent.ACCOUNT_REMOVE_FAILED]


class TestMoveIntoDescendant:
    def test_cycle_refused(self, engine, usd, new_account, recorder):
        a = new_account("A", AccountType.ASSET, usd)
        sub = new_account("Sub", AccountType.ASSET, usd, parent=a)
        sub2 = new_account("Sub2", AccountType.ASSET, usd, parent=sub)
        recorder.clear()

        assert not engine.move_account(sub, sub2)
        assert sub.parent is a
        assert sub in a.get_children()
        assert sub2.parent is sub
        assert recorder.events() == [ChannelEvent.ACCOUNT_MODIFY_FAILED]

"""Tests for Transaction / TransactionEntry shape and the transaction factory."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.account import Account, AccountType
from ledger_kernel.domain.commodity import CurrencyNode
from ledger_kernel.domain.tag import Tag
from ledger_kernel.domain.transaction import (
    ReconciledState,
    Transaction,
    TransactionEntry,
    TransactionType,
)
from ledger_kernel.domain.transaction_factory import (
    generate_double_entry_transaction,
    generate_multi_currency_transaction,
    generate_single_entry_transaction,
    generate_split_transaction,
)

DAY = date(2024, 3, 1)


@pytest.fixture
def usd():
    return CurrencyNode("USD")


@pytest.fixture
def accounts(usd):
    return (
        Account(AccountType.BANK, usd, "Bank"),
        Account(AccountType.EXPENSE, usd, "Food"),
        Account(AccountType.EXPENSE, usd, "Fuel"),
    )


class TestEntry:
    def test_set_amount_balances(self, accounts):
        bank, food, _ = accounts
        entry = TransactionEntry(food, bank, Decimal("10"))
        assert entry.credit_amount == Decimal("10")
        assert entry.debit_amount == Decimal("-10")
        assert entry.get_amount(food) == Decimal("10")
        assert entry.get_amount(bank) == Decimal("-10")

    def test_null_fields(self, accounts):
        bank, _, _ = accounts
        assert TransactionEntry(None, bank, Decimal("1")).has_null_field()
        assert TransactionEntry(bank, bank).has_null_field()

    def test_multi_currency(self, accounts):
        bank, _, _ = accounts
        cad_bank = Account(AccountType.BANK, CurrencyNode("CAD"), "CAD")
        assert TransactionEntry(cad_bank, bank, Decimal("1")).is_multi_currency()
        assert not TransactionEntry(bank, bank, Decimal("1")).is_multi_currency()

    def test_reconciled_state_per_side(self, accounts):
        bank, food, _ = accounts
        entry = TransactionEntry(food, bank, Decimal("10"))
        entry.set_reconciled(bank, ReconciledState.RECONCILED)
        assert entry.get_reconciled(bank) is ReconciledState.RECONCILED
        assert entry.get_reconciled(food) is ReconciledState.NOT_RECONCILED


class TestTransactionType:
    def test_empty_is_invalid(self):
        assert Transaction(DAY).transaction_type is TransactionType.INVALID

    def test_single_and_double(self, accounts):
        bank, food, _ = accounts
        single = generate_single_entry_transaction(bank, Decimal("5"), DAY)
        double = generate_double_entry_transaction(food, bank, Decimal("5"), DAY)
        assert single.transaction_type is TransactionType.SINGLENTRY
        assert double.transaction_type is TransactionType.DOUBLEENTRY

    def test_split_has_common_account(self, accounts):
        bank, food, fuel = accounts
        split = generate_split_transaction(bank, [(food, Decimal("3")), (fuel, Decimal("4"))], DAY)
        assert split.transaction_type is TransactionType.SPLITENTRY
        assert split.get_common_account() is bank
        assert split.get_amount(bank) == Decimal("-7")
        assert split.get_accounts() == {bank, food, fuel}

    def test_split_without_common_account(self, accounts, usd):
        bank, food, fuel = accounts
        other = Account(AccountType.CASH, usd, "Wallet")
        t = Transaction(DAY)
        t.add_entry(TransactionEntry(food, bank, Decimal("1")))
        t.add_entry(TransactionEntry(fuel, other, Decimal("1")))
        assert t.get_common_account() is None


class TestMultiCurrencyFactory:
    def test_signs_are_normalized(self, accounts):
        bank, _, _ = accounts
        cad_bank = Account(AccountType.BANK, CurrencyNode("CAD"), "CAD")
        t = generate_multi_currency_transaction(
            cad_bank, bank, Decimal("-135"), Decimal("100"), DAY
        )
        entry = t.entries[0]
        assert entry.credit_amount == Decimal("135")
        assert entry.debit_amount == Decimal("-100")


class TestClone:
    def test_clone_has_new_identity_same_content(self, accounts):
        bank, food, _ = accounts
        t = generate_double_entry_transaction(food, bank, Decimal("5"), DAY, memo="lunch")
        t.tags.add(Tag("work"))
        copy = t.clone()
        assert copy.uuid != t.uuid
        assert copy.memo == "lunch"
        assert copy.tags == t.tags
        assert copy.entries[0].uuid != t.entries[0].uuid
        assert copy.get_amount(bank) == t.get_amount(bank)


class TestOrdering:
    def test_sorted_by_date_then_number(self, accounts):
        bank, food, _ = accounts
        late = generate_double_entry_transaction(food, bank, Decimal("1"), date(2024, 3, 2))
        early_b = generate_double_entry_transaction(food, bank, Decimal("1"), DAY, number="2")
        early_a = generate_double_entry_transaction(food, bank, Decimal("1"), DAY, number="1")
        assert sorted([late, early_b, early_a]) == [early_a, early_b, late]

    def test_empty_transaction_is_truthy(self):
        assert Transaction(DAY)

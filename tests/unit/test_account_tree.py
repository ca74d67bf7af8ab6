"""Tests for Account hierarchy, attributes, caching and balances (no engine)."""

import copy
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.account import (
    Account,
    AccountGroup,
    AccountType,
    RootAccount,
)
from ledger_kernel.domain.commodity import CurrencyNode
from ledger_kernel.domain.transaction import ReconciledState
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction
from ledger_kernel.exceptions import (
    AccountCloneError,
    ImmutableAccountTypeError,
    InvalidAttributeKeyError,
    MissingArgumentError,
)


@pytest.fixture
def usd():
    return CurrencyNode("USD")


@pytest.fixture
def tree(usd):
    root = RootAccount(usd)
    assets = Account(AccountType.ASSET, usd, "Assets")
    bank = Account(AccountType.BANK, usd, "Bank")
    cash = Account(AccountType.CASH, usd, "Cash")
    root.add_child(assets)
    assets.add_child(bank)
    assets.add_child(cash)
    return root, assets, bank, cash


class TestAccountType:
    def test_groups(self):
        assert AccountType.BANK.group is AccountGroup.ASSET
        assert AccountType.CREDIT.group is AccountGroup.LIABILITY
        assert AccountType.MUTUAL.group is AccountGroup.INVEST

    def test_from_key(self):
        assert AccountType.from_key("money_market") is AccountType.MONEYMKRT
        with pytest.raises(ValueError):
            AccountType.from_key("nope")

    def test_immutable_type_cannot_change(self, usd):
        account = Account(AccountType.INVEST, usd, "Brokerage")
        with pytest.raises(ImmutableAccountTypeError) as exc_info:
            account._set_account_type(AccountType.BANK)
        assert exc_info.value.current_type == "INVEST"

    def test_mutable_type_can_change(self, usd):
        account = Account(AccountType.BANK, usd, "Bank")
        account._set_account_type(AccountType.CASH)
        assert account.account_type is AccountType.CASH

    def test_missing_type_raises(self, usd):
        with pytest.raises(MissingArgumentError):
            Account(AccountType.BANK, usd, "Bank")._set_account_type(None)


class TestHierarchy:
    def test_children_sorted_by_name(self, tree):
        _, assets, bank, cash = tree
        assert assets.get_children() == [bank, cash]

    def test_add_child_sets_parent(self, tree):
        root, assets, bank, _ = tree
        assert bank.parent is assets
        assert assets.parent is root
        assert root.parent is None

    def test_add_self_or_duplicate_child_refused(self, tree):
        _, assets, bank, _ = tree
        assert not assets.add_child(assets)
        assert not assets.add_child(bank)

    def test_descendants(self, tree):
        root, assets, bank, cash = tree
        assert root.is_descendant(bank)
        assert assets.is_descendant(cash)
        assert not bank.is_descendant(assets)
        assert list(root.iter_descendants()) == [assets, bank, cash]

    def test_path_name_uses_separator(self, tree):
        _, _, bank, _ = tree
        assert bank.get_path_name() == "Assets:Bank"
        assert bank.get_path_name("/") == "Assets/Bank"
        assert bank.get_depth() == 2

    def test_remove_child_clears_parent(self, tree):
        _, assets, bank, _ = tree
        assert assets.remove_child(bank)
        assert bank.parent is None
        assert not assets.remove_child(bank)


class TestAttributes:
    def test_set_get_remove(self, usd):
        account = Account(AccountType.BANK, usd, "Bank")
        account._set_attribute("iban", "DE00")
        assert account.get_attribute("iban") == "DE00"
        account._set_attribute("iban", None)
        assert account.get_attribute("iban") is None
        assert account.get_attributes() == {}

    def test_empty_key_raises(self, usd):
        account = Account(AccountType.BANK, usd, "Bank")
        with pytest.raises(InvalidAttributeKeyError):
            account._set_attribute("", "x")


class TestIdentity:
    def test_clone_is_forbidden(self, usd):
        account = Account(AccountType.BANK, usd, "Bank")
        with pytest.raises(AccountCloneError):
            account.clone()
        with pytest.raises(AccountCloneError):
            copy.copy(account)
        with pytest.raises(AccountCloneError):
            copy.deepcopy(account)

    def test_equality_by_uuid(self, usd):
        a = Account(AccountType.BANK, usd, "Bank")
        b = Account(AccountType.BANK, usd, "Bank", uuid=a.uuid)
        assert a == b
        assert hash(a) == hash(b)


class TestBalances:
    def test_balance_follows_transactions(self, tree):
        _, _, bank, cash = tree
        t = generate_double_entry_transaction(cash, bank, Decimal("20"), date(2024, 1, 1))
        bank.add_transaction(t)
        cash.add_transaction(t)

        assert bank.get_balance() == Decimal("-20")
        assert cash.get_balance() == Decimal("20")

        bank.remove_transaction(t)
        assert bank.get_balance() == Decimal("0")

    def test_cache_matches_cold_recomputation(self, tree):
        _, _, bank, cash = tree
        for day in (1, 2, 3):
            t = generate_double_entry_transaction(cash, bank, Decimal(day), date(2024, 1, day))
            bank.add_transaction(t)
            cash.add_transaction(t)
        cached = bank.get_balance()
        bank.clear_cached_balances()
        assert bank.get_balance() == cached == Decimal("-6")

    def test_reconciled_balance(self, tree):
        _, _, bank, cash = tree
        cleared = generate_double_entry_transaction(cash, bank, Decimal("5"), date(2024, 1, 1))
        open_ = generate_double_entry_transaction(cash, bank, Decimal("7"), date(2024, 1, 2))
        for t in (cleared, open_):
            bank.add_transaction(t)
        cleared.set_reconciled(bank, ReconciledState.CLEARED)
        bank.clear_cached_balances()
        assert bank.get_reconciled_balance() == Decimal("-5")

    def test_placeholder_refuses_transactions(self, tree):
        _, assets, bank, _ = tree
        assets.placeholder = True
        t = generate_double_entry_transaction(assets, bank, Decimal("1"), date(2024, 1, 1))
        assert not assets.add_transaction(t)

    def test_tree_balance_sums_children(self, tree):
        root, assets, bank, cash = tree
        t = generate_double_entry_transaction(cash, bank, Decimal("3"), date(2024, 1, 1))
        bank.add_transaction(t)
        cash.add_transaction(t)
        assert assets.get_tree_balance() == (
            assets.get_balance() + bank.get_tree_balance() + cash.get_tree_balance()
        )
        assert root.get_balance() == Decimal("0")

    def test_balance_between(self, tree):
        _, _, bank, cash = tree
        for day in (1, 10, 20):
            bank.add_transaction(
                generate_double_entry_transaction(cash, bank, Decimal("1"), date(2024, 1, day))
            )
        assert bank.get_balance_between(date(2024, 1, 5), date(2024, 1, 20)) == Decimal("-2")

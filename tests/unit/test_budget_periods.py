"""Tests for budget period descriptors, goals and budget results."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_kernel.domain.account import Account, AccountType, RootAccount
from ledger_kernel.domain.budget import (
    Budget,
    BudgetGoal,
    BudgetPeriod,
    compute_budget_result,
)
from ledger_kernel.domain.commodity import CurrencyNode
from ledger_kernel.domain.transaction_factory import generate_double_entry_transaction


class TestPeriods:
    @pytest.mark.parametrize(
        "period, count",
        [
            (BudgetPeriod.YEARLY, 1),
            (BudgetPeriod.QUARTERLY, 4),
            (BudgetPeriod.MONTHLY, 12),
            (BudgetPeriod.WEEKLY, 53),
            (BudgetPeriod.BI_WEEKLY, 27),
        ],
    )
    def test_period_count(self, period, count):
        assert len(period.descriptors(2024)) == count

    @pytest.mark.parametrize("period", list(BudgetPeriod))
    def test_periods_cover_every_day_once(self, period):
        descriptors = period.descriptors(2023)
        assert descriptors[0].start == date(2023, 1, 1)
        assert descriptors[-1].end == date(2023, 12, 31)
        for previous, current in zip(descriptors, descriptors[1:]):
            assert current.start == previous.end + timedelta(days=1)
        assert [d.index for d in descriptors] == list(range(1, len(descriptors) + 1))

    def test_leap_february(self):
        february = BudgetPeriod.MONTHLY.descriptors(2024)[1]
        assert february.end == date(2024, 2, 29)

    def test_descriptor_for(self):
        assert BudgetPeriod.QUARTERLY.descriptor_for(date(2024, 5, 15)).index == 2
        assert BudgetPeriod.WEEKLY.descriptor_for(date(2024, 1, 8)).index == 2


class TestGoals:
    def test_zero_goal_is_not_stored(self):
        goal = BudgetGoal()
        goal.set_goal(1, Decimal("100"))
        goal.set_goal(2, Decimal("50"))
        goal.set_goal(1, Decimal("0"))
        assert goal.get_goals() == {2: Decimal("50")}
        assert goal.total() == Decimal("50")
        assert goal.get_goal(7) == Decimal("0")

    def test_copy_is_independent(self):
        goal = BudgetGoal(goals={1: Decimal("10")})
        copy = goal.copy()
        copy.set_goal(1, Decimal("20"))
        assert goal.get_goal(1) == Decimal("10")
        assert copy.uuid != goal.uuid

    def test_budget_returns_fresh_goal_for_unknown_account(self):
        usd = CurrencyNode("USD")
        account = Account(AccountType.EXPENSE, usd, "Food")
        budget = Budget("2024", BudgetPeriod.QUARTERLY)
        goal = budget.get_budget_goal(account)
        assert goal.budget_period is BudgetPeriod.QUARTERLY
        assert not budget.has_budget_goal(account)

    def test_set_budget_goal_returns_replaced_goal(self):
        usd = CurrencyNode("USD")
        account = Account(AccountType.EXPENSE, usd, "Food")
        budget = Budget("2024")
        first = BudgetGoal()
        assert budget._set_budget_goal(account, first) is None
        assert budget._set_budget_goal(account, BudgetGoal()) is first
        assert budget.goal_account_ids() == [account.uuid]


class TestBudgetResult:
    @pytest.fixture
    def ledger(self):
        usd = CurrencyNode("USD")
        root = RootAccount(usd)
        bank = Account(AccountType.BANK, usd, "Bank")
        food = Account(AccountType.EXPENSE, usd, "Food")
        salary = Account(AccountType.INCOME, usd, "Salary")
        for account in (bank, food, salary):
            root.add_child(account)
        return bank, food, salary

    def _post(self, credit, debit, amount, on_date):
        t = generate_double_entry_transaction(credit, debit, Decimal(amount), on_date)
        credit.add_transaction(t)
        debit.add_transaction(t)

    def test_expense_actual_against_goal(self, ledger):
        bank, food, _ = ledger
        self._post(food, bank, "30", date(2024, 3, 5))
        self._post(food, bank, "45", date(2024, 3, 20))
        self._post(food, bank, "99", date(2024, 4, 1))

        budget = Budget("2024")
        goal = BudgetGoal()
        goal.set_goal(3, Decimal("60"))
        budget._set_budget_goal(food, goal)

        result = compute_budget_result(budget, food, 2024, 3)
        assert result.actual == Decimal("75")
        assert result.goal == Decimal("60")
        assert result.remaining == Decimal("-15")
        assert result.over_budget

    def test_income_reads_positive(self, ledger):
        bank, _, salary = ledger
        self._post(bank, salary, "1000", date(2024, 1, 31))
        result = compute_budget_result(Budget("2024"), salary, 2024, 1)
        assert result.actual == Decimal("1000")
        assert result.goal == Decimal("0")

    def test_unknown_period_raises(self, ledger):
        _, food, _ = ledger
        with pytest.raises(ValueError):
            compute_budget_result(Budget("2024"), food, 2024, 13)

"""
Module: ledger_kernel.domain.budget
Responsibility: Budgets, per-account goals and the comparison of goals with
    actual ledger activity.
Architecture position: Kernel > Domain.  Reads accounts through their
    public balance accessors; never mutates the ledger.

Invariants enforced:
    - A Budget holds at most one BudgetGoal per account.
    - Replacing a goal goes through the engine, which trashes the old one.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.stored_object import StoredObject
from ledger_kernel.domain.values import ZERO

if TYPE_CHECKING:
    from ledger_kernel.domain.account import Account


@dataclass(frozen=True)
class BudgetPeriodDescriptor:
    index: int
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class BudgetPeriod(Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    def descriptors(self, year: int) -> list[BudgetPeriodDescriptor]:
        """The periods of ``year``, numbered from 1, covering every day once."""
        first = date(year, 1, 1)
        last = date(year, 12, 31)
        match self:
            case BudgetPeriod.WEEKLY | BudgetPeriod.BI_WEEKLY:
                step = timedelta(days=7 if self is BudgetPeriod.WEEKLY else 14)
                periods = []
                start = first
                index = 1
                while start <= last:
                    end = min(start + step - timedelta(days=1), last)
                    periods.append(BudgetPeriodDescriptor(index, start, end))
                    start = end + timedelta(days=1)
                    index += 1
                return periods
            case BudgetPeriod.MONTHLY:
                return [
                    BudgetPeriodDescriptor(
                        m, date(year, m, 1), date(year, m, calendar.monthrange(year, m)[1])
                    )
                    for m in range(1, 13)
                ]
            case BudgetPeriod.QUARTERLY:
                return [
                    BudgetPeriodDescriptor(
                        q,
                        date(year, 3 * q - 2, 1),
                        date(year, 3 * q, calendar.monthrange(year, 3 * q)[1]),
                    )
                    for q in range(1, 5)
                ]
            case BudgetPeriod.YEARLY:
                return [BudgetPeriodDescriptor(1, first, last)]
        raise ValueError(f"Unhandled budget period {self}")

    def descriptor_for(self, day: date) -> BudgetPeriodDescriptor:
        for descriptor in self.descriptors(day.year):
            if descriptor.contains(day):
                return descriptor
        raise ValueError(f"No {self.value} period contains {day}")


class BudgetGoal(StoredObject):
    """Target amounts for one account, keyed by period index."""

    def __init__(
        self,
        budget_period: BudgetPeriod = BudgetPeriod.MONTHLY,
        goals: dict[int, Decimal] | None = None,
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.budget_period = budget_period
        self._goals: dict[int, Decimal] = dict(goals or {})

    def get_goal(self, index: int) -> Decimal:
        return self._goals.get(index, ZERO)

    def set_goal(self, index: int, amount: Decimal) -> None:
        if amount == ZERO:
            self._goals.pop(index, None)
        else:
            self._goals[index] = amount

    def get_goals(self) -> dict[int, Decimal]:
        return dict(self._goals)

    def total(self) -> Decimal:
        return sum(self._goals.values(), ZERO)

    def copy(self) -> BudgetGoal:
        return BudgetGoal(self.budget_period, self._goals)

    def __repr__(self) -> str:
        return f"BudgetGoal({self.budget_period.name}, total={self.total()})"


class Budget(StoredObject):
    """A named set of per-account goals over one period granularity."""

    def __init__(
        self,
        name: str = "",
        budget_period: BudgetPeriod = BudgetPeriod.MONTHLY,
        description: str = "",
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.name = name
        self.description = description
        self.budget_period = budget_period
        self._goals: dict[UUID, BudgetGoal] = {}

    def get_budget_goal(self, account: Account) -> BudgetGoal:
        """The account's goal, or a fresh empty one if none is set."""
        goal = self._goals.get(account.uuid)
        if goal is None:
            return BudgetGoal(self.budget_period)
        return goal

    def has_budget_goal(self, account: Account) -> bool:
        return account.uuid in self._goals

    def _set_budget_goal(self, account: Account, goal: BudgetGoal) -> BudgetGoal | None:
        """Store ``goal`` and return the goal it replaced."""
        previous = self._goals.get(account.uuid)
        self._goals[account.uuid] = goal
        return previous

    def _remove_budget_goal(self, account: Account) -> BudgetGoal | None:
        return self._goals.pop(account.uuid, None)

    def goal_account_ids(self) -> list[UUID]:
        return list(self._goals)

    def goals_by_account_id(self) -> dict[UUID, BudgetGoal]:
        return dict(self._goals)

    def copy_fields_from(self, template: Budget) -> None:
        self.name = template.name
        self.description = template.description
        self.budget_period = template.budget_period

    def __repr__(self) -> str:
        return f"Budget({self.name!r}, {self.budget_period.name}, goals={len(self._goals)})"


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetResult:
    """Goal versus actual activity for one account and period."""

    account_name: str
    period: BudgetPeriodDescriptor
    goal: Decimal
    actual: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.goal - self.actual

    @property
    def over_budget(self) -> bool:
        return self.actual > self.goal


def _reporting_sign(account: Account) -> Decimal:
    from ledger_kernel.domain.account import AccountGroup

    if account.member_of(AccountGroup.INCOME) or account.member_of(
        AccountGroup.LIABILITY
    ) or account.member_of(AccountGroup.EQUITY):
        return Decimal(-1)
    return Decimal(1)


def compute_budget_result(
    budget: Budget,
    account: Account,
    year: int,
    index: int,
    include_children: bool = True,
) -> BudgetResult:
    """
    Compare ``account``'s goal for period ``index`` of ``year`` with the
    actual activity in that period.

    Income, liability and equity balances are negated so that money
    earned or owed reads as a positive actual.
    """
    descriptors = budget.budget_period.descriptors(year)
    descriptor = next((d for d in descriptors if d.index == index), None)
    if descriptor is None:
        raise ValueError(f"Period {index} does not exist in {year} for {budget.budget_period.name}")

    if include_children:
        actual = account.get_tree_balance_between(descriptor.start, descriptor.end)
    else:
        actual = account.get_balance_between(descriptor.start, descriptor.end)

    goal = budget.get_budget_goal(account).get_goal(index)
    return BudgetResult(account.name, descriptor, goal, actual * _reporting_sign(account))

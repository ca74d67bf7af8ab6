"""
Module: ledger_kernel.models.budget
Responsibility: ORM persistence for budgets, the per-account goal of each
    budget and the amount of a goal in each period of the year.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A budget holds one goal per account; a replaced goal's row is
      deleted in the same flush that inserts its successor.
    - Goal and amount rows are deleted with their owner or when replaced.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, LedgerRecord, UUIDString


class BudgetRecord(LedgerRecord):
    """A named budget."""

    __tablename__ = "budgets"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # BudgetPeriod value
    budget_period: Mapped[str] = mapped_column(String(16), nullable=False)

    goals: Mapped[list["BudgetGoalRecord"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<BudgetRecord {self.name}>"


class BudgetGoalRecord(Base):
    """The goal one budget sets for one account."""

    __tablename__ = "budget_goals"

    __table_args__ = (Index("idx_budget_goal_budget", "budget_id"),)

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budgets.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    budget_period: Mapped[str] = mapped_column(String(16), nullable=False)

    amounts: Mapped[list["BudgetGoalAmountRecord"]] = relationship(
        cascade="all, delete-orphan",
        order_by="BudgetGoalAmountRecord.period_index",
        lazy="selectin",
    )


class BudgetGoalAmountRecord(Base):
    """A goal's amount for one period index."""

    __tablename__ = "budget_goal_amounts"

    goal_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budget_goals.id"),
        primary_key=True,
    )

    period_index: Mapped[int] = mapped_column(Integer, primary_key=True)

    amount: Mapped[Decimal]

"""
Module: ledger_kernel.models.reminder
Responsibility: ORM persistence for reminders.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``transaction_id`` names the template row in ``transactions`` whose
      ``reminder_id`` is this reminder.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, Date, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import LedgerRecord, UUIDString


class ReminderRecord(LedgerRecord):
    """A recurring reminder and its schedule state."""

    __tablename__ = "reminders"

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    # ReminderType value
    reminder_type: Mapped[str] = mapped_column(String(16), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Latest occurrence already handled
    last_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    increment: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    auto_create: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    days_advance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    transaction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<ReminderRecord {self.description}>"

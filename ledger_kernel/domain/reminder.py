"""
Module: ledger_kernel.domain.reminder
Responsibility: Recurring transaction reminders and the pending instances
    produced when a reminder's occurrences fall due.
Architecture position: Kernel > Domain.  The engine scans reminders for
    pending occurrences and materializes approved ones as transactions.

Invariants enforced:
    - Occurrences are generated from ``start_date`` in whole increments, so
      a monthly reminder started on the 31st lands on the last day of
      shorter months without drifting.
    - ``last_date`` only moves forward, one occurrence at a time.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.stored_object import StoredObject

if TYPE_CHECKING:
    from ledger_kernel.domain.account import Account
    from ledger_kernel.domain.transaction import Transaction


class ReminderType(Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def add_months(start: date, months: int) -> date:
    """``start`` moved by ``months``, clamped to the end of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def occurrence(reminder_type: ReminderType, start: date, increment: int, n: int) -> date:
    """The ``n``-th occurrence (0-based) of a recurrence."""
    match reminder_type:
        case ReminderType.ONCE:
            return start
        case ReminderType.DAILY:
            return start + timedelta(days=n * increment)
        case ReminderType.WEEKLY:
            return start + timedelta(weeks=n * increment)
        case ReminderType.MONTHLY:
            return add_months(start, n * increment)
        case ReminderType.YEARLY:
            return add_months(start, 12 * n * increment)
    raise ValueError(f"Unhandled reminder type {reminder_type}")


class Reminder(StoredObject):
    """
    A recurring transaction template.

    ``days_advance`` lets auto-create reminders fire before their due date.
    """

    def __init__(
        self,
        description: str = "",
        reminder_type: ReminderType = ReminderType.MONTHLY,
        start_date: date | None = None,
        increment: int = 1,
        uuid: UUID | None = None,
    ) -> None:
        super().__init__(uuid)
        self.description = description
        self.reminder_type = reminder_type
        self.start_date: date = start_date or date(1970, 1, 1)
        self.increment = max(1, increment)
        self.end_date: date | None = None
        self.last_date: date | None = None
        self.enabled = True
        self.auto_create = False
        self.days_advance = 0
        self.notes = ""
        self.account: Account | None = None
        self.transaction: Transaction | None = None

    def iter_dates(self) -> Iterator[date]:
        """Occurrences after ``last_date`` (or from ``start_date``), up to ``end_date``."""
        n = 0
        while True:
            day = occurrence(self.reminder_type, self.start_date, self.increment, n)
            if self.end_date is not None and day > self.end_date:
                return
            if self.last_date is None or day > self.last_date:
                yield day
            if self.reminder_type is ReminderType.ONCE:
                return
            n += 1

    def next_date(self) -> date | None:
        return next(self.iter_dates(), None)

    def set_last_date(self, on_date: date | None = None) -> None:
        """
        Mark occurrences as done.

        With ``on_date`` every occurrence up to and including it is done;
        ``last_date`` never moves backwards.  Without it, only the next
        outstanding occurrence is.
        """
        if on_date is None:
            on_date = self.next_date()
            if on_date is None:
                return
        if self.last_date is None or on_date > self.last_date:
            self.last_date = on_date

    def copy_fields_from(self, template: Reminder) -> None:
        self.description = template.description
        self.reminder_type = template.reminder_type
        self.start_date = template.start_date
        self.increment = template.increment
        self.end_date = template.end_date
        self.last_date = template.last_date
        self.enabled = template.enabled
        self.auto_create = template.auto_create
        self.days_advance = template.days_advance
        self.notes = template.notes
        self.account = template.account
        self.transaction = template.transaction

    def __repr__(self) -> str:
        return (
            f"Reminder({self.description!r}, {self.reminder_type.name} x{self.increment}, "
            f"last={self.last_date})"
        )


@dataclass(order=True)
class PendingReminder:
    """A due occurrence of a reminder waiting for approval."""

    commit_date: date
    reminder: Reminder = field(compare=False)
    approved: bool = field(default=False, compare=False)

    @property
    def account(self) -> Account | None:
        return self.reminder.account

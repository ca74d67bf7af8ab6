"""Tests for reminder recurrence arithmetic."""

from datetime import date
from itertools import islice

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_kernel.domain.reminder import (
    PendingReminder,
    Reminder,
    ReminderType,
    add_months,
    occurrence,
)


class TestAddMonths:
    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2023, 1, 31), 1, date(2023, 2, 28)),
            (date(2024, 11, 15), 2, date(2025, 1, 15)),
            (date(2024, 3, 31), -1, date(2024, 2, 29)),
            (date(2024, 5, 10), 0, date(2024, 5, 10)),
        ],
    )
    def test_clamps_to_month_end(self, start, months, expected):
        assert add_months(start, months) == expected

    @given(
        st.dates(min_value=date(1900, 1, 1), max_value=date(2200, 12, 31)),
        st.integers(min_value=0, max_value=600),
    )
    def test_never_moves_day_forward(self, start, months):
        result = add_months(start, months)
        assert result.day <= start.day
        assert (result.year * 12 + result.month) - (start.year * 12 + start.month) == months


class TestOccurrences:
    def test_monthly_from_31st_does_not_drift(self):
        days = [occurrence(ReminderType.MONTHLY, date(2024, 1, 31), 1, n) for n in range(4)]
        assert days == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]

    def test_weekly_increment(self):
        assert occurrence(ReminderType.WEEKLY, date(2024, 1, 1), 2, 1) == date(2024, 1, 15)

    def test_yearly_leap_day(self):
        assert occurrence(ReminderType.YEARLY, date(2024, 2, 29), 1, 1) == date(2025, 2, 28)


class TestReminder:
    def test_once_yields_a_single_date(self):
        reminder = Reminder("Dentist", ReminderType.ONCE, date(2024, 6, 1))
        assert list(reminder.iter_dates()) == [date(2024, 6, 1)]
        reminder.set_last_date()
        assert reminder.next_date() is None

    def test_end_date_stops_recurrence(self):
        reminder = Reminder("Rent", ReminderType.MONTHLY, date(2024, 1, 1))
        reminder.end_date = date(2024, 3, 15)
        assert list(reminder.iter_dates()) == [
            date(2024, 1, 1),
            date(2024, 2, 1),
            date(2024, 3, 1),
        ]

    def test_last_date_advances_one_occurrence(self):
        reminder = Reminder("Rent", ReminderType.DAILY, date(2024, 1, 1), increment=3)
        reminder.set_last_date()
        reminder.set_last_date()
        assert reminder.last_date == date(2024, 1, 4)
        assert list(islice(reminder.iter_dates(), 2)) == [date(2024, 1, 7), date(2024, 1, 10)]

    def test_last_date_jumps_to_given_occurrence(self):
        reminder = Reminder("Rent", ReminderType.MONTHLY, date(2024, 1, 1))
        reminder.set_last_date(date(2024, 3, 1))
        assert reminder.next_date() == date(2024, 4, 1)

    def test_last_date_never_moves_backwards(self):
        reminder = Reminder("Rent", ReminderType.MONTHLY, date(2024, 1, 1))
        reminder.set_last_date(date(2024, 3, 1))
        reminder.set_last_date(date(2024, 2, 1))
        assert reminder.last_date == date(2024, 3, 1)

    def test_increment_is_at_least_one(self):
        assert Reminder(increment=0).increment == 1

    def test_pending_orders_by_commit_date(self):
        reminder = Reminder("Rent")
        late = PendingReminder(date(2024, 2, 1), reminder)
        early = PendingReminder(date(2024, 1, 1), reminder)
        assert sorted([late, early]) == [early, late]

"""
Recurrence -- next-due-date arithmetic for recurring schedules.

Calendar-month and calendar-year steps clamp the day to the length of the
target month, so Jan 31 -> Feb 29 (leap) / Feb 28, and Feb 29 -> Feb 28 of
the next year.  Recurrence types compare by value, so both the enum member
and its string form are accepted.
"""

import calendar
from datetime import date, timedelta

from ledger_kernel.exceptions import UnknownRecurrenceTypeError


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def calculate_next_due_date(current: date, recurrence_type) -> date:
    """
    Return the due date one period after ``current``.

    Raises:
        UnknownRecurrenceTypeError: recurrence_type is outside
            DAILY/WEEKLY/MONTHLY/YEARLY.
    """
    if recurrence_type == "DAILY":
        return current + timedelta(days=1)
    if recurrence_type == "WEEKLY":
        return current + timedelta(weeks=1)
    if recurrence_type == "MONTHLY":
        return add_months(current, 1)
    if recurrence_type == "YEARLY":
        return add_months(current, 12)
    raise UnknownRecurrenceTypeError(recurrence_type)


def has_ended(next_due: date, end_date: date | None) -> bool:
    """True once ``next_due`` lies past the schedule's end date."""
    return end_date is not None and next_due > end_date

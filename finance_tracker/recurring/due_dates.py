"""
Due-Date Calculator

Pure date arithmetic for recurring schedules, day granularity only.

Occurrence n of a schedule is always derived from its start date, never by
stepping from the previous occurrence. A monthly schedule starting Jan 31
therefore falls on Feb 28 (Feb 29 in leap years) and then back on Mar 31,
instead of drifting to the 28th for the rest of its life.

Two modes are offered:
- next_occurrence(): the single occurrence after a watermark (processor)
- is_occurrence(): membership test for a given day (projection engine)
"""

import calendar
from datetime import date, timedelta
from typing import Optional

from finance_tracker.models.ledger import Frequency


def add_months(start: date, months: int) -> date:
    """
    Shift a date by whole months, clamping to the target month's last day.

    >>> add_months(date(2025, 1, 31), 1)
    datetime.date(2025, 2, 28)
    """
    month_index = start.year * 12 + (start.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def is_month_end(day: date) -> bool:
    return (day + timedelta(days=1)).month != day.month


def nth_occurrence(start: date, frequency: Frequency, n: int) -> date:
    """Occurrence number ``n`` (0 is the start date itself)."""
    if n < 0:
        raise ValueError("Occurrence index cannot be negative")
    if frequency == Frequency.DAILY:
        return start + timedelta(days=n)
    if frequency == Frequency.WEEKLY:
        return start + timedelta(weeks=n)
    if frequency == Frequency.MONTHLY:
        return add_months(start, n)
    if frequency == Frequency.YEARLY:
        return add_months(start, 12 * n)
    raise ValueError(f"Unsupported frequency: {frequency}")


def _index_at_or_before(start: date, frequency: Frequency, day: date) -> int:
    """Index of the last occurrence on or before ``day`` (day >= start)."""
    if frequency == Frequency.DAILY:
        return (day - start).days
    if frequency == Frequency.WEEKLY:
        return (day - start).days // 7

    step = 12 if frequency == Frequency.YEARLY else 1
    months = (day.year - start.year) * 12 + (day.month - start.month)
    n = months // step
    # Same month (or year) but earlier day-of-month than the occurrence
    if nth_occurrence(start, frequency, n) > day:
        n -= 1
    return n


def next_occurrence(
    start: date,
    frequency: Frequency,
    after: Optional[date] = None,
) -> date:
    """
    The first occurrence strictly after ``after``.

    With no watermark the schedule counts as last run on its start date, so
    the first occurrence materialized is one period after it.
    """
    if after is None:
        return nth_occurrence(start, frequency, 1)
    if after < start:
        return start
    return nth_occurrence(
        start,
        frequency,
        _index_at_or_before(start, frequency, after) + 1,
    )


def is_occurrence(start: date, frequency: Frequency, day: date) -> bool:
    """Whether the schedule falls due on ``day``."""
    if day < start:
        return False
    if frequency == Frequency.DAILY:
        return True
    if frequency == Frequency.WEEKLY:
        return (day - start).days % 7 == 0
    return nth_occurrence(
        start,
        frequency,
        _index_at_or_before(start, frequency, day),
    ) == day

"""Recurring schedules: due dates, processing and management."""

from finance_tracker.recurring.due_dates import (
    add_months,
    is_month_end,
    is_occurrence,
    next_occurrence,
    nth_occurrence,
)
from finance_tracker.recurring.locks import OwnerLockRegistry, processing_owners
from finance_tracker.recurring.processor import RecurringProcessor, ScheduleAborted
from finance_tracker.recurring.schedules import ScheduleService
from finance_tracker.recurring.unit_of_work import (
    OptimisticUnitOfWork,
    RetriesExhaustedError,
)

__all__ = [
    # Due dates
    "add_months",
    "is_month_end",
    "is_occurrence",
    "next_occurrence",
    "nth_occurrence",
    # Processing
    "OptimisticUnitOfWork",
    "OwnerLockRegistry",
    "RecurringProcessor",
    "RetriesExhaustedError",
    "ScheduleAborted",
    "processing_owners",
    # Management
    "ScheduleService",
]

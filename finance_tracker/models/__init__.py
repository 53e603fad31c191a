"""
Data Models Package

This package contains all Pydantic models used by the finance tracker core.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    LIABILITY_TYPES,
    Account,
    AccountType,
    Direction,
    Frequency,
    LedgerEntry,
    Money,
    RecurringSchedule,
    ScheduleRequest,
    ScheduleView,
    signed,
)
from finance_tracker.models.projection import (
    DebtPlan,
    DebtState,
    DebtStrategy,
    DebtStrategyResult,
    PayoffEntry,
    ProcessingReport,
    ProcessingStatus,
    ProjectionPoint,
    ProjectionResult,
    UpcomingEvent,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "LIABILITY_TYPES",
    "Account",
    "AccountType",
    "Direction",
    "Frequency",
    "LedgerEntry",
    "Money",
    "RecurringSchedule",
    "ScheduleRequest",
    "ScheduleView",
    "signed",
    # Planning models
    "DebtPlan",
    "DebtState",
    "DebtStrategy",
    "DebtStrategyResult",
    "PayoffEntry",
    "ProcessingReport",
    "ProcessingStatus",
    "ProjectionPoint",
    "ProjectionResult",
    "UpcomingEvent",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

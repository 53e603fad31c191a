"""Request validation package."""

from finance_tracker.validation.validator import (
    ScheduleValidator,
    ValidationError,
    ValidationIssue,
    ValidationResult,
    parse_extra_payment,
    validate_horizon,
)

__all__ = [
    "ScheduleValidator",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "parse_extra_payment",
    "validate_horizon",
]

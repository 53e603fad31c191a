"""
Request Validation

DESIGN DECISION: Everything the recurring core is asked to do is validated
before any processing or simulation begins. A rejected request never leaves
partial state behind.

Schedule requests go through two stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Amount is a positive number
- Direction and frequency are known values

STAGE 2 - SEMANTIC VALIDATION:
- Start dates far in the past (catch-up would create many entries)
- Start dates far in the future

Stage 2 only runs if stage 1 passes. Issues are reported, never silently
fixed.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field

from finance_tracker.config import ProjectionSettings, get_settings
from finance_tracker.models.ledger import Direction, Frequency, ScheduleRequest


REQUIRED_SCHEDULE_FIELDS = (
    "description",
    "amount",
    "direction",
    "category",
    "frequency",
    "start_date",
    "account_id",
)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one request."""

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'schedule', 'extra_payment')"
    )
    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


class ValidationError(Exception):
    """A request was rejected before any work began."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.message = message
        self.issues = issues or []

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationError":
        errors = [issue for issue in result.issues if issue.severity == "error"]
        message = errors[0].message if len(errors) == 1 else (
            f"Invalid {result.subject}: {len(errors)} problems found"
        )
        return cls(message, result.issues)


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
    )


class ScheduleValidator:
    """Validates schedule creation requests."""

    def __init__(
        self,
        max_past_years: int = 5,
        max_future_years: int = 10,
    ):
        self._max_past = timedelta(days=365 * max_past_years)
        self._max_future = timedelta(days=365 * max_future_years)

    def _validate_schema(
        self,
        request: ScheduleRequest,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        missing = [
            name for name in REQUIRED_SCHEDULE_FIELDS
            if getattr(request, name) in (None, "")
        ]
        if missing:
            issues.append(_error(
                ",".join(missing),
                "missing",
                "Missing required fields",
            ))

        if request.amount is not None and (
            not request.amount.is_finite() or request.amount <= 0
        ):
            issues.append(_error("amount", "invalid_value", "Invalid amount"))

        if request.direction and request.direction not in {d.value for d in Direction}:
            issues.append(_error(
                "direction",
                "invalid_value",
                f"Unknown transaction type: {request.direction}",
            ))

        if request.frequency and request.frequency not in {f.value for f in Frequency}:
            issues.append(_error(
                "frequency",
                "invalid_value",
                f"Unknown frequency: {request.frequency}",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        request: ScheduleRequest,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if request.start_date < today - self._max_past:
            issues.append(ValidationIssue(
                field="start_date",
                issue_type="suspicious_date",
                message=(
                    f"Start date ({request.start_date}) is far in the past; "
                    "every missed occurrence will be added to the ledger"
                ),
                severity="warning",
            ))

        if request.start_date > today + self._max_future:
            issues.append(ValidationIssue(
                field="start_date",
                issue_type="suspicious_date",
                message=f"Start date ({request.start_date}) is far in the future",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        request: ScheduleRequest,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Run full two-stage validation."""
        today = today or date.today()
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(request)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(request, today)
            all_issues.extend(semantic_issues)

        return ValidationResult(
            subject="schedule",
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=all_issues,
        )

    def require_valid(
        self,
        request: ScheduleRequest,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Validate and raise ValidationError unless the request is valid."""
        result = self.validate(request, today)
        if not result.is_valid:
            raise ValidationError.from_result(result)
        return result


def parse_extra_payment(value: Any) -> Decimal:
    """
    Parse the monthly extra payment for a debt plan.

    Accepts numbers and numeric strings; anything else, negatives,
    NaN and infinity are rejected.
    """
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationError("Invalid extra payment amount.", [
            _error("extra_payment", "missing", "Extra payment is required"),
        ])
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        amount = None

    if amount is None or not amount.is_finite() or amount < 0:
        raise ValidationError("Invalid extra payment amount.", [
            _error(
                "extra_payment",
                "invalid_value",
                f"Extra payment must be a number >= 0, got {value!r}",
            ),
        ])
    return amount


def validate_horizon(
    months: Any,
    settings: Optional[ProjectionSettings] = None,
    restrict_to_allowed: bool = False,
) -> int:
    """
    Check a projection horizon in months.

    The engine accepts any positive whole number of months. The HTTP
    surface additionally restricts it to the offered durations.
    """
    settings = settings or get_settings().projection

    if isinstance(months, bool) or not isinstance(months, int):
        try:
            months = int(str(months).strip())
        except ValueError:
            raise ValidationError("Invalid projection duration.", [
                _error("duration", "invalid_value", f"Not a whole number: {months!r}"),
            ])

    if months < 1:
        raise ValidationError("Invalid projection duration.", [
            _error("duration", "out_of_range", f"Duration must be at least 1 month, got {months}"),
        ])

    allowed = settings.allowed_durations_list
    if restrict_to_allowed and months not in allowed:
        raise ValidationError("Invalid projection duration.", [
            _error(
                "duration",
                "invalid_value",
                f"Duration must be one of {allowed}",
            ),
        ])

    return months

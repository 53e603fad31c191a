"""
Audit Models for the Finance Tracker

Every significant action of the recurring core is logged for audit purposes.
This provides:
1. Traceability of every materialized ledger entry back to its schedule
2. Debugging information when an occurrence could not be materialized
3. A record of failures that are otherwise only visible server-side

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Schedule management
    SCHEDULE_CREATED = "schedule_created"
    SCHEDULE_DELETED = "schedule_deleted"

    # Recurring processing
    PROCESSING_STARTED = "processing_started"
    PROCESSING_COMPLETED = "processing_completed"
    PROCESSING_ALREADY_RUNNING = "processing_already_running"
    OCCURRENCE_MATERIALIZED = "occurrence_materialized"
    OCCURRENCE_ALREADY_PROCESSED = "occurrence_already_processed"
    OCCURRENCE_ABORTED = "occurrence_aborted"
    OCCURRENCE_FAILED = "occurrence_failed"

    # Planning
    PROJECTION_COMPUTED = "projection_computed"
    DEBT_PLAN_COMPUTED = "debt_plan_computed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - who and what is this about?
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'schedule', 'account', 'projection')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one processor run share this
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.schedule_created(owner_id, schedule_id, ...)
        event = AuditEventBuilder.occurrence_materialized(...)
    """

    @staticmethod
    def schedule_created(
        owner_id: str,
        schedule_id: UUID,
        description: str,
        frequency: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_CREATED,
            owner_id=owner_id,
            entity_type="schedule",
            entity_id=schedule_id,
            description=f"Recurring schedule created: {description}",
            details={"frequency": frequency},
            is_user_action=True,
        )

    @staticmethod
    def schedule_deleted(owner_id: str, schedule_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_DELETED,
            owner_id=owner_id,
            entity_type="schedule",
            entity_id=schedule_id,
            description="Recurring schedule removed",
            is_user_action=True,
        )

    @staticmethod
    def processing_started(
        owner_id: str,
        schedule_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROCESSING_STARTED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Recurring processing started for {schedule_count} schedules",
            details={"schedule_count": schedule_count},
        )

    @staticmethod
    def processing_completed(
        owner_id: str,
        materialized: int,
        failed: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROCESSING_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Recurring processing materialized {materialized} occurrences",
            details={"materialized": materialized, "failed": failed},
        )

    @staticmethod
    def processing_already_running(
        owner_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROCESSING_ALREADY_RUNNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Recurring processing skipped: already in progress",
        )

    @staticmethod
    def occurrence_materialized(
        owner_id: str,
        schedule_id: UUID,
        entry_id: UUID,
        occurrence: date,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_MATERIALIZED,
            owner_id=owner_id,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=f"Materialized occurrence {occurrence.isoformat()}",
            details={
                "entry_id": str(entry_id),
                "occurrence": occurrence.isoformat(),
                "amount": amount,
            },
        )

    @staticmethod
    def occurrence_already_processed(
        owner_id: str,
        schedule_id: UUID,
        occurrence: date,
        watermark: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_ALREADY_PROCESSED,
            owner_id=owner_id,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=f"Occurrence {occurrence.isoformat()} already processed",
            details={
                "occurrence": occurrence.isoformat(),
                "watermark": watermark.isoformat(),
            },
        )

    @staticmethod
    def occurrence_aborted(
        owner_id: str,
        schedule_id: UUID,
        occurrence: date,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_ABORTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=f"Occurrence {occurrence.isoformat()} aborted: {reason}",
            details={"occurrence": occurrence.isoformat(), "reason": reason},
        )

    @staticmethod
    def occurrence_failed(
        owner_id: str,
        schedule_id: UUID,
        occurrence: date,
        error_message: str,
        attempts: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=f"Failed to materialize occurrence {occurrence.isoformat()}",
            details={"occurrence": occurrence.isoformat(), "attempts": attempts},
            error_message=error_message,
        )

    @staticmethod
    def projection_computed(
        owner_id: str,
        horizon_months: int,
        event_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_COMPUTED,
            owner_id=owner_id,
            entity_type="projection",
            description=f"Projection computed over {horizon_months} months",
            details={
                "horizon_months": horizon_months,
                "event_count": event_count,
            },
        )

    @staticmethod
    def debt_plan_computed(
        owner_id: str,
        debt_count: int,
        extra_payment: float,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PLAN_COMPUTED,
            owner_id=owner_id,
            entity_type="debt_plan",
            description=f"Debt payoff plan computed for {debt_count} debts",
            details={
                "debt_count": debt_count,
                "extra_payment": extra_payment,
                **(details or {}),
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        owner_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

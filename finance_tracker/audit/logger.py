"""
Audit Logger

DESIGN DECISION: Every significant action of the recurring core is logged.
Failures to materialize an occurrence never reach the client (the process
call still succeeds with a partial count), so the audit trail is the only
place they surface.

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace all events of one processor run
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder
from finance_tracker.services.storage import AuditStorageInterface, StorageError


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog on top of the standard library logger.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except StorageError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_schedule_created(
        self,
        owner_id: str,
        schedule_id: UUID,
        description: str,
        frequency: str,
    ) -> None:
        """Log schedule creation."""
        await self.log(AuditEventBuilder.schedule_created(
            owner_id=owner_id,
            schedule_id=schedule_id,
            description=description,
            frequency=frequency,
        ))

    async def log_schedule_deleted(self, owner_id: str, schedule_id: UUID) -> None:
        """Log schedule removal."""
        await self.log(AuditEventBuilder.schedule_deleted(owner_id, schedule_id))

    async def log_processing_started(
        self,
        owner_id: str,
        schedule_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.processing_started(
            owner_id=owner_id,
            schedule_count=schedule_count,
            correlation_id=correlation_id,
        ))

    async def log_processing_completed(
        self,
        owner_id: str,
        materialized: int,
        failed: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.processing_completed(
            owner_id=owner_id,
            materialized=materialized,
            failed=failed,
            correlation_id=correlation_id,
        ))

    async def log_processing_already_running(
        self,
        owner_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.processing_already_running(
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_occurrence_materialized(
        self,
        owner_id: str,
        schedule_id: UUID,
        entry_id: UUID,
        occurrence: date,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.occurrence_materialized(
            owner_id=owner_id,
            schedule_id=schedule_id,
            entry_id=entry_id,
            occurrence=occurrence,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_occurrence_already_processed(
        self,
        owner_id: str,
        schedule_id: UUID,
        occurrence: date,
        watermark: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.occurrence_already_processed(
            owner_id=owner_id,
            schedule_id=schedule_id,
            occurrence=occurrence,
            watermark=watermark,
            correlation_id=correlation_id,
        ))

    async def log_occurrence_aborted(
        self,
        owner_id: str,
        schedule_id: UUID,
        occurrence: date,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.occurrence_aborted(
            owner_id=owner_id,
            schedule_id=schedule_id,
            occurrence=occurrence,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_occurrence_failed(
        self,
        owner_id: str,
        schedule_id: UUID,
        occurrence: date,
        error_message: str,
        attempts: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.occurrence_failed(
            owner_id=owner_id,
            schedule_id=schedule_id,
            occurrence=occurrence,
            error_message=error_message,
            attempts=attempts,
            correlation_id=correlation_id,
        ))

    async def log_projection_computed(
        self,
        owner_id: str,
        horizon_months: int,
        event_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.projection_computed(
            owner_id=owner_id,
            horizon_months=horizon_months,
            event_count=event_count,
        ))

    async def log_debt_plan_computed(
        self,
        owner_id: str,
        debt_count: int,
        extra_payment: float,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_plan_computed(
            owner_id=owner_id,
            debt_count=debt_count,
            extra_payment=extra_payment,
            details=details,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        owner_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            owner_id=owner_id,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a processor run and pass it through
    every unit of work the run performs.
    """
    return uuid4()

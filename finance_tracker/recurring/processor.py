"""
Recurring Processor

Turns due occurrences of recurring schedules into ledger entries.

GUARANTEES:
- Every due occurrence becomes exactly one ledger entry, oldest first
- Each materialization is atomic: ledger append + balance update +
  watermark advance all commit together or not at all
- Watermarks only move forward, one occurrence at a time
- A run catches a schedule all the way up to today; a schedule whose
  watermark is ten days stale gets ten entries in one call
- One bad schedule (deleted mid-run, missing account, exhausted retries)
  never fails the run; its occurrence is retried on the next call

The processor is triggered synchronously by the client (typically once per
session), not by a timer.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import ProcessorSettings
from finance_tracker.models.ledger import LedgerEntry, RecurringSchedule
from finance_tracker.models.projection import ProcessingReport, ProcessingStatus
from finance_tracker.recurring.due_dates import next_occurrence
from finance_tracker.recurring.locks import OwnerLockRegistry, processing_owners
from finance_tracker.recurring.unit_of_work import (
    OptimisticUnitOfWork,
    RetriesExhaustedError,
)
from finance_tracker.services.storage import (
    NotFoundError,
    ScheduleStorageInterface,
    StorageError,
    StorageTransaction,
    TransactionalStorageInterface,
)


logger = structlog.get_logger(__name__)


class ScheduleAborted(NotFoundError):
    """The schedule or its account vanished while a unit was running."""
    pass


@dataclass
class _UnitOutcome:
    materialized: bool
    watermark: date
    entry_id: Optional[UUID] = None


def _occurrence_key(schedule_id: UUID, occurrence: Optional[date] = None) -> str:
    if occurrence is None:
        return str(schedule_id)
    return f"{schedule_id}@{occurrence.isoformat()}"


class RecurringProcessor:
    """
    Materializes overdue occurrences for one owner at a time.

    Usage:
        processor = RecurringProcessor(store, store)
        report = await processor.process(owner_id)
        print(report.message)
    """

    def __init__(
        self,
        schedules: ScheduleStorageInterface,
        storage: TransactionalStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[OwnerLockRegistry] = None,
        settings: Optional[ProcessorSettings] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._schedules = schedules
        self._unit_of_work = OptimisticUnitOfWork(storage, settings)
        self._audit_logger = audit_logger or AuditLogger()
        self._locks = locks or processing_owners
        self._clock = clock

    async def process(
        self,
        owner_id: str,
        today: Optional[date] = None,
    ) -> ProcessingReport:
        """
        Materialize every occurrence due on or before ``today``.

        Safe to call repeatedly: a second call with nothing newly due
        materializes nothing. A call made while another run for the same
        owner is in progress returns at once with status ALREADY_RUNNING.

        Raises:
            StorageError: Only if the owner's schedules cannot be listed
        """
        today = today or self._clock()
        correlation_id = create_correlation_id()
        report = ProcessingReport(owner_id=owner_id, correlation_id=correlation_id)

        with self._locks.hold(owner_id) as acquired:
            if not acquired:
                report.status = ProcessingStatus.ALREADY_RUNNING
                await self._audit_logger.log_processing_already_running(
                    owner_id=owner_id,
                    correlation_id=correlation_id,
                )
                return report

            schedules = await self._schedules.list_schedules(owner_id)
            report.schedules_checked = len(schedules)
            await self._audit_logger.log_processing_started(
                owner_id=owner_id,
                schedule_count=len(schedules),
                correlation_id=correlation_id,
            )

            for schedule in schedules:
                await self._catch_up(schedule, today, report)

            await self._audit_logger.log_processing_completed(
                owner_id=owner_id,
                materialized=report.materialized,
                failed=report.failed,
                correlation_id=correlation_id,
            )

        return report

    async def _catch_up(
        self,
        schedule: RecurringSchedule,
        today: date,
        report: ProcessingReport,
    ) -> None:
        """Materialize one schedule's due occurrences, oldest first."""
        watermark = schedule.last_processed_date

        while True:
            due = next_occurrence(schedule.start_date, schedule.frequency, watermark)
            if due > today:
                return

            try:
                outcome = await self._unit_of_work.run(
                    lambda txn: self._materialize(txn, schedule, due)
                )
            except ScheduleAborted as e:
                report.skipped.append(_occurrence_key(schedule.id, due))
                await self._audit_logger.log_occurrence_aborted(
                    owner_id=schedule.owner_id,
                    schedule_id=schedule.id,
                    occurrence=due,
                    reason=str(e),
                    correlation_id=report.correlation_id,
                )
                return
            except RetriesExhaustedError as e:
                report.failed.append(_occurrence_key(schedule.id, due))
                await self._audit_logger.log_occurrence_failed(
                    owner_id=schedule.owner_id,
                    schedule_id=schedule.id,
                    occurrence=due,
                    error_message=str(e.last_error),
                    attempts=e.attempts,
                    correlation_id=report.correlation_id,
                )
                return
            except StorageError as e:
                # Includes DuplicateError: the watermark and ledger disagree
                report.failed.append(_occurrence_key(schedule.id, due))
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    owner_id=schedule.owner_id,
                    details={"schedule_id": str(schedule.id), "occurrence": due.isoformat()},
                    correlation_id=report.correlation_id,
                )
                return

            if outcome.materialized:
                report.materialized += 1
                await self._audit_logger.log_occurrence_materialized(
                    owner_id=schedule.owner_id,
                    schedule_id=schedule.id,
                    entry_id=outcome.entry_id,
                    occurrence=due,
                    amount=str(schedule.signed_amount),
                    correlation_id=report.correlation_id,
                )
            else:
                await self._audit_logger.log_occurrence_already_processed(
                    owner_id=schedule.owner_id,
                    schedule_id=schedule.id,
                    occurrence=due,
                    watermark=outcome.watermark,
                    correlation_id=report.correlation_id,
                )

            watermark = outcome.watermark

    async def _materialize(
        self,
        txn: StorageTransaction,
        schedule: RecurringSchedule,
        due: date,
    ) -> _UnitOutcome:
        """
        One attempt at materializing a single occurrence.

        Re-reads the schedule and account inside the transaction; the
        schedule passed in is only the snapshot the run started from.
        """
        current = await txn.get_schedule(schedule.id)
        if current is None:
            raise ScheduleAborted(f"Schedule {schedule.id} deleted during processing")

        if current.last_processed_date and current.last_processed_date >= due:
            # Someone else already materialized this occurrence
            return _UnitOutcome(materialized=False, watermark=current.last_processed_date)

        account = await txn.get_account(current.account_id)
        if account is None or account.owner_id != current.owner_id:
            raise ScheduleAborted(f"Account {current.account_id} not found")

        entry = LedgerEntry(
            owner_id=current.owner_id,
            account_id=current.account_id,
            description=current.description,
            amount=current.amount,
            direction=current.direction,
            category=current.category,
            entry_date=due,
            recurring_source=current.id,
        )
        await txn.append_entry(entry)

        account.balance += current.signed_amount
        await txn.put_account(account)

        current.last_processed_date = due
        await txn.put_schedule(current)

        logger.debug(
            "occurrence_staged",
            schedule_id=str(current.id),
            occurrence=due.isoformat(),
        )
        return _UnitOutcome(materialized=True, watermark=due, entry_id=entry.id)

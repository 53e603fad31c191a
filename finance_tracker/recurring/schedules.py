"""
Recurring Schedule Management

Create, list and delete recurring schedules on behalf of their owner.

Deleting a schedule never touches the ledger: entries it already
materialized stay, and so do the balance changes they made.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from finance_tracker.audit import AuditLogger
from finance_tracker.models.ledger import (
    Direction,
    Frequency,
    RecurringSchedule,
    ScheduleRequest,
    ScheduleView,
)
from finance_tracker.services.storage import (
    AccountStorageInterface,
    NotFoundError,
    ScheduleStorageInterface,
)
from finance_tracker.validation import ScheduleValidator


class ScheduleService:
    """Owner-scoped schedule CRUD."""

    def __init__(
        self,
        schedules: ScheduleStorageInterface,
        accounts: AccountStorageInterface,
        validator: Optional[ScheduleValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._schedules = schedules
        self._accounts = accounts
        self._validator = validator or ScheduleValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def create_schedule(
        self,
        owner_id: str,
        request: ScheduleRequest,
        today: Optional[date] = None,
    ) -> RecurringSchedule:
        """
        Validate and store a new schedule with no watermark.

        Raises:
            ValidationError: If required fields are missing or malformed
            NotFoundError: If the account does not exist or is not the owner's
        """
        self._validator.require_valid(request, today)

        account = await self._accounts.get_account(request.account_id)
        if account is None or account.owner_id != owner_id:
            raise NotFoundError("Account not found or not authorized")

        schedule = RecurringSchedule(
            owner_id=owner_id,
            account_id=account.id,
            description=request.description,
            amount=request.amount,
            direction=Direction(request.direction),
            category=request.category,
            frequency=Frequency(request.frequency),
            start_date=request.start_date,
        )
        await self._schedules.save_schedule(schedule)

        await self._audit_logger.log_schedule_created(
            owner_id=owner_id,
            schedule_id=schedule.id,
            description=schedule.description,
            frequency=schedule.frequency.value,
        )
        return schedule

    async def list_schedules(self, owner_id: str) -> list[ScheduleView]:
        """Newest first, with account names resolved for display."""
        schedules = await self._schedules.list_schedules(owner_id)
        accounts = {
            account.id: account.name
            for account in await self._accounts.list_accounts(owner_id)
        }
        return [
            ScheduleView.from_schedule(schedule, accounts.get(schedule.account_id))
            for schedule in schedules
        ]

    async def delete_schedule(self, owner_id: str, schedule_id: UUID) -> None:
        """
        Remove a schedule.

        Raises:
            NotFoundError: If it does not exist or belongs to someone else
        """
        schedule = await self._schedules.get_schedule(schedule_id)
        if schedule is None or schedule.owner_id != owner_id:
            raise NotFoundError("Recurring transaction not found or not authorized")

        await self._schedules.delete_schedule(schedule_id)
        await self._audit_logger.log_schedule_deleted(owner_id, schedule_id)

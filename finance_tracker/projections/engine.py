"""
Cash-Flow Projection Engine

DESIGN DECISION: Projection is a PURE READ.
It snapshots current balances, simulates every recurring schedule forward
one day at a time and returns timelines. Nothing it computes is ever
written back to the account or ledger stores.

Projection deliberately ignores schedule watermarks: it assumes every
occurrence from the start date forward will eventually happen, so its
output does not depend on whether the recurring processor has run yet.
Occurrences already overdue today are not replayed; the simulation starts
tomorrow.

The day-by-day loop is O(days x schedules), which is fine at personal
finance scale (a 12 month horizon is ~365 iterations).
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from finance_tracker.audit import AuditLogger
from finance_tracker.config import ProjectionSettings, get_settings
from finance_tracker.models.ledger import Account
from finance_tracker.models.projection import (
    ProjectionPoint,
    ProjectionResult,
    UpcomingEvent,
)
from finance_tracker.recurring.due_dates import add_months, is_month_end, is_occurrence
from finance_tracker.services.storage import (
    AccountStorageInterface,
    LedgerStorageInterface,
    ScheduleStorageInterface,
)
from finance_tracker.validation import validate_horizon


def pick_default_account(
    accounts: list[Account],
    entry_counts: dict[UUID, int],
) -> Optional[UUID]:
    """
    The account with the most ledger entries.

    Ties go to the earlier account; with no entries at all the first
    account wins; with no accounts there is no default.
    """
    if not accounts:
        return None
    best = accounts[0]
    for account in accounts[1:]:
        if entry_counts.get(account.id, 0) > entry_counts.get(best.id, 0):
            best = account
    return best.id


class ProjectionEngine:
    """
    Projects future balances from current balances plus recurring schedules.

    Usage:
        engine = ProjectionEngine(store, store, store)
        result = await engine.project(owner_id, horizon_months=6)
    """

    def __init__(
        self,
        accounts: AccountStorageInterface,
        ledger: LedgerStorageInterface,
        schedules: ScheduleStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ProjectionSettings] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._accounts = accounts
        self._ledger = ledger
        self._schedules = schedules
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().projection
        self._clock = clock

    async def project(
        self,
        owner_id: str,
        horizon_months: int,
        today: Optional[date] = None,
    ) -> ProjectionResult:
        """
        Simulate from tomorrow through today + ``horizon_months`` inclusive.

        Timelines get a point on every day their balance changes and on
        every month end, plus a day-0 anchor and the horizon end date.

        Raises:
            ValidationError: If the horizon is not a positive whole number
        """
        horizon_months = validate_horizon(horizon_months, self._settings)
        today = today or self._clock()
        end = add_months(today, horizon_months)

        accounts = await self._accounts.list_accounts(owner_id)
        schedules = await self._schedules.list_schedules(owner_id)
        entry_counts = await self._ledger.count_entries_by_account(owner_id)

        # Day-0 snapshot; simulated balances only ever live in these dicts
        balances: dict[UUID, Decimal] = {a.id: a.balance for a in accounts}
        names: dict[UUID, str] = {a.id: a.name for a in accounts}
        total = sum(balances.values(), Decimal("0"))

        timeline = [ProjectionPoint(day=today, balance=total)]
        per_account = {
            account_id: [ProjectionPoint(day=today, balance=balance)]
            for account_id, balance in balances.items()
        }
        events: list[UpcomingEvent] = []

        # Oldest schedules first so same-day events keep a stable order
        schedules = sorted(schedules, key=lambda s: s.created_at)

        day = today
        while day < end:
            day += timedelta(days=1)
            changes: dict[UUID, Decimal] = defaultdict(Decimal)

            for schedule in schedules:
                if schedule.account_id not in balances:
                    continue  # account deleted after the schedule was made
                if not is_occurrence(schedule.start_date, schedule.frequency, day):
                    continue

                amount = schedule.signed_amount
                balances[schedule.account_id] += amount
                changes[schedule.account_id] += amount
                events.append(UpcomingEvent(
                    day=day,
                    description=schedule.description,
                    amount=amount,
                    account_id=schedule.account_id,
                    account_name=names[schedule.account_id],
                    schedule_id=schedule.id,
                ))

            day_change = sum(changes.values(), Decimal("0"))
            total += day_change
            month_end = is_month_end(day)

            if day_change != 0 or month_end:
                timeline.append(ProjectionPoint(day=day, balance=total))
            for account_id, points in per_account.items():
                if changes.get(account_id, 0) != 0 or month_end:
                    points.append(ProjectionPoint(day=day, balance=balances[account_id]))

        if timeline[-1].day != end:
            timeline.append(ProjectionPoint(day=end, balance=total))
        for account_id, points in per_account.items():
            if points[-1].day != end:
                points.append(ProjectionPoint(day=end, balance=balances[account_id]))

        default_account = pick_default_account(accounts, entry_counts)

        await self._audit_logger.log_projection_computed(
            owner_id=owner_id,
            horizon_months=horizon_months,
            event_count=len(events),
        )

        return ProjectionResult(
            projection_timeline=timeline,
            account_projections={
                str(account_id): points for account_id, points in per_account.items()
            },
            upcoming_events=events,
            account_names={str(account_id): name for account_id, name in names.items()},
            default_account_id=str(default_account) if default_account else None,
        )

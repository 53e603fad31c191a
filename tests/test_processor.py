"""
Tests for the recurring processor

Covers the processing guarantees: idempotence, no duplicates under
concurrent runs, forward-only watermarks, balances that always equal the
sum of the ledger, full catch-up, and per-schedule failure isolation.
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.ledger import Direction, Frequency
from finance_tracker.models.projection import ProcessingStatus
from finance_tracker.recurring import OwnerLockRegistry
from finance_tracker.services.storage import InMemoryStore
from tests.conftest import LAST_MONTH, OTHER_OWNER, OWNER, TODAY, Seeder
from tests.test_unit_of_work import InterferingStore


class VanishingStore(InMemoryStore):
    """Schedules are deleted right after the processor lists them."""

    async def list_schedules(self, owner_id):
        schedules = await super().list_schedules(owner_id)
        for schedule in schedules:
            await self.delete_schedule(schedule.id)
        return schedules


async def entry_dates(store, schedule_id):
    entries = await store.list_entries(OWNER, recurring_source=schedule_id)
    return sorted(entry.entry_date for entry in entries)


class TestMaterialization:
    """Tests for the basic catch-up behavior."""

    @pytest.mark.asyncio
    async def test_start_date_is_not_materialized(self, store, seed, make_processor):
        """A new schedule is first due one period after its start date."""
        account = await seed.account(balance="1000")
        schedule = await seed.schedule(account.id, amount="100", start_date=TODAY)

        report = await make_processor().process(OWNER)

        assert report.status == ProcessingStatus.COMPLETED
        assert report.materialized == 0
        assert report.message == "Processed 0 recurring transactions this run."
        assert await entry_dates(store, schedule.id) == []
        assert (await store.get_account(account.id)).balance == Decimal("1000")
        assert (await store.get_schedule(schedule.id)).last_processed_date is None

    @pytest.mark.asyncio
    async def test_first_occurrence_one_period_after_start(self, store, seed, make_processor):
        account = await seed.account(balance="1000")
        schedule = await seed.schedule(account.id, amount="100", start_date=LAST_MONTH)

        report = await make_processor().process(OWNER)

        assert report.materialized == 1
        assert report.message == "Processed 1 recurring transactions this run."
        assert await entry_dates(store, schedule.id) == [TODAY]
        assert (await store.get_account(account.id)).balance == Decimal("900")
        assert (await store.get_schedule(schedule.id)).last_processed_date == TODAY

    @pytest.mark.asyncio
    async def test_full_catch_up_in_one_call(self, store, seed, make_processor):
        """A daily schedule ten days stale gets ten entries at once."""
        account = await seed.account(balance="0")
        schedule = await seed.schedule(
            account.id,
            amount="10",
            direction=Direction.INCOME,
            frequency=Frequency.DAILY,
            start_date=TODAY - timedelta(days=20),
            last_processed_date=TODAY - timedelta(days=10),
        )

        report = await make_processor().process(OWNER)

        assert report.materialized == 10
        assert await entry_dates(store, schedule.id) == [
            TODAY - timedelta(days=n) for n in range(9, -1, -1)
        ]
        assert (await store.get_account(account.id)).balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_monthly_clamped_occurrences(self, store, seed, make_processor):
        account = await seed.account()
        schedule = await seed.schedule(
            account.id,
            start_date=date(2024, 12, 31),
        )

        await make_processor().process(OWNER, today=date(2025, 3, 31))

        assert await entry_dates(store, schedule.id) == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
        ]

    @pytest.mark.asyncio
    async def test_future_schedule_untouched(self, store, seed, make_processor):
        account = await seed.account()
        schedule = await seed.schedule(account.id, start_date=TODAY + timedelta(days=1))

        report = await make_processor().process(OWNER)

        assert report.materialized == 0
        assert report.schedules_checked == 1
        assert await entry_dates(store, schedule.id) == []
        assert (await store.get_schedule(schedule.id)).last_processed_date is None

    @pytest.mark.asyncio
    async def test_entry_copies_schedule_fields(self, store, seed, make_processor):
        account = await seed.account()
        schedule = await seed.schedule(
            account.id, description="Netflix", amount="15.99", start_date=LAST_MONTH
        )

        await make_processor().process(OWNER)

        [entry] = await store.list_entries(OWNER, recurring_source=schedule.id)
        assert entry.description == "Netflix"
        assert entry.amount == Decimal("15.99")
        assert entry.direction == Direction.EXPENSE
        assert entry.category == "Housing"
        assert entry.account_id == account.id

    @pytest.mark.asyncio
    async def test_only_owner_schedules_processed(self, store, seed, make_processor):
        mine = await seed.account()
        theirs = await seed.account(owner_id=OTHER_OWNER)
        await seed.schedule(mine.id, start_date=LAST_MONTH)
        other = await seed.schedule(theirs.id, owner_id=OTHER_OWNER, start_date=LAST_MONTH)

        report = await make_processor().process(OWNER)

        assert report.materialized == 1
        assert await store.list_entries(OTHER_OWNER, recurring_source=other.id) == []


class TestProcessingGuarantees:
    """Tests for idempotence, concurrency and consistency."""

    @pytest.mark.asyncio
    async def test_idempotent(self, store, seed, make_processor):
        account = await seed.account(balance="1000")
        schedule = await seed.schedule(account.id, start_date=date(2025, 1, 15))
        processor = make_processor()

        first = await processor.process(OWNER)
        second = await processor.process(OWNER)

        assert first.materialized == 2
        assert second.materialized == 0
        assert await entry_dates(store, schedule.id) == [
            date(2025, 2, 15), date(2025, 3, 15),
        ]
        assert (await store.get_account(account.id)).balance == Decimal("800")

    @pytest.mark.asyncio
    async def test_concurrent_runs_never_duplicate(self, store, seed, make_processor):
        """Runs that bypass the per-owner guard still produce each entry once."""
        account = await seed.account(balance="0")
        daily = await seed.schedule(
            account.id,
            amount="1",
            frequency=Frequency.DAILY,
            start_date=TODAY - timedelta(days=6),
        )
        monthly = await seed.schedule(
            account.id,
            amount="100",
            direction=Direction.INCOME,
            start_date=date(2025, 1, 15),
        )
        processors = [make_processor() for _ in range(4)]

        reports = await asyncio.gather(*(p.process(OWNER) for p in processors))
        # Anything a racer gave up on is picked up by the next call
        again = await make_processor().process(OWNER)

        materialized = sum(report.materialized for report in reports) + again.materialized
        assert materialized == 8
        assert await entry_dates(store, daily.id) == [
            TODAY - timedelta(days=n) for n in range(5, -1, -1)
        ]
        assert await entry_dates(store, monthly.id) == [
            date(2025, 2, 15), date(2025, 3, 15),
        ]
        assert (await store.get_account(account.id)).balance == Decimal("194")

    @pytest.mark.asyncio
    async def test_balance_equals_initial_plus_ledger(self, store, seed, make_processor):
        account = await seed.account(balance="250")
        await seed.schedule(
            account.id, amount="1200", direction=Direction.INCOME,
            start_date=date(2025, 1, 1),
        )
        await seed.schedule(
            account.id, amount="35.50", frequency=Frequency.WEEKLY,
            start_date=date(2025, 2, 1),
        )

        await make_processor().process(OWNER)

        entries = await store.list_entries(OWNER, account_id=account.id)
        ledger_total = sum((entry.signed_amount for entry in entries), Decimal("0"))
        assert (await store.get_account(account.id)).balance == Decimal("250") + ledger_total

    @pytest.mark.asyncio
    async def test_watermark_only_moves_forward(self, store, seed, make_processor):
        account = await seed.account()
        schedule = await seed.schedule(
            account.id,
            frequency=Frequency.DAILY,
            start_date=TODAY - timedelta(days=3),
            last_processed_date=TODAY,
        )
        processor = make_processor()

        await processor.process(OWNER, today=TODAY - timedelta(days=1))
        assert (await store.get_schedule(schedule.id)).last_processed_date == TODAY

        await processor.process(OWNER, today=TODAY + timedelta(days=2))
        assert (await store.get_schedule(schedule.id)).last_processed_date == (
            TODAY + timedelta(days=2)
        )

    @pytest.mark.asyncio
    async def test_second_call_while_running_returns_immediately(
        self, store, seed, make_processor
    ):
        account = await seed.account()
        schedule = await seed.schedule(account.id)
        locks = OwnerLockRegistry()
        processor = make_processor(locks=locks)

        assert locks.try_acquire(OWNER)
        try:
            report = await processor.process(OWNER)
        finally:
            locks.release(OWNER)

        assert report.status == ProcessingStatus.ALREADY_RUNNING
        assert report.message == "Processing already in progress."
        assert await entry_dates(store, schedule.id) == []
        assert not locks.is_locked(OWNER)

    @pytest.mark.asyncio
    async def test_guard_released_after_run(self, seed, make_processor):
        await seed.schedule((await seed.account()).id)
        locks = OwnerLockRegistry()

        await make_processor(locks=locks).process(OWNER)

        assert not locks.is_locked(OWNER)


class TestFailureIsolation:
    """Tests for schedules that cannot be materialized."""

    @pytest.mark.asyncio
    async def test_missing_account_skips_without_advancing(self, store, seed, make_processor):
        account = await seed.account()
        orphan = await seed.schedule(account.id, start_date=LAST_MONTH)
        foreign = await seed.account(owner_id=OTHER_OWNER)
        stolen = await seed.schedule(foreign.id, description="Not mine", start_date=LAST_MONTH)
        healthy = await seed.schedule(account.id, description="Healthy", start_date=LAST_MONTH)
        store._accounts.delete(account.id)
        replacement = await seed.account(name="New")
        healthy.account_id = replacement.id
        await store.save_schedule(healthy)

        report = await make_processor().process(OWNER)

        assert report.materialized == 1
        assert sorted(report.skipped) == sorted([
            f"{orphan.id}@{TODAY.isoformat()}",
            f"{stolen.id}@{TODAY.isoformat()}",
        ])
        assert (await store.get_schedule(orphan.id)).last_processed_date is None
        assert (await store.get_schedule(stolen.id)).last_processed_date is None
        assert (await store.get_account(foreign.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_schedule_deleted_mid_run(self, make_processor):
        store = VanishingStore()
        seed = Seeder(store)
        account = await seed.account(balance="1000")
        schedule = await seed.schedule(account.id, start_date=LAST_MONTH)

        report = await make_processor(storage=store).process(OWNER)

        assert report.materialized == 0
        assert report.skipped == [f"{schedule.id}@{TODAY.isoformat()}"]
        assert await store.list_entries(OWNER) == []
        assert (await store.get_account(account.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_exhausted_retries_leave_occurrence_for_next_call(self, make_processor):
        store = InterferingStore(interference=100)
        seed = Seeder(store)
        account = await seed.account(balance="1000")
        store.contended_account_id = account.id
        schedule = await seed.schedule(account.id, start_date=LAST_MONTH)
        processor = make_processor(storage=store)

        report = await processor.process(OWNER)

        assert report.materialized == 0
        assert report.failed == [f"{schedule.id}@{TODAY.isoformat()}"]
        assert (await store.get_schedule(schedule.id)).last_processed_date is None
        assert await store.list_entries(OWNER) == []

        store.interference = 0
        retry = await processor.process(OWNER)

        assert retry.materialized == 1
        assert (await store.get_schedule(schedule.id)).last_processed_date == TODAY

    @pytest.mark.asyncio
    async def test_conflicting_writer_is_not_clobbered(self, make_processor):
        """Another request's balance change survives a retried materialization."""
        store = InterferingStore(interference=1)
        seed = Seeder(store)
        account = await seed.account(balance="1000")
        store.contended_account_id = account.id
        await seed.schedule(account.id, amount="100", start_date=LAST_MONTH)

        report = await make_processor(storage=store).process(OWNER)

        assert report.materialized == 1
        assert (await store.get_account(account.id)).balance == Decimal("950")


class TestProcessingAudit:
    """Tests for the audit trail of a run."""

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(self, store, seed, make_processor):
        account = await seed.account()
        await seed.schedule(account.id, start_date=date(2025, 1, 15))

        report = await make_processor().process(OWNER)

        events = await store.get_events_by_correlation_id(report.correlation_id)
        types = [event.event_type for event in events]
        assert types[0] == AuditEventType.PROCESSING_STARTED
        assert types[-1] == AuditEventType.PROCESSING_COMPLETED
        assert types.count(AuditEventType.OCCURRENCE_MATERIALIZED) == 2

"""Tests for the optimistic unit of work and the in-memory transaction."""

from decimal import Decimal

import pytest

from finance_tracker.recurring.unit_of_work import (
    OptimisticUnitOfWork,
    RetriesExhaustedError,
)
from finance_tracker.services.storage import (
    DuplicateError,
    InMemoryStore,
    InMemoryTransaction,
    NotFoundError,
    WriteConflictError,
)
from finance_tracker.models.ledger import Direction, LedgerEntry
from tests.conftest import TODAY, Seeder


class InterferingTransaction(InMemoryTransaction):
    """Lets another writer change the contended account right before commit."""

    async def commit(self):
        store = self._store
        if store.interference > 0:
            store.interference -= 1
            account = await store.get_account(store.contended_account_id)
            account.balance += Decimal("50")
            await store.save_account(account)
        await super().commit()


class InterferingStore(InMemoryStore):
    def __init__(self, interference: int = 0):
        super().__init__()
        self.interference = interference
        self.contended_account_id = None

    def begin(self):
        return InterferingTransaction(self)


def add_one(account_id, calls):
    async def unit(txn):
        calls.append(1)
        account = await txn.get_account(account_id)
        account.balance += Decimal("1")
        await txn.put_account(account)
        return account.balance

    return unit


class TestInMemoryTransaction:
    """Tests for versioned reads and conditional commit."""

    @pytest.mark.asyncio
    async def test_commit_applies_buffered_writes(self, store, seed):
        account = await seed.account(balance="10")

        async with store.begin() as txn:
            current = await txn.get_account(account.id)
            current.balance = Decimal("20")
            await txn.put_account(current)
            assert (await store.get_account(account.id)).balance == Decimal("10")
            await txn.commit()

        assert (await store.get_account(account.id)).balance == Decimal("20")

    @pytest.mark.asyncio
    async def test_conflict_detected_and_nothing_applied(self, store, seed):
        account = await seed.account(balance="10")

        txn = store.begin()
        current = await txn.get_account(account.id)
        current.balance = Decimal("99")
        await txn.put_account(current)

        other = await store.get_account(account.id)
        other.balance = Decimal("11")
        await store.save_account(other)

        with pytest.raises(WriteConflictError):
            await txn.commit()
        assert (await store.get_account(account.id)).balance == Decimal("11")

    @pytest.mark.asyncio
    async def test_exit_without_commit_discards_writes(self, store, seed):
        account = await seed.account(balance="10")

        async with store.begin() as txn:
            current = await txn.get_account(account.id)
            current.balance = Decimal("0")
            await txn.put_account(current)

        assert (await store.get_account(account.id)).balance == Decimal("10")

    @pytest.mark.asyncio
    async def test_unique_occurrence_index(self, store, seed):
        account = await seed.account()
        schedule = await seed.schedule(account.id)

        def entry():
            return LedgerEntry(
                owner_id="user-1",
                account_id=account.id,
                description="Rent",
                amount=Decimal("100"),
                direction=Direction.EXPENSE,
                entry_date=TODAY,
                recurring_source=schedule.id,
            )

        await store.append_entry(entry())
        with pytest.raises(DuplicateError):
            await store.append_entry(entry())

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store, seed):
        account = await seed.account(balance="10")
        fetched = await store.get_account(account.id)
        fetched.balance = Decimal("0")
        assert (await store.get_account(account.id)).balance == Decimal("10")


class TestOptimisticUnitOfWork:
    """Tests for retry on write conflict."""

    @pytest.mark.asyncio
    async def test_commits_first_time(self, store, seed, fast_retries):
        account = await seed.account(balance="10")
        calls = []

        result = await OptimisticUnitOfWork(store, fast_retries).run(add_one(account.id, calls))

        assert result == Decimal("11")
        assert len(calls) == 1
        assert (await store.get_account(account.id)).balance == Decimal("11")

    @pytest.mark.asyncio
    async def test_retries_with_fresh_reads(self, fast_retries):
        store = InterferingStore(interference=2)
        account = await Seeder(store).account(balance="10")
        store.contended_account_id = account.id
        calls = []

        await OptimisticUnitOfWork(store, fast_retries).run(add_one(account.id, calls))

        assert len(calls) == 3
        # Both interfering writes survive and ours is applied on top of them
        assert (await store.get_account(account.id)).balance == Decimal("111")

    @pytest.mark.asyncio
    async def test_exhaustion_raises_distinct_error(self, fast_retries):
        store = InterferingStore(interference=10)
        account = await Seeder(store).account(balance="10")
        store.contended_account_id = account.id
        calls = []

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await OptimisticUnitOfWork(store, fast_retries).run(add_one(account.id, calls))

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, WriteConflictError)
        assert len(calls) == 3
        # Only the interfering writes landed
        assert (await store.get_account(account.id)).balance == Decimal("160")

    @pytest.mark.asyncio
    async def test_no_writes_means_no_commit(self, store, fast_retries):
        async def unit(txn):
            return "nothing to do"

        assert await OptimisticUnitOfWork(store, fast_retries).run(unit) == "nothing to do"

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, store, fast_retries):
        calls = []

        async def unit(txn):
            calls.append(1)
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError, match="gone"):
            await OptimisticUnitOfWork(store, fast_retries).run(unit)
        assert len(calls) == 1

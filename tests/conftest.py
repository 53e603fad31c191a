"""
Shared fixtures for the finance tracker tests.

Everything runs against the in-memory store; no external services.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import ProcessorSettings
from finance_tracker.models.ledger import (
    Account,
    AccountType,
    Direction,
    Frequency,
    RecurringSchedule,
)
from finance_tracker.recurring import OwnerLockRegistry, RecurringProcessor
from finance_tracker.services.storage import InMemoryStore


OWNER = "user-1"
OTHER_OWNER = "user-2"
TODAY = date(2025, 3, 15)
LAST_MONTH = date(2025, 2, 15)


class Seeder:
    """Async helpers that put accounts and schedules straight into a store."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def account(
        self,
        name: str = "Checking",
        balance="1000",
        owner_id: str = OWNER,
        type: AccountType = AccountType.CHECKING,
        interest_rate="0",
    ) -> Account:
        account = Account(
            owner_id=owner_id,
            name=name,
            type=type,
            balance=Decimal(str(balance)),
            interest_rate=Decimal(str(interest_rate)),
        )
        return await self.store.save_account(account)

    async def debt(self, name: str, balance, interest_rate, owner_id: str = OWNER) -> Account:
        return await self.account(
            name=name,
            balance=-Decimal(str(balance)),
            owner_id=owner_id,
            type=AccountType.CREDIT_CARD,
            interest_rate=interest_rate,
        )

    async def schedule(
        self,
        account_id: UUID,
        amount="100",
        direction: Direction = Direction.EXPENSE,
        frequency: Frequency = Frequency.MONTHLY,
        start_date: date = TODAY,
        last_processed_date=None,
        description: str = "Rent",
        owner_id: str = OWNER,
    ) -> RecurringSchedule:
        schedule = RecurringSchedule(
            owner_id=owner_id,
            account_id=account_id,
            description=description,
            amount=Decimal(str(amount)),
            direction=direction,
            category="Housing",
            frequency=frequency,
            start_date=start_date,
            last_processed_date=last_processed_date,
        )
        return await self.store.save_schedule(schedule)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def seed(store):
    return Seeder(store)


@pytest.fixture
def fast_retries():
    """Processor settings with no backoff delay."""
    return ProcessorSettings(
        max_attempts=3,
        backoff_initial_seconds=0,
        backoff_max_seconds=0,
        backoff_jitter_seconds=0,
    )


@pytest.fixture
def audit_logger(store):
    return AuditLogger(store)


@pytest.fixture
def make_processor(store, audit_logger, fast_retries):
    """Build processors over the shared store, each with its own lock registry."""

    def _make(storage=None, locks=None, settings=None):
        storage = storage or store
        return RecurringProcessor(
            schedules=storage,
            storage=storage,
            audit_logger=audit_logger,
            locks=locks or OwnerLockRegistry(),
            settings=settings or fast_retries,
            clock=lambda: TODAY,
        )

    return _make

"""
Core Ledger Models for the Finance Tracker

These models define the schemas for the documents the recurring core reads
and writes:
1. Accounts (balance holders, owned by the account store)
2. Ledger entries (append-only, owned by the ledger store)
3. Recurring schedules (owned by the recurring core)

DESIGN DECISION: Amounts are Decimal everywhere on the persistence side.
Balances must never drift from the sum of the ledger, and float arithmetic
would make that impossible to assert.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Decimal amounts go over the wire as plain JSON numbers
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Direction(str, Enum):
    """Whether an entry adds to or subtracts from an account balance."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """
    How often a recurring schedule falls due.

    Monthly and yearly schedules keep the start date's day-of-month and
    clamp to the last day of shorter months.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AccountType(str, Enum):
    """Account types known to the tracker."""
    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT_CARD = "Credit Card"
    CASH = "Cash"
    INVESTMENT = "Investment"
    LOAN = "Loan"
    MORTGAGE = "Mortgage"
    OTHER_LIABILITY = "Other Liability"


LIABILITY_TYPES = frozenset({
    AccountType.CREDIT_CARD,
    AccountType.LOAN,
    AccountType.MORTGAGE,
    AccountType.OTHER_LIABILITY,
})


def signed(amount: Decimal, direction: Direction) -> Decimal:
    """Income adds to a balance, expense subtracts from it."""
    return amount if direction == Direction.INCOME else -amount


# =============================================================================
# STORED DOCUMENTS
# =============================================================================

class Account(BaseModel):
    """
    An account owned by a single user.

    Balance is signed: liabilities carry a negative balance.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    type: AccountType = AccountType.CHECKING
    balance: Money = Decimal("0")
    interest_rate: Money = Field(
        default=Decimal("0"),
        ge=0,
        description="Annual rate as a decimal fraction (19.9% = 0.199)"
    )
    is_liability: Optional[bool] = Field(
        default=None,
        description="Defaults from the account type when not given"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def default_liability_flag(self) -> 'Account':
        if self.is_liability is None:
            self.is_liability = self.type in LIABILITY_TYPES
        return self


class LedgerEntry(BaseModel):
    """
    A materialized transaction.

    Entries created by the recurring processor carry ``recurring_source``;
    at most one entry may exist per (recurring_source, entry_date).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    account_id: UUID
    description: str = Field(..., min_length=1, max_length=200)
    amount: Annotated[Money, Field(gt=0)]
    direction: Direction
    category: str = Field(default="Uncategorized", min_length=1)
    entry_date: date
    recurring_source: Optional[UUID] = None
    transfer_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def signed_amount(self) -> Decimal:
        return signed(self.amount, self.direction)


class RecurringSchedule(BaseModel):
    """
    A recurring income or expense.

    ``last_processed_date`` is the watermark: the most recent occurrence
    already materialized into the ledger. Only the recurring processor
    moves it, one occurrence at a time and never backwards.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    account_id: UUID
    description: str = Field(..., min_length=1, max_length=200)
    amount: Annotated[Money, Field(gt=0)]
    direction: Direction
    category: str = Field(..., min_length=1)
    frequency: Frequency
    start_date: date
    last_processed_date: Optional[date] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def signed_amount(self) -> Decimal:
        return signed(self.amount, self.direction)

    @model_validator(mode='after')
    def validate_watermark(self) -> 'RecurringSchedule':
        if self.last_processed_date and self.last_processed_date < self.start_date:
            raise ValueError("Last processed date cannot be before start date")
        return self


# =============================================================================
# REQUEST / VIEW MODELS
# =============================================================================

class ScheduleRequest(BaseModel):
    """
    A request to create a recurring schedule.

    All fields are optional here on purpose: missing or malformed fields
    are reported by the schedule validator as a list of issues instead of
    failing on the first one.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    description: Optional[str] = None
    amount: Optional[Decimal] = None
    direction: Optional[str] = Field(default=None, alias="type")
    category: Optional[str] = None
    frequency: Optional[str] = None
    start_date: Optional[date] = Field(default=None, alias="startDate")
    account_id: Optional[UUID] = Field(default=None, alias="account")


class ScheduleView(BaseModel):
    """A schedule as shown to its owner, with the account name resolved."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    account_id: UUID
    account_name: Optional[str] = None
    description: str
    amount: Money
    direction: Direction = Field(serialization_alias="type")
    category: str
    frequency: Frequency
    start_date: date
    last_processed_date: Optional[date] = None
    created_at: datetime

    @classmethod
    def from_schedule(
        cls,
        schedule: RecurringSchedule,
        account_name: Optional[str],
    ) -> 'ScheduleView':
        return cls(
            id=schedule.id,
            account_id=schedule.account_id,
            account_name=account_name,
            description=schedule.description,
            amount=schedule.amount,
            direction=schedule.direction,
            category=schedule.category,
            frequency=schedule.frequency,
            start_date=schedule.start_date,
            last_processed_date=schedule.last_processed_date,
            created_at=schedule.created_at,
        )

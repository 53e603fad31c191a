"""
Planning Models

Computed results that are never persisted:
- cash-flow projection output (timelines and upcoming events)
- debt payoff simulation state and results
- recurring processing reports

All result models serialize with camelCase keys because that is what the
web client consumes.
"""

from datetime import date
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from finance_tracker.models.ledger import Money


class _ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# CASH-FLOW PROJECTION
# =============================================================================

class ProjectionPoint(_ResultModel):
    """Simulated balance at the end of a given day."""

    day: date = Field(..., alias="date")
    balance: Money


class UpcomingEvent(_ResultModel):
    """One simulated future occurrence of a recurring schedule."""

    day: date = Field(..., alias="date")
    description: str
    amount: Money = Field(..., description="Signed: negative for expenses")
    account_id: UUID
    account_name: str
    schedule_id: UUID


class ProjectionResult(_ResultModel):
    """
    Output of the projection engine.

    ``account_projections`` and ``account_names`` are keyed by the
    account id rendered as a string.
    """

    projection_timeline: list[ProjectionPoint] = Field(default_factory=list)
    account_projections: dict[str, list[ProjectionPoint]] = Field(default_factory=dict)
    upcoming_events: list[UpcomingEvent] = Field(default_factory=list)
    account_names: dict[str, str] = Field(default_factory=dict)
    default_account_id: Optional[str] = None


# =============================================================================
# DEBT PAYOFF
# =============================================================================

class DebtStrategy(str, Enum):
    """
    Order in which extra payments are applied.

    SNOWBALL: smallest balance first
    AVALANCHE: highest interest rate first
    """
    SNOWBALL = "snowball"
    AVALANCHE = "avalanche"


class DebtState(BaseModel):
    """
    One debt inside a single simulation run.

    Balance is a positive magnitude. Instances are copied per run and
    mutated freely; they never leave the simulator.
    """

    id: str
    name: str
    balance: float = Field(ge=0)
    interest_rate: float = Field(default=0.0, ge=0)


class PayoffEntry(_ResultModel):
    """When a debt disappeared from the simulation."""

    name: str
    months: int = Field(ge=0)


class DebtStrategyResult(_ResultModel):
    """Outcome of one strategy."""

    months: int = Field(default=0, ge=0)
    total_interest: float = Field(default=0.0, ge=0)
    payoff_order: list[PayoffEntry] = Field(default_factory=list)
    hit_month_cap: bool = Field(
        default=False,
        description="Debts were still outstanding when the month cap was reached",
    )


class DebtPlan(_ResultModel):
    """Both strategies computed from the same starting debts."""

    snowball: DebtStrategyResult
    avalanche: DebtStrategyResult


# =============================================================================
# RECURRING PROCESSING
# =============================================================================

class ProcessingStatus(str, Enum):
    """Outcome of a processor invocation."""
    COMPLETED = "completed"
    ALREADY_RUNNING = "already_running"


class ProcessingReport(_ResultModel):
    """
    Summary of one processor invocation.

    ``failed`` and ``skipped`` hold ``"<schedule id>@<occurrence date>"``
    keys (or just the schedule id when no occurrence was attempted).
    """

    owner_id: str
    correlation_id: UUID
    status: ProcessingStatus = ProcessingStatus.COMPLETED
    schedules_checked: int = 0
    materialized: int = 0
    skipped: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        if self.status == ProcessingStatus.ALREADY_RUNNING:
            return "Processing already in progress."
        return f"Processed {self.materialized} recurring transactions this run."

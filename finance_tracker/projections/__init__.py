"""Forward simulations: cash-flow projection and debt payoff planning."""

from finance_tracker.projections.debt import (
    DebtPayoffSimulator,
    debts_from_accounts,
    run_strategy,
    simulate_month,
)
from finance_tracker.projections.engine import ProjectionEngine, pick_default_account

__all__ = [
    "DebtPayoffSimulator",
    "ProjectionEngine",
    "debts_from_accounts",
    "pick_default_account",
    "run_strategy",
    "simulate_month",
]

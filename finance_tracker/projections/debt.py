"""
Debt Payoff Simulator

Month-by-month simulation of paying down liability accounts with a fixed
extra monthly payment, under two strategies:

- SNOWBALL: extra payment goes to the smallest balance first
- AVALANCHE: extra payment goes to the highest interest rate first

SIMPLIFICATIONS (planning tool, not an amortization engine):
- The minimum payment of a debt is exactly the interest it accrued that
  month (interest-only); no principal minimum is modeled
- The month's budget is the sum of all minimums plus the extra payment
- Simulation stops after a fixed month cap; debts still open at the cap
  are reported as paid off at the cap month

Simulation math uses floats. Results are estimates, and the payoff
threshold (0.01 by default) absorbs the rounding.

The simulator only reads accounts. It never writes to any store.
"""

from decimal import Decimal
from typing import Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import DebtSettings, get_settings
from finance_tracker.models.ledger import Account
from finance_tracker.models.projection import (
    DebtPlan,
    DebtState,
    DebtStrategy,
    DebtStrategyResult,
    PayoffEntry,
)
from finance_tracker.services.storage import AccountStorageInterface
from finance_tracker.validation import parse_extra_payment


logger = structlog.get_logger(__name__)


def debts_from_accounts(accounts: list[Account]) -> list[DebtState]:
    """Liabilities with a negative balance, as positive magnitudes."""
    return [
        DebtState(
            id=str(account.id),
            name=account.name,
            balance=abs(float(account.balance)),
            interest_rate=float(account.interest_rate or 0),
        )
        for account in accounts
        if account.is_liability and account.balance < 0
    ]


def _sort_key(strategy: DebtStrategy):
    if strategy == DebtStrategy.SNOWBALL:
        return lambda debt: debt.balance
    return lambda debt: -debt.interest_rate


def simulate_month(
    debts: list[DebtState],
    available_payment: float,
    strategy: DebtStrategy,
    epsilon: float = 0.01,
) -> tuple[list[DebtState], float]:
    """
    Advance every debt by one month.

    Mutates the given debts in place and returns (debts still open,
    interest accrued this month).
    """
    remaining = available_payment
    interest_total = 0.0

    # 1. Accrue interest and pay each debt's interest-only minimum
    for debt in debts:
        interest = debt.balance * (debt.interest_rate / 12)
        interest_total += interest
        minimum = max(0.0, interest)
        paid = min(minimum, remaining) if remaining > 0 else 0.0
        remaining -= paid
        debt.balance = debt.balance + interest - paid

    # 2. Whatever is left goes to debts in strategy order
    for debt in sorted(debts, key=_sort_key(strategy)):
        if remaining <= 0:
            break
        if debt.balance > 0:
            payment = min(remaining, debt.balance)
            debt.balance -= payment
            remaining -= payment

    return [debt for debt in debts if debt.balance > epsilon], interest_total


def run_strategy(
    debts: list[DebtState],
    extra_payment: float,
    strategy: DebtStrategy,
    max_months: int = 600,
    epsilon: float = 0.01,
) -> DebtStrategyResult:
    """
    Simulate one strategy on a private copy of ``debts``.

    The caller's list and models are left untouched, so the same starting
    debts can be fed to every strategy.
    """
    current = [debt.model_copy() for debt in debts]
    months = 0
    total_interest = 0.0
    payoff_order: list[PayoffEntry] = []

    while current and months < max_months:
        months += 1
        minimums = sum(
            max(0.0, debt.balance * (debt.interest_rate / 12)) for debt in current
        )
        before = {debt.id: debt.name for debt in current}

        current, interest = simulate_month(
            current,
            minimums + extra_payment,
            strategy,
            epsilon,
        )
        total_interest += interest

        still_open = {debt.id for debt in current}
        for debt_id, name in before.items():
            if debt_id not in still_open:
                payoff_order.append(PayoffEntry(name=name, months=months))

    hit_cap = bool(current)
    if hit_cap:
        logger.warning(
            "debt_simulation_cap_reached",
            strategy=strategy.value,
            months=months,
            open_debts=len(current),
        )
        for debt in current:
            payoff_order.append(PayoffEntry(name=debt.name, months=months))

    payoff_order.sort(key=lambda entry: entry.months)

    return DebtStrategyResult(
        months=months,
        total_interest=total_interest,
        payoff_order=payoff_order,
        hit_month_cap=hit_cap,
    )


class DebtPayoffSimulator:
    """
    Compares payoff strategies for an owner's liability accounts.

    Usage:
        simulator = DebtPayoffSimulator(store)
        plan = await simulator.compare(owner_id, extra_payment=100)
    """

    def __init__(
        self,
        accounts: AccountStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[DebtSettings] = None,
    ):
        self._accounts = accounts
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().debt

    async def load_debts(self, owner_id: str) -> list[DebtState]:
        accounts = await self._accounts.list_accounts(owner_id, liabilities_only=True)
        return debts_from_accounts(accounts)

    def _run(
        self,
        debts: list[DebtState],
        extra: Decimal,
        strategy: DebtStrategy,
    ) -> DebtStrategyResult:
        return run_strategy(
            debts,
            float(extra),
            strategy,
            max_months=self._settings.max_months,
            epsilon=self._settings.payoff_epsilon,
        )

    async def simulate(
        self,
        owner_id: str,
        extra_payment,
        strategy: DebtStrategy,
    ) -> DebtStrategyResult:
        """
        Run a single strategy.

        Raises:
            ValidationError: If the extra payment is not a number >= 0
        """
        extra = parse_extra_payment(extra_payment)
        strategy = DebtStrategy(strategy)
        debts = await self.load_debts(owner_id)
        return self._run(debts, extra, strategy)

    async def compare(self, owner_id: str, extra_payment) -> DebtPlan:
        """
        Run both strategies from the same starting debts.

        Raises:
            ValidationError: If the extra payment is not a number >= 0
        """
        extra = parse_extra_payment(extra_payment)
        debts = await self.load_debts(owner_id)

        plan = DebtPlan(
            snowball=self._run(debts, extra, DebtStrategy.SNOWBALL),
            avalanche=self._run(debts, extra, DebtStrategy.AVALANCHE),
        )

        await self._audit_logger.log_debt_plan_computed(
            owner_id=owner_id,
            debt_count=len(debts),
            extra_payment=float(extra),
            details={
                "snowball_months": plan.snowball.months,
                "avalanche_months": plan.avalanche.months,
            },
        )
        return plan

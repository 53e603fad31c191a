"""
Component Wiring for the Finance Tracker Core

This module ties together all the components behind the HTTP surface:
1. Schedule management (create / list / delete)
2. Recurring processing (materialize due occurrences)
3. Planning (cash-flow projection, debt payoff comparison)

DESIGN DECISION: Every component receives its storage through the abstract
interfaces, and all of them share one store instance and one audit logger.
Swapping the in-memory store for a real database happens here and only here.
"""

from typing import Optional

from finance_tracker.audit import AuditLogger, configure_logging
from finance_tracker.config import get_settings
from finance_tracker.projections import DebtPayoffSimulator, ProjectionEngine
from finance_tracker.recurring import (
    OwnerLockRegistry,
    RecurringProcessor,
    ScheduleService,
    processing_owners,
)
from finance_tracker.services.storage import InMemoryStore


class AppComponents:
    """
    Everything the HTTP layer needs, wired to a single store.

    Attributes:
        settings: Root settings the components were built from
        store: The backing store (accounts, ledger, schedules, audit)
        audit_logger: Shared audit logger
        schedules: Schedule management service
        processor: Recurring processor
        projections: Cash-flow projection engine
        debt: Debt payoff simulator
    """

    def __init__(
        self,
        store: InMemoryStore,
        audit_logger: AuditLogger,
        locks: OwnerLockRegistry,
    ):
        settings = get_settings()

        self.settings = settings
        self.store = store
        self.audit_logger = audit_logger
        self.schedules = ScheduleService(
            schedules=store,
            accounts=store,
            audit_logger=audit_logger,
        )
        self.processor = RecurringProcessor(
            schedules=store,
            storage=store,
            audit_logger=audit_logger,
            locks=locks,
            settings=settings.processor,
        )
        self.projections = ProjectionEngine(
            accounts=store,
            ledger=store,
            schedules=store,
            audit_logger=audit_logger,
            settings=settings.projection,
        )
        self.debt = DebtPayoffSimulator(
            accounts=store,
            audit_logger=audit_logger,
            settings=settings.debt,
        )


def create_app_components(
    store: Optional[InMemoryStore] = None,
    persist_audit: bool = True,
    locks: Optional[OwnerLockRegistry] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        store: Store to use. A fresh in-memory store if None.
        persist_audit: Whether audit events are also appended to the store.
                       Set to False to log locally only.
        locks: Per-owner processing guard. The process-wide registry if None.

    Returns:
        The wired components
    """
    configure_logging(get_settings().app.log_level)

    store = store or InMemoryStore()
    audit_logger = AuditLogger(store if persist_audit else None)

    return AppComponents(
        store=store,
        audit_logger=audit_logger,
        locks=locks or processing_owners,
    )

"""
Finance Tracker - Recurring Core

The scheduling and planning core of a personal-finance tracker:
recurring schedules materialized into the ledger, forward cash-flow
projections, and debt payoff planning.

DESIGN PRINCIPLES:
1. Every due occurrence becomes exactly one ledger entry
2. Balances never drift from the ledger
3. Projections and payoff plans never write anything
4. One bad schedule never fails the whole run
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"

"""
Budget Enforcer - envelope budgeting engine

Paces spending within pay-aligned periods, simulates purchases before they
are committed, shuffles money between envelopes when one runs short, and
tracks how much each paycheck should set aside for bills.
"""

from budget_enforcer.engine import BudgetEngine

__version__ = "0.1.0"
__all__ = ["BudgetEngine", "__version__"]

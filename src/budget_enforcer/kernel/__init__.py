"""
Kernel - shared infrastructure for the budget engine

Clock, ids, errors, policy, logging, metrics and retry helpers used by the
envelope, bills and period modules.
"""

from budget_enforcer.kernel.errors import (
    BudgetEnforcerError,
    ConfigurationError,
    InvalidSessionState,
    NoEnvelopeSelected,
    NotFoundError,
    ShuffleInsufficientError,
    ValidationError,
)
from budget_enforcer.kernel.ids import IdFactory, SequentialIdFactory, generate_id
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "SequentialIdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Policy
    "BudgetPolicy",
    # Errors
    "BudgetEnforcerError",
    "ValidationError",
    "ShuffleInsufficientError",
    "NotFoundError",
    "ConfigurationError",
    "InvalidSessionState",
    "NoEnvelopeSelected",
]

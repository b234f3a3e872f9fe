"""
Prometheus metrics for the budget engine.

Counts how users move through the purchase flow and how often envelopes
need rescuing by a shuffle.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Purchase Flow Metrics
# ============================================================================

purchases_simulated_total = Counter(
    "budget_enforcer_purchases_simulated_total",
    "Total number of simulated purchases by resulting status",
    ["status"],
)

purchases_confirmed_total = Counter(
    "budget_enforcer_purchases_confirmed_total",
    "Total number of purchases confirmed without a shuffle",
)

purchases_cancelled_total = Counter(
    "budget_enforcer_purchases_cancelled_total",
    "Total number of simulations cancelled",
)

# ============================================================================
# Shuffle Metrics
# ============================================================================

shuffles_applied_total = Counter(
    "budget_enforcer_shuffles_applied_total",
    "Total number of committed shuffles",
    ["strategy"],
)

shuffles_rejected_total = Counter(
    "budget_enforcer_shuffles_rejected_total",
    "Total number of shuffles rejected for insufficient allocations",
)

shuffle_amount = Histogram(
    "budget_enforcer_shuffle_amount",
    "Amount moved between envelopes per shuffle",
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000),
)

# ============================================================================
# Bills and Period Metrics
# ============================================================================

bills_funding_ratio = Gauge(
    "budget_enforcer_bills_funding_ratio",
    "Bills envelope balance divided by cushion target",
)

period_rollovers_total = Counter(
    "budget_enforcer_period_rollovers_total",
    "Rollover attempts by outcome",
    ["outcome"],  # started, not_due, no_plan
)

operation_duration_seconds = Histogram(
    "budget_enforcer_operation_duration_seconds",
    "Duration of engine operations in seconds",
    ["operation"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5),
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation_duration(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator recording how long an engine operation took.

    Args:
        operation: Operation label (e.g. "confirm_purchase")
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """Expose metrics over HTTP for scraping."""
    start_http_server(port)

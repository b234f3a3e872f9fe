"""
Test Helper Functions - builders for envelopes and engine state
"""

from datetime import date
from decimal import Decimal

from budget_enforcer.envelopes.models import Envelope, Period, ShuffleLimit
from budget_enforcer.state import BudgetEngineState

PERIOD_START = date(2025, 1, 11)


def make_envelope(
    envelope_id: str,
    name: str,
    allocation: str,
    spent: str = "0",
    start_date: date = PERIOD_START,
    period_length: int = 14,
    previous_remaining: str = "0",
) -> Envelope:
    """Builder for envelopes in the 2025-01-11 period"""
    return Envelope(
        id=envelope_id,
        name=name,
        allocation=Decimal(allocation),
        spent=Decimal(spent),
        period_length=period_length,
        start_date=start_date,
        previous_remaining=Decimal(previous_remaining),
    )


def make_state(envelopes: list[Envelope]) -> BudgetEngineState:
    """State with one current period (Jan 11-24) holding the given envelopes"""
    period = Period(
        id="period_2025-01-11",
        start_date=PERIOD_START,
        end_date=date(2025, 1, 24),
        envelopes=[env.model_copy(deep=True) for env in envelopes],
    )
    limits = [
        ShuffleLimit(envelope_id=env.id, max_amount=env.allocation * Decimal("0.2"))
        for env in envelopes
    ]
    return BudgetEngineState(envelopes=envelopes, periods=[period], shuffle_limits=limits)

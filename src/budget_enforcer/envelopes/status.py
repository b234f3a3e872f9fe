"""
Status Calculator - is this envelope on pace?

Spending is compared to a straight line from zero on day 0 to the full
allocation on the last day. Where the spend (plus any hypothetical purchase)
sits relative to that line picks one of six statuses. Display attributes are
looked up from a fixed table, never derived from the status text.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from budget_enforcer.envelopes.models import (
    Envelope,
    Purchase,
    StatusDisplay,
    StatusResult,
    StatusType,
)
from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.policy import BudgetPolicy, default_policy
from budget_enforcer.periods.calendar import day_in_period

logger = get_logger(__name__)

ZERO = Decimal("0")

STATUS_DISPLAY: dict[StatusType, StatusDisplay] = {
    StatusType.SUPER_SAFE: StatusDisplay(
        color="#15803d",
        text_color="#ffffff",
        border_color="#ffffff",
        icon="check",
        label="Super Safe",
    ),
    StatusType.SAFE: StatusDisplay(
        color="#d1fae5",
        text_color="#15803d",
        border_color="#22c55e",
        icon="thumbs-up",
        label="Safe",
    ),
    StatusType.OFF_TRACK: StatusDisplay(
        color="#fef3c7",
        text_color="#b45309",
        border_color="#f59e0b",
        icon="alert-triangle",
        label="Off Track (Caution)",
    ),
    StatusType.DANGER: StatusDisplay(
        color="#fed7aa",
        text_color="#9a3412",
        border_color="#ea580c",
        icon="alert-triangle",
        label="Danger Zone",
    ),
    StatusType.BUDGET_BREAKER: StatusDisplay(
        color="#fecaca",
        text_color="#dc2626",
        border_color="#ef4444",
        icon="thumbs-down",
        label="Budget Breaker",
    ),
    StatusType.ENVELOPE_EMPTY: StatusDisplay(
        color="#fee2e2",
        text_color="#b91c1c",
        border_color="#ef4444",
        icon="x-circle",
        label="Envelope Empty",
    ),
}


def classify_spend(
    effective_spend: Decimal,
    spent: Decimal,
    allocation: Decimal,
    expected_spend: Decimal,
    policy: BudgetPolicy = default_policy,
) -> StatusType:
    """
    Pick the status for a spend level; first matching rule wins

    Args:
        effective_spend: Committed spend plus any hypothetical purchase
        spent: Committed spend alone (decides EMPTY vs BUDGET_BREAKER)
        allocation: Envelope allocation
        expected_spend: On-pace spend for today
        policy: Pacing thresholds
    """
    if effective_spend >= allocation:
        if spent >= allocation:
            return StatusType.ENVELOPE_EMPTY
        return StatusType.BUDGET_BREAKER
    if effective_spend > policy.danger_ratio * expected_spend:
        return StatusType.DANGER
    if effective_spend > expected_spend:
        return StatusType.OFF_TRACK
    if effective_spend >= policy.safe_ratio * expected_spend:
        return StatusType.SAFE
    return StatusType.SUPER_SAFE


def calculate_status(
    envelope: Envelope,
    now: datetime,
    purchase: Purchase | None = None,
    policy: BudgetPolicy = default_policy,
) -> StatusResult:
    """
    Evaluate an envelope's pacing, optionally including a hypothetical purchase

    Pure: the envelope is not modified.
    """
    current_day = day_in_period(envelope.start_date, envelope.period_length, now)
    daily_amount = envelope.allocation / envelope.period_length
    expected_spend = current_day * daily_amount
    purchase_amount = purchase.amount if purchase is not None else ZERO
    effective_spend = envelope.spent + purchase_amount

    status = classify_spend(
        effective_spend, envelope.spent, envelope.allocation, expected_spend, policy
    )

    if daily_amount > 0:
        days_worth = envelope.spent / daily_amount
        days_worth_after = effective_spend / daily_amount
    else:
        days_worth = ZERO
        days_worth_after = ZERO

    logger.debug(
        "Envelope status calculated",
        envelope_id=envelope.id,
        status=status.value,
        current_day=current_day,
        hypothetical=purchase is not None,
    )

    return StatusResult(
        status=status,
        current_day=current_day,
        period_length=envelope.period_length,
        current_spend=envelope.spent,
        expected_spend=expected_spend,
        daily_amount=daily_amount,
        remaining_amount=envelope.remaining(),
        purchase=purchase,
        days_worth_of_spending=days_worth,
        days_worth_after_purchase=days_worth_after,
        envelope_name=envelope.name,
        display=STATUS_DISPLAY[status],
    )


def envelope_status(
    envelope: Envelope, now: datetime, policy: BudgetPolicy = default_policy
) -> StatusType:
    """Committed status of an envelope (no hypothetical purchase)"""
    return calculate_status(envelope, now, policy=policy).status


def format_currency(amount: Decimal) -> str:
    """Format as US dollars, e.g. Decimal("-1234.5") -> "-$1,234.50" """
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    return f"{sign}${abs(quantized):,.2f}"


def format_days_worth(days: Decimal) -> str:
    return f"{Decimal(days):.1f} days"

"""
Bills Funding Calculator - derive the bills envelope from bills and balance

Every derived field is recomputed from scratch on each call; mutators never
patch individual fields.

    total    = sum of bill amounts
    cushion  = total * cushion_ratio (15%)
    target   = total + cushion
    per paycheck, cushioned:     total / paychecks_per_month
    per paycheck, not cushioned: maintenance
                                 + (target - balance) / (paychecks_per_month * 2)
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from budget_enforcer.bills.models import Bill, BillsEnvelope
from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.metrics import bills_funding_ratio
from budget_enforcer.kernel.policy import BudgetPolicy, default_policy
from budget_enforcer.periods.calendar import add_months, clamp_day
from budget_enforcer.periods.models import PaycheckFrequency

logger = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def next_due_date_for(due_day: int, today: date) -> date:
    """This month's due date, or next month's if it has already passed"""
    candidate = clamp_day(today.year, today.month, due_day)
    if candidate >= today:
        return candidate
    year, month = add_months(today.year, today.month, 1)
    return clamp_day(year, month, due_day)


def next_due(bills: list[Bill], today: date) -> tuple[date | None, Decimal]:
    """
    Earliest upcoming bill as (due date, amount)

    Ties go to the bill listed first. (None, 0) when there are no bills.
    """
    best: tuple[date, Decimal] | None = None
    for bill in bills:
        due = next_due_date_for(bill.due_day, today)
        if best is None or due < best[0]:
            best = (due, bill.amount)
    if best is None:
        return None, ZERO
    return best


def required_per_paycheck(
    total_monthly_bills: Decimal,
    target_amount: Decimal,
    current_balance: Decimal,
    frequency: PaycheckFrequency,
    policy: BudgetPolicy = default_policy,
) -> Decimal:
    """Contribution each paycheck should make, rounded to cents"""
    per_month = policy.paychecks_per_month(frequency)
    maintenance = total_monthly_bills / per_month
    if current_balance >= target_amount:
        required = maintenance
    else:
        shortfall = target_amount - current_balance
        required = maintenance + shortfall / (per_month * policy.bills_catch_up_months)
    return required.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_bills_envelope(
    bills: list[Bill],
    current_balance: Decimal,
    frequency: PaycheckFrequency,
    today: date,
    policy: BudgetPolicy = default_policy,
) -> BillsEnvelope:
    """
    Build a BillsEnvelope with every derived field freshly computed

    Args:
        bills: Bills to fund
        current_balance: Money already in the envelope
        frequency: User's paycheck frequency
        today: Reference day for the next due bill
        policy: Cushion and catch-up parameters
    """
    total = sum((bill.amount for bill in bills), ZERO)
    cushion = total * policy.bills_cushion_ratio
    target = total + cushion
    due_date, due_amount = next_due(bills, today)

    envelope = BillsEnvelope(
        bills=[bill.model_copy() for bill in bills],
        current_balance=current_balance,
        paycheck_frequency=frequency,
        total_monthly_bills=total,
        cushion_amount=cushion,
        target_amount=target,
        is_fully_funded=current_balance >= total,
        has_reached_cushion=current_balance >= target,
        required_per_paycheck=required_per_paycheck(
            total, target, current_balance, frequency, policy
        ),
        next_due_date=due_date,
        next_due_amount=due_amount,
        as_of=today,
    )

    bills_funding_ratio.set(float(envelope.funding_ratio()))
    logger.debug(
        "Bills envelope computed",
        bill_count=len(bills),
        fully_funded=envelope.is_fully_funded,
        cushioned=envelope.has_reached_cushion,
    )
    return envelope


def recompute(
    envelope: BillsEnvelope, today: date, policy: BudgetPolicy = default_policy
) -> BillsEnvelope:
    """Refresh derived fields after the bill list or balance changed"""
    return compute_bills_envelope(
        envelope.bills,
        envelope.current_balance,
        envelope.paycheck_frequency,
        today,
        policy,
    )

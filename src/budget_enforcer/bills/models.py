"""
Bills Domain Models - recurring obligations and their funding envelope

The bills envelope is not paced like a spending envelope. It accumulates
money toward the month's known bills plus a cushion, and reports how much
each paycheck should contribute to get (and stay) there.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from budget_enforcer.periods.models import PaycheckFrequency


class BillSpec(BaseModel):
    """Bill fields as entered by the user (no id yet)"""

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    due_day: int = Field(..., ge=1, le=31)
    is_recurring: bool = True
    category: str | None = Field(default=None, max_length=100)


class Bill(BillSpec):
    """
    A known recurring obligation

    Attributes:
        id: Unique identifier
        name: Display name
        amount: Monthly amount due
        due_day: Day of month the bill is due (clamped in short months)
        is_recurring: Whether the bill repeats monthly
        category: Optional grouping
        last_paid_date: When the bill was last paid from the envelope
    """

    id: str
    last_paid_date: date | None = None


class BillsEnvelope(BaseModel):
    """
    Aggregate funding state for all bills

    Every field after current_balance is derived. Instances are only ever
    produced by bills.funding.compute_bills_envelope, which recomputes all
    of them together.
    """

    id: str = "bills_envelope"
    name: str = "Bills"
    bills: list[Bill] = Field(default_factory=list)
    current_balance: Decimal = Field(default=Decimal("0"), ge=0)
    paycheck_frequency: PaycheckFrequency = PaycheckFrequency.BIWEEKLY

    total_monthly_bills: Decimal = Decimal("0")
    cushion_amount: Decimal = Decimal("0")
    target_amount: Decimal = Decimal("0")
    is_fully_funded: bool = True
    has_reached_cushion: bool = True
    required_per_paycheck: Decimal = Decimal("0")
    next_due_date: date | None = None
    next_due_amount: Decimal = Decimal("0")
    as_of: date | None = None

    def get_bill(self, bill_id: str) -> Bill | None:
        return next((bill for bill in self.bills if bill.id == bill_id), None)

    def funding_ratio(self) -> Decimal:
        """Balance as a share of the cushion target (1 when nothing is owed)"""
        if self.target_amount <= 0:
            return Decimal("1")
        return self.current_balance / self.target_amount


class BillsSeed(BaseModel):
    """Initial bills envelope contents supplied when a period starts"""

    initial_balance: Decimal = Field(default=Decimal("0"), ge=0)
    bills: list[BillSpec] = Field(default_factory=list)
    paycheck_frequency: PaycheckFrequency | None = None

"""
Envelope Domain Models - spending buckets, purchases and shuffles

An envelope holds one period's budget for one kind of spending. Purchases
draw it down; shuffles move unspent capacity between envelopes when one runs
short. Periods keep an append-only log of both.

Key concepts:
- Pacing: spend is compared to a straight line from 0 to allocation
- Spent may exceed allocation: that is a status (EMPTY), not an error
- Shuffles move allocation, never historical spend
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


class StatusType(str, Enum):
    """
    Pacing status of an envelope

    Ordered from safest to most severe; severity() gives the rank.
    """

    SUPER_SAFE = "super-safe"
    SAFE = "safe"
    OFF_TRACK = "off-track"
    DANGER = "danger"
    BUDGET_BREAKER = "budget-breaker"
    ENVELOPE_EMPTY = "envelope-empty"

    def severity(self) -> int:
        return _SEVERITY[self]

    def needs_shuffle(self) -> bool:
        """True when the envelope cannot cover the spend on its own"""
        return self in (StatusType.BUDGET_BREAKER, StatusType.ENVELOPE_EMPTY)


_SEVERITY = {
    StatusType.SUPER_SAFE: 0,
    StatusType.SAFE: 1,
    StatusType.OFF_TRACK: 2,
    StatusType.DANGER: 3,
    StatusType.BUDGET_BREAKER: 4,
    StatusType.ENVELOPE_EMPTY: 5,
}


class ShuffleStrategy(str, Enum):
    """How shuffle allocations are proposed"""

    MANUAL = "manual"  # caller supplies amounts
    REDUCE_FROM_ALL = "reduce-from-all"  # proportional to remaining
    RECOMMENDED = "recommended"  # carried-over envelopes first, then largest


class Envelope(BaseModel):
    """
    Named spending bucket for the current period

    Attributes:
        id: Unique identifier
        name: Display name (unique by convention, used to carry balances)
        allocation: Total budgeted for the period
        spent: Accumulated spend this period
        period_length: Period length in days
        start_date: First day of the period
        previous_remaining: Unspent balance of the same-named envelope last
            period (informational only)
    """

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    allocation: Decimal = Field(..., ge=0)
    spent: Decimal = Field(default=Decimal("0"), ge=0)
    period_length: int = Field(..., ge=1)
    start_date: date
    previous_remaining: Decimal = Field(default=Decimal("0"), ge=0)

    def remaining(self) -> Decimal:
        """Unspent allocation (negative when overspent)"""
        return self.allocation - self.spent

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "env_food",
                    "name": "Food",
                    "allocation": "420.00",
                    "spent": "90.00",
                    "period_length": 14,
                    "start_date": "2025-01-11",
                    "previous_remaining": "0",
                }
            ]
        }
    }


class Purchase(BaseModel):
    """Spending event, transient while simulated and logged once confirmed"""

    kind: Literal["purchase"] = "purchase"
    id: str
    envelope_id: str
    amount: Decimal = Field(..., gt=0)
    item: str | None = None
    date: datetime


class PurchaseDraft(BaseModel):
    """What the user typed into the purchase form"""

    amount: Decimal = Field(..., gt=0)
    item: str | None = Field(default=None, max_length=200)


class ShuffleAllocation(BaseModel):
    """Take `amount` of allocation from envelope `envelope_id`"""

    envelope_id: str
    amount: Decimal = Field(..., ge=0)


class ShuffleTransaction(BaseModel):
    """One completed reallocation; immutable once recorded"""

    kind: Literal["shuffle"] = "shuffle"
    id: str
    target_envelope_id: str
    purchase_id: str
    allocations: list[ShuffleAllocation]
    strategy: ShuffleStrategy | None = None
    date: datetime

    model_config = {"frozen": True}

    def total_shuffled(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0"))


class ShuffleLimit(BaseModel):
    """
    Advisory cap on how much may be shuffled out of an envelope per period

    Defaults to a share of the allocation at envelope creation (see
    BudgetPolicy.default_shuffle_limit_ratio).
    """

    envelope_id: str
    max_amount: Decimal = Field(..., ge=0)
    current_shuffled: Decimal = Field(default=Decimal("0"), ge=0)

    def would_exceed(self, amount: Decimal) -> bool:
        return self.current_shuffled + amount > self.max_amount


Transaction = Annotated[Union[Purchase, ShuffleTransaction], Field(discriminator="kind")]


class Period(BaseModel):
    """
    Budgeting window with its envelope snapshot and transaction log

    Only the most recently started period accepts new transactions.
    end_date is inclusive.
    """

    id: str
    start_date: date
    end_date: date
    envelopes: list[Envelope] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> "Period":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    @property
    def period_length(self) -> int:
        return (self.end_date - self.start_date).days + 1


class StatusDisplay(BaseModel):
    """Fixed presentation attributes for a status"""

    color: str
    text_color: str
    border_color: str
    icon: str
    label: str

    model_config = {"frozen": True}


class StatusResult(BaseModel):
    """
    Pacing evaluation of one envelope, optionally with a hypothetical purchase

    Attributes:
        status: Pacing status
        current_day: Day of the period (1-based, capped at period_length)
        period_length: Period length in days
        current_spend: Committed spend
        expected_spend: On-pace spend for current_day
        daily_amount: Allocation per day
        remaining_amount: allocation - spent (before the purchase)
        purchase: The hypothetical purchase, if any
        days_worth_of_spending: Committed spend in days of allocation
        days_worth_after_purchase: Spend including the purchase, in days
        envelope_name: Name of the envelope
        display: Colours, icon and label for the status
    """

    status: StatusType
    current_day: int
    period_length: int
    current_spend: Decimal
    expected_spend: Decimal
    daily_amount: Decimal
    remaining_amount: Decimal
    purchase: Purchase | None = None
    days_worth_of_spending: Decimal
    days_worth_after_purchase: Decimal
    envelope_name: str
    display: StatusDisplay

    def shortfall(self) -> Decimal:
        """Amount the purchase exceeds the remaining allocation by"""
        if self.purchase is None:
            return Decimal("0")
        return max(Decimal("0"), self.purchase.amount - self.remaining_amount)

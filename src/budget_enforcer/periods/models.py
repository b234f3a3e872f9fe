"""
Period Domain Models - pay schedule and period planning records

A budget period is aligned to the user's paycheck: money arrives, envelopes
are refilled, and the clock on every envelope restarts. These models describe
the pay schedule, the computed bounds of a period, and the saved envelope
plans that a future period will start from.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class PaycheckFrequency(str, Enum):
    """How often the user is paid"""

    WEEKLY = "weekly"  # 7-day periods
    BIWEEKLY = "biweekly"  # 14-day periods
    SEMIMONTHLY = "semimonthly"  # two anchor days per month
    MONTHLY = "monthly"  # one anchor day per month


class UserPreferences(BaseModel):
    """
    Pay schedule settings supplied by the settings screen

    Read-only input to the period manager.

    Attributes:
        paycheck_frequency: Pay cadence
        next_payday: Next expected payday (also the monthly anchor by default)
        paycheck_amount: Net pay per paycheck
        period_length: Default period length in days
        first_period_start: Start of the user's first (sync) period
        first_period_length: Length of that first period
        monthly_pay_day: Explicit anchor day for monthly pay
        semi_monthly_pay_days: The two anchor days for semimonthly pay
    """

    paycheck_frequency: PaycheckFrequency
    next_payday: date
    paycheck_amount: Decimal = Field(default=Decimal("0"), ge=0)
    period_length: int = Field(default=14, ge=1)
    first_period_start: date | None = None
    first_period_length: int | None = Field(default=None, ge=1)
    monthly_pay_day: int | None = Field(default=None, ge=1, le=31)
    semi_monthly_pay_days: tuple[int, int] | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_semi_monthly_days(self) -> "UserPreferences":
        if self.semi_monthly_pay_days is not None:
            for day in self.semi_monthly_pay_days:
                if not 1 <= day <= 31:
                    raise ValueError(f"semi-monthly pay day {day} outside 1-31")
        return self

    def monthly_anchor_day(self) -> int:
        """Day of month a monthly period rolls over on"""
        return self.monthly_pay_day or self.next_payday.day

    def sorted_semi_monthly_days(self) -> tuple[int, int] | None:
        if self.semi_monthly_pay_days is None:
            return None
        first, second = sorted(self.semi_monthly_pay_days)
        return first, second


class PeriodBounds(BaseModel):
    """Inclusive calendar bounds of a period"""

    start_date: date
    end_date: date
    period_length: int = Field(ge=1)

    model_config = {"frozen": True}


class PeriodDescriptor(BaseModel):
    """
    A current or upcoming period as listed by the planner

    is_planned is True when a saved plan exists (the current period always
    counts as planned).
    """

    id: str
    start_date: date
    end_date: date
    period_length: int = Field(ge=1)
    is_planned: bool = False
    is_current: bool = False


class EnvelopeTemplate(BaseModel):
    """Envelope definition used to start a period"""

    name: str = Field(..., min_length=1, max_length=100)
    allocation: Decimal = Field(..., ge=0)


class PeriodPlan(BaseModel):
    """
    Saved envelope plan for a future period

    Attributes:
        envelopes: Envelope templates to create when the period starts
        bills_allocation: Amount deposited into the bills envelope at start
        saved_at: When the plan was last saved
    """

    envelopes: list[EnvelopeTemplate] = Field(default_factory=list)
    bills_allocation: Decimal = Field(default=Decimal("0"), ge=0)
    saved_at: datetime | None = None

    def total_allocated(self) -> Decimal:
        return sum(
            (template.allocation for template in self.envelopes), Decimal("0")
        ) + self.bills_allocation


SUGGESTED_PERIOD_LENGTH = 14

SUGGESTED_ENVELOPES: list[EnvelopeTemplate] = [
    EnvelopeTemplate(name="Food", allocation=Decimal("400")),
    EnvelopeTemplate(name="Entertainment", allocation=Decimal("200")),
    EnvelopeTemplate(name="Transportation", allocation=Decimal("150")),
]

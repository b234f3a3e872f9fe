"""
Budget Policy - numeric parameters of the pacing and funding heuristics

All thresholds that shape a user's status screen live in one validated
model, so a product tweak ("danger at 125% of pace") is a config change and
not a code hunt.
"""

import os
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class BudgetPolicy(BaseModel):
    """
    Pacing, cushion and shuffle parameters

    Defaults reproduce the envelope app's shipped behaviour.
    """

    # Pacing thresholds, as multiples of the on-pace spend line
    danger_ratio: Decimal = Field(
        default=Decimal("1.2"),
        gt=1,
        description="Spend above expected * danger_ratio is DANGER",
    )

    safe_ratio: Decimal = Field(
        default=Decimal("0.8"),
        gt=0,
        lt=1,
        description="Spend at or above expected * safe_ratio (and on pace) is SAFE",
    )

    # Bills envelope
    bills_cushion_ratio: Decimal = Field(
        default=Decimal("0.15"),
        ge=0,
        le=1,
        description="Cushion kept on top of total monthly bills",
    )

    bills_catch_up_months: int = Field(
        default=2,
        ge=1,
        le=12,
        description="Months over which an unfunded cushion is caught up",
    )

    periods_per_month: dict[str, Decimal] = Field(
        default={
            "weekly": Decimal("4.33"),
            "biweekly": Decimal("2.17"),
            "semimonthly": Decimal("2"),
            "monthly": Decimal("1"),
        },
        description="Paychecks per month by paycheck frequency",
    )

    # Shuffle governance
    default_shuffle_limit_ratio: Decimal = Field(
        default=Decimal("0.2"),
        ge=0,
        le=1,
        description="Default shuffle cap as a share of envelope allocation",
    )

    enforce_shuffle_limits: bool = Field(
        default=False,
        description="Reject shuffles that exceed an envelope's limit (advisory when False)",
    )

    # Period lifecycle
    rollover_reference_hour: int = Field(
        default=6,
        ge=0,
        le=23,
        description="Local hour at which a finished period rolls over",
    )

    upcoming_period_count: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Periods listed by the planner (current included)",
    )

    @model_validator(mode="after")
    def _check_frequencies(self) -> "BudgetPolicy":
        missing = {"weekly", "biweekly", "semimonthly", "monthly"} - set(
            self.periods_per_month
        )
        if missing:
            raise ValueError(f"periods_per_month missing {sorted(missing)}")
        return self

    def paychecks_per_month(self, frequency: str) -> Decimal:
        """Paychecks per month for a frequency value"""
        return self.periods_per_month[getattr(frequency, "value", frequency)]

    @classmethod
    def from_env(cls, prefix: str = "BUDGET_ENFORCER_") -> "BudgetPolicy":
        """
        Build a policy from environment overrides

        Any scalar field can be set as ``<PREFIX><FIELD_NAME>``, e.g.
        ``BUDGET_ENFORCER_DANGER_RATIO=1.25``.
        """
        overrides = {}
        for name in cls.model_fields:
            if name == "periods_per_month":
                continue
            value = os.getenv(f"{prefix}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls(**overrides)


default_policy = BudgetPolicy()

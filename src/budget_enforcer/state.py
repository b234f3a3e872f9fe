"""
Engine state - the single value every engine operation reads and returns

BudgetEngineState bundles the persisted snapshot (envelopes, history,
limits, bills) with the one in-flight purchase session. Operations never
mutate the state they are given: they deep-copy, change the copy, and hand
it back, so a failed operation leaves the caller's state untouched.
"""

from enum import Enum

from pydantic import BaseModel, Field

from budget_enforcer.bills.models import BillsEnvelope
from budget_enforcer.envelopes.models import (
    Envelope,
    Period,
    Purchase,
    ShuffleLimit,
    ShuffleTransaction,
    StatusResult,
)


class SessionState(str, Enum):
    """Purchase flow states: Idle -> Simulating -> (Confirmed | Cancelled) -> Idle"""

    IDLE = "IDLE"
    SIMULATING = "SIMULATING"


class SessionSlot(BaseModel):
    """
    Current envelope, in-flight purchase and latest status

    Only one simulate/shuffle flow exists at a time.
    """

    state: SessionState = SessionState.IDLE
    current_envelope_id: str | None = None
    current_purchase: Purchase | None = None
    status_result: StatusResult | None = None


class Snapshot(BaseModel):
    """
    Persisted budget data for one user

    Exchanged with the persistence collaborator; dates travel as ISO-8601
    strings and come back as date/datetime values.
    """

    version: int = 1
    envelopes: list[Envelope] = Field(default_factory=list)
    purchases: list[Purchase] = Field(default_factory=list)
    shuffle_transactions: list[ShuffleTransaction] = Field(default_factory=list)
    periods: list[Period] = Field(default_factory=list)
    shuffle_limits: list[ShuffleLimit] = Field(default_factory=list)
    bills_envelope: BillsEnvelope | None = None


class BudgetEngineState(Snapshot):
    """Snapshot plus the purchase session"""

    session: SessionSlot = Field(default_factory=SessionSlot)

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "BudgetEngineState":
        return cls(**snapshot.model_dump())

    def to_snapshot(self) -> Snapshot:
        return Snapshot(**self.model_dump(exclude={"session"}))

    @property
    def current_period(self) -> Period | None:
        """The most recently started period"""
        return self.periods[-1] if self.periods else None

    @property
    def has_active_budget(self) -> bool:
        return len(self.envelopes) > 0

    def get_envelope(self, envelope_id: str | None) -> Envelope | None:
        if envelope_id is None:
            return None
        return next((env for env in self.envelopes if env.id == envelope_id), None)

    def get_shuffle_limit(self, envelope_id: str) -> ShuffleLimit | None:
        return next(
            (limit for limit in self.shuffle_limits if limit.envelope_id == envelope_id),
            None,
        )

    @property
    def current_envelope(self) -> Envelope | None:
        return self.get_envelope(self.session.current_envelope_id)

    def sync_current_period(self) -> None:
        """Refresh the current period's envelope snapshot (call on a copy)"""
        period = self.current_period
        if period is not None:
            period.envelopes = [env.model_copy(deep=True) for env in self.envelopes]

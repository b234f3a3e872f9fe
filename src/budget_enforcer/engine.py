"""
BudgetEngine - Main façade class

This is the primary interface to the budget engine. It owns one user's
BudgetEngineState and routes every operation through the envelope, shuffle,
bills and period handlers, swapping in the returned state only when the
handler succeeds.

Example:
    >>> from budget_enforcer import BudgetEngine
    >>> engine = BudgetEngine(preferences=prefs)
    >>> engine.start_new_period(date(2025, 1, 1), SUGGESTED_PERIOD_LENGTH, SUGGESTED_ENVELOPES)
    >>> food = engine.envelopes[0]
    >>> engine.select_envelope(food.id)
    >>> result = engine.simulate(Decimal("42.50"), "Groceries")
    >>> if result.status.needs_shuffle():
    ...     allocations = engine.plan_shuffle(ShuffleStrategy.RECOMMENDED)
    ...     engine.apply_shuffle(allocations, ShuffleStrategy.RECOMMENDED)
    ... else:
    ...     engine.confirm()
"""

from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel

from budget_enforcer.bills.handlers import BillsHandlers
from budget_enforcer.bills.models import BillsEnvelope, BillsSeed
from budget_enforcer.envelopes.handlers import EnvelopeHandlers
from budget_enforcer.envelopes.models import (
    Envelope,
    Period,
    Purchase,
    ShuffleAllocation,
    ShuffleLimit,
    ShuffleStrategy,
    ShuffleTransaction,
    StatusResult,
)
from budget_enforcer.envelopes.shuffle import (
    ShuffleHandlers,
    amount_needed,
    plan_shuffle,
    shuffle_candidates,
    shuffle_limit_warnings,
)
from budget_enforcer.kernel.errors import (
    ConfigurationError,
    InvalidSessionState,
    NotFoundError,
)
from budget_enforcer.kernel.ids import IdFactory, default_id_factory
from budget_enforcer.kernel.logging import LogOperation, get_logger
from budget_enforcer.kernel.metrics import track_operation_duration
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import RealTimeProvider, TimeProvider
from budget_enforcer.periods.manager import PeriodHandlers
from budget_enforcer.periods.models import (
    EnvelopeTemplate,
    PaycheckFrequency,
    PeriodDescriptor,
    PeriodPlan,
    UserPreferences,
)
from budget_enforcer.state import BudgetEngineState, SessionState
from budget_enforcer.storage.plans import InMemoryPlanStore, PlanStore, lookup_plan
from budget_enforcer.storage.snapshots import SnapshotStore

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _copy(value: M | None) -> M | None:
    return value.model_copy(deep=True) if value is not None else None


def _copies(values: list[M]) -> list[M]:
    return [value.model_copy(deep=True) for value in values]


class BudgetEngine:
    """
    Budget engine main façade

    Provides a unified API for:
    - Envelope management and status
    - The simulate / confirm / cancel purchase flow
    - Shuffles between envelopes
    - Bills envelope funding
    - Period planning and rollover
    - Snapshot load/save
    """

    def __init__(
        self,
        preferences: UserPreferences | None = None,
        policy: BudgetPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
        plan_store: PlanStore | None = None,
        user_id: str = "default",
        state: BudgetEngineState | None = None,
    ) -> None:
        """
        Initialize the engine

        Args:
            preferences: Pay schedule (required for period operations)
            policy: Budget policy (uses defaults if None)
            time_provider: Clock (uses real time if None)
            id_factory: Id generator (random ids if None)
            plan_store: Saved-plan store (in-memory if None)
            user_id: Owner of the state and plans
            state: Initial state (empty if None)
        """
        self.preferences = preferences
        self.policy = policy or BudgetPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.id_factory = id_factory or default_id_factory
        self.plan_store = plan_store or InMemoryPlanStore()
        self.user_id = user_id
        self._state = state if state is not None else BudgetEngineState()

        self.envelope_handlers = EnvelopeHandlers(
            self.time_provider, self.policy, self.id_factory
        )
        self.shuffle_handlers = ShuffleHandlers(
            self.time_provider, self.policy, self.id_factory
        )
        self.bills_handlers = BillsHandlers(self.time_provider, self.policy, self.id_factory)
        self.period_handlers = PeriodHandlers(
            self.time_provider, self.policy, self.id_factory
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, store: SnapshotStore, user_id: str, **kwargs: Any) -> "BudgetEngine":
        """
        Build an engine from the user's saved snapshot

        A user without a snapshot gets an empty engine. The purchase session
        always starts Idle.
        """
        snapshot = store.load(user_id)
        state = BudgetEngineState.from_snapshot(snapshot) if snapshot else None
        return cls(user_id=user_id, state=state, **kwargs)

    def save(self, store: SnapshotStore) -> None:
        with LogOperation(logger, "save_snapshot", user_id=self.user_id):
            store.save(self.user_id, self._state.to_snapshot())

    # ------------------------------------------------------------------
    # Read access
    #
    # Everything returned is a deep copy. Changing it never changes the
    # engine; go through the mutators instead.
    # ------------------------------------------------------------------

    @property
    def state(self) -> BudgetEngineState:
        return self._state.model_copy(deep=True)

    @property
    def envelopes(self) -> list[Envelope]:
        return _copies(self._state.envelopes)

    @property
    def purchases(self) -> list[Purchase]:
        return _copies(self._state.purchases)

    @property
    def shuffle_transactions(self) -> list[ShuffleTransaction]:
        return _copies(self._state.shuffle_transactions)

    @property
    def periods(self) -> list[Period]:
        return _copies(self._state.periods)

    @property
    def shuffle_limits(self) -> list[ShuffleLimit]:
        return _copies(self._state.shuffle_limits)

    @property
    def bills_envelope(self) -> BillsEnvelope | None:
        return _copy(self._state.bills_envelope)

    @property
    def current_period(self) -> Period | None:
        return _copy(self._state.current_period)

    @property
    def has_active_budget(self) -> bool:
        return self._state.has_active_budget

    @property
    def session_state(self) -> SessionState:
        return self._state.session.state

    @property
    def current_envelope(self) -> Envelope | None:
        return _copy(self._state.current_envelope)

    @property
    def current_purchase(self) -> Purchase | None:
        return _copy(self._state.session.current_purchase)

    @property
    def status_result(self) -> StatusResult | None:
        return _copy(self._state.session.status_result)

    def get_envelope(self, envelope_id: str) -> Envelope:
        """
        Raises:
            NotFoundError: If no envelope has this id
        """
        envelope = self._state.get_envelope(envelope_id)
        if envelope is None:
            raise NotFoundError("envelope", envelope_id)
        return envelope.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Envelopes
    # ------------------------------------------------------------------

    def add_envelope(
        self,
        name: str,
        allocation: Decimal | str | int,
        period_length: int,
        start_date: date | None = None,
    ) -> Envelope:
        """
        Add an envelope to the current budget

        Args:
            name: Display name
            allocation: Amount budgeted for the period
            period_length: Period length in days
            start_date: First day (defaults to the current period's start)

        Returns:
            The new envelope

        Raises:
            ValidationError: Invalid name, allocation or length
        """
        with LogOperation(logger, "add_envelope", allocation=allocation):
            self._state = self.envelope_handlers.add_envelope(
                self._state, name, Decimal(str(allocation)), period_length, start_date
            )
        return self._state.envelopes[-1].model_copy(deep=True)

    def update_envelope(self, envelope_id: str, **changes: Any) -> Envelope | None:
        """Update envelope fields; returns None for an unknown id"""
        with LogOperation(logger, "update_envelope", envelope_id=envelope_id):
            self._state = self.envelope_handlers.update_envelope(
                self._state, envelope_id, **changes
            )
        return _copy(self._state.get_envelope(envelope_id))

    def delete_envelope(self, envelope_id: str) -> None:
        with LogOperation(logger, "delete_envelope", envelope_id=envelope_id):
            self._state = self.envelope_handlers.delete_envelope(self._state, envelope_id)

    def update_shuffle_limit(self, envelope_id: str, max_amount: Decimal | str | int) -> None:
        self._state = self.envelope_handlers.update_shuffle_limit(
            self._state, envelope_id, Decimal(str(max_amount))
        )

    def envelope_statuses(self) -> dict[str, StatusResult]:
        return self.envelope_handlers.envelope_statuses(self._state)

    # ------------------------------------------------------------------
    # Purchase flow
    # ------------------------------------------------------------------

    def select_envelope(self, envelope_id: str | None) -> StatusResult | None:
        """
        Make an envelope current and return its committed status

        Passing None clears the session.
        """
        self._state = self.envelope_handlers.select_envelope(self._state, envelope_id)
        return _copy(self._state.session.status_result)

    @track_operation_duration("simulate_purchase")
    def simulate(self, amount: Decimal | str | int, item: str | None = None) -> StatusResult:
        """
        Evaluate a purchase against the current envelope without committing

        Raises:
            NoEnvelopeSelected: No envelope selected
            ValidationError: Non-positive amount
        """
        self._state, result = self.envelope_handlers.simulate(
            self._state, Decimal(str(amount)), item
        )
        return result.model_copy(deep=True)

    @track_operation_duration("confirm_purchase")
    def confirm(self) -> StatusResult:
        """
        Commit the simulated purchase

        Raises:
            InvalidSessionState: No simulation in progress
        """
        with LogOperation(logger, "confirm_purchase"):
            self._state, result = self.envelope_handlers.confirm(self._state)
        return result.model_copy(deep=True)

    def cancel(self) -> StatusResult:
        """
        Drop the simulated purchase

        Raises:
            InvalidSessionState: No simulation in progress
        """
        self._state, result = self.envelope_handlers.cancel(self._state)
        return result.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Shuffle
    # ------------------------------------------------------------------

    def _require_simulation(self, operation: str) -> Purchase:
        session = self._state.session
        if session.state != SessionState.SIMULATING or session.current_purchase is None:
            raise InvalidSessionState(operation, session.state.value)
        return session.current_purchase

    def shuffle_candidates(self, target_envelope_id: str | None = None) -> list[Envelope]:
        """Envelopes that could fund the target (current envelope by default)"""
        target_id = target_envelope_id or self._state.session.current_envelope_id
        return _copies(shuffle_candidates(self._state.envelopes, target_id))

    def amount_needed(self) -> Decimal:
        """
        Shortfall of the simulated purchase

        Raises:
            InvalidSessionState: No simulation in progress
        """
        purchase = self._require_simulation("amount_needed")
        return amount_needed(self.get_envelope(purchase.envelope_id), purchase.amount)

    def plan_shuffle(
        self,
        strategy: ShuffleStrategy,
        manual_amounts: dict[str, Decimal] | None = None,
    ) -> list[ShuffleAllocation]:
        """
        Propose allocations covering the simulated purchase's shortfall

        Raises:
            InvalidSessionState: No simulation in progress
        """
        purchase = self._require_simulation("plan_shuffle")
        return plan_shuffle(
            self._state.envelopes,
            purchase.envelope_id,
            purchase.amount,
            ShuffleStrategy(strategy),
            manual_amounts,
        )

    def shuffle_limit_warnings(self, allocations: list[ShuffleAllocation]) -> list[ShuffleLimit]:
        return _copies(shuffle_limit_warnings(self._state.shuffle_limits, allocations))

    @track_operation_duration("apply_shuffle")
    def apply_shuffle(
        self,
        allocations: list[ShuffleAllocation],
        strategy: ShuffleStrategy | None = None,
    ) -> StatusResult | None:
        """
        Commit the simulated purchase with money shuffled in from other envelopes

        Returns:
            Committed status of the target envelope

        Raises:
            InvalidSessionState: No simulation in progress
            ShuffleInsufficientError: Allocations do not cover the shortfall
            ValidationError: Invalid allocations
        """
        purchase = self._require_simulation("apply_shuffle")
        with LogOperation(logger, "apply_shuffle", envelope_id=purchase.envelope_id):
            self._state, result = self.shuffle_handlers.apply_shuffle(
                self._state, purchase.envelope_id, purchase, allocations, strategy
            )
        return _copy(result)

    # ------------------------------------------------------------------
    # Bills
    # ------------------------------------------------------------------

    def _paycheck_frequency(self) -> PaycheckFrequency:
        if self.preferences is not None:
            return self.preferences.paycheck_frequency
        return PaycheckFrequency.BIWEEKLY

    def add_bill(
        self,
        name: str,
        amount: Decimal | str | int,
        due_day: int,
        is_recurring: bool = True,
        category: str | None = None,
    ) -> BillsEnvelope:
        """
        Add a bill and recompute the bills envelope

        Raises:
            ValidationError: Invalid bill fields
        """
        with LogOperation(logger, "add_bill", amount=amount):
            self._state = self.bills_handlers.add_bill(
                self._state,
                {
                    "name": name,
                    "amount": Decimal(str(amount)),
                    "due_day": due_day,
                    "is_recurring": is_recurring,
                    "category": category,
                },
                self._paycheck_frequency(),
            )
        return _copy(self._state.bills_envelope)

    def update_bill(self, bill_id: str, **changes: Any) -> BillsEnvelope | None:
        with LogOperation(logger, "update_bill", bill_id=bill_id):
            self._state = self.bills_handlers.update_bill(self._state, bill_id, **changes)
        return _copy(self._state.bills_envelope)

    def delete_bill(self, bill_id: str) -> BillsEnvelope | None:
        with LogOperation(logger, "delete_bill", bill_id=bill_id):
            self._state = self.bills_handlers.delete_bill(self._state, bill_id)
        return _copy(self._state.bills_envelope)

    def add_money_to_bills(self, amount: Decimal | str | int) -> BillsEnvelope:
        """
        Raises:
            ValidationError: amount is not positive
        """
        with LogOperation(logger, "add_money_to_bills", amount=amount):
            self._state = self.bills_handlers.add_money_to_bills(
                self._state, Decimal(str(amount)), self._paycheck_frequency()
            )
        return _copy(self._state.bills_envelope)

    def pay_bill(self, bill_id: str) -> bool:
        """Pay a bill from the bills envelope; False if it could not be paid"""
        self._state, paid = self.bills_handlers.pay_bill(self._state, bill_id)
        return paid

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    def _require_preferences(self) -> UserPreferences:
        if self.preferences is None:
            raise ConfigurationError("User preferences are required for period operations")
        return self.preferences

    def _has_plan(self, period_id: str) -> bool:
        return self.plan_store.get_plan(self.user_id, period_id) is not None

    def update_preferences(self, preferences: UserPreferences) -> None:
        """Replace the pay schedule; the bills envelope follows its frequency"""
        self.preferences = preferences
        self._state = self.bills_handlers.set_paycheck_frequency(
            self._state, preferences.paycheck_frequency
        )

    def next_periods(self, count: int | None = None) -> list[PeriodDescriptor]:
        """
        Current period plus upcoming ones, flagged when a plan is saved

        Raises:
            ConfigurationError: Missing preferences or semimonthly pay days
        """
        return self.period_handlers.next_periods(
            self._require_preferences(),
            self._state.current_period,
            is_planned=self._has_plan,
            count=count,
        )

    def start_new_period(
        self,
        start_date: date,
        period_length: int,
        envelope_templates: list[EnvelopeTemplate],
        end_date: date | None = None,
        bills_seed: BillsSeed | None = None,
    ) -> Period:
        """
        Replace the active envelopes and open a new period

        Returns:
            The new current period
        """
        with LogOperation(logger, "start_new_period", start_date=start_date.isoformat()):
            self._state = self.period_handlers.start_new_period(
                self._state,
                start_date,
                period_length,
                envelope_templates,
                end_date=end_date,
                bills_seed=bills_seed,
                paycheck_frequency=(
                    self.preferences.paycheck_frequency if self.preferences else None
                ),
            )
        return _copy(self._state.current_period)

    def should_rollover(self) -> bool:
        return self.period_handlers.should_rollover(self._state)

    @track_operation_duration("rollover")
    def check_and_start_next_period(self) -> bool:
        """
        Roll over into the next period when the current one has ended

        Uses the next period's saved plan, or the user's default template.

        Returns:
            True when a new period was started
        """
        preferences = self._require_preferences()
        self._state, started = self.period_handlers.rollover(
            self._state,
            preferences,
            lambda period_id: lookup_plan(self.plan_store, self.user_id, period_id),
        )
        return started

    # ------------------------------------------------------------------
    # Saved plans
    # ------------------------------------------------------------------

    def save_period_plan(self, period_id: str, plan: PeriodPlan) -> None:
        if plan.saved_at is None:
            plan = plan.model_copy(update={"saved_at": self.time_provider.now()})
        self.plan_store.save_plan(self.user_id, period_id, plan)
        logger.info("Period plan saved", period_id=period_id)

    def get_period_plan(self, period_id: str) -> PeriodPlan | None:
        return self.plan_store.get_plan(self.user_id, period_id)

    def delete_period_plan(self, period_id: str) -> None:
        self.plan_store.delete_plan(self.user_id, period_id)

    def save_default_template(self, plan: PeriodPlan) -> None:
        self.plan_store.save_default_template(self.user_id, plan)

    def get_default_template(self) -> PeriodPlan | None:
        return self.plan_store.get_default_template(self.user_id)

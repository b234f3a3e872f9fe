"""
Envelope Handlers - envelope CRUD and the simulate/confirm/cancel purchase flow

Each handler takes a BudgetEngineState and returns a new one. Validation
runs first; the state is then deep-copied and the copy mutated, so callers
see either the whole change or none of it.

Purchase session state machine:

    IDLE --simulate--> SIMULATING --confirm--> IDLE (spend committed)
                                  --cancel---> IDLE (nothing changed)

A second simulate while SIMULATING replaces the earlier purchase.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from budget_enforcer.envelopes.invariants import (
    validate_editable_fields,
    validate_shuffle_limit_amount,
)
from budget_enforcer.envelopes.models import (
    Envelope,
    Purchase,
    PurchaseDraft,
    ShuffleLimit,
    StatusResult,
)
from budget_enforcer.envelopes.status import calculate_status
from budget_enforcer.kernel.errors import InvalidSessionState, NoEnvelopeSelected
from budget_enforcer.kernel.ids import IdFactory, default_id_factory
from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.metrics import (
    purchases_cancelled_total,
    purchases_confirmed_total,
    purchases_simulated_total,
)
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TimeProvider
from budget_enforcer.kernel.validation import build_validated
from budget_enforcer.state import BudgetEngineState, SessionSlot, SessionState

logger = get_logger(__name__)


class EnvelopeHandlers:
    """
    Envelope and purchase-flow operations

    Stateless apart from injected collaborators; state comes in and goes out.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: BudgetPolicy,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Envelope CRUD
    # ------------------------------------------------------------------

    def add_envelope(
        self,
        state: BudgetEngineState,
        name: str,
        allocation: Decimal,
        period_length: int,
        start_date: date | None = None,
        previous_remaining: Decimal = Decimal("0"),
    ) -> BudgetEngineState:
        """
        Add an envelope to the active set

        The envelope starts with the current period's start date unless one
        is given, and gets a default shuffle limit.

        Raises:
            ValidationError: Empty name, negative allocation, bad length
        """
        if start_date is None:
            period = state.current_period
            start_date = period.start_date if period else self.time_provider.now().date()

        envelope = build_validated(
            Envelope,
            {
                "id": self.id_factory.generate("env"),
                "name": name,
                "allocation": allocation,
                "spent": Decimal("0"),
                "period_length": period_length,
                "start_date": start_date,
                "previous_remaining": previous_remaining,
            },
        )

        new_state = state.model_copy(deep=True)
        new_state.envelopes.append(envelope)
        new_state.shuffle_limits.append(self._default_limit(envelope))
        new_state.sync_current_period()

        logger.info("Envelope added", envelope_id=envelope.id, name=envelope.name)
        return new_state

    def update_envelope(
        self, state: BudgetEngineState, envelope_id: str, **changes: Any
    ) -> BudgetEngineState:
        """
        Apply field changes to an envelope; unknown ids are a no-op

        Raises:
            ValidationError: Unknown field or invalid merged value
        """
        validate_editable_fields(changes)
        envelope = state.get_envelope(envelope_id)
        if envelope is None:
            logger.warning("Envelope not found for update", envelope_id=envelope_id)
            return state

        updated = build_validated(Envelope, {**envelope.model_dump(), **changes})

        new_state = state.model_copy(deep=True)
        new_state.envelopes = [
            updated if env.id == envelope_id else env for env in new_state.envelopes
        ]
        new_state.sync_current_period()
        if new_state.session.current_envelope_id == envelope_id:
            new_state.session = self._idle_session(updated)

        logger.info("Envelope updated", envelope_id=envelope_id, fields=sorted(changes))
        return new_state

    def delete_envelope(self, state: BudgetEngineState, envelope_id: str) -> BudgetEngineState:
        """Remove an envelope and its shuffle limit; unknown ids are a no-op"""
        if state.get_envelope(envelope_id) is None:
            logger.warning("Envelope not found for delete", envelope_id=envelope_id)
            return state

        new_state = state.model_copy(deep=True)
        new_state.envelopes = [env for env in new_state.envelopes if env.id != envelope_id]
        new_state.shuffle_limits = [
            limit for limit in new_state.shuffle_limits if limit.envelope_id != envelope_id
        ]
        if new_state.session.current_envelope_id == envelope_id:
            new_state.session = SessionSlot()
        new_state.sync_current_period()

        logger.info("Envelope deleted", envelope_id=envelope_id)
        return new_state

    def update_shuffle_limit(
        self, state: BudgetEngineState, envelope_id: str, max_amount: Decimal
    ) -> BudgetEngineState:
        """Set an envelope's shuffle cap, creating the limit if missing"""
        max_amount = Decimal(max_amount)
        validate_shuffle_limit_amount(max_amount)
        if state.get_envelope(envelope_id) is None:
            logger.warning("Envelope not found for shuffle limit", envelope_id=envelope_id)
            return state

        new_state = state.model_copy(deep=True)
        limit = new_state.get_shuffle_limit(envelope_id)
        if limit is None:
            new_state.shuffle_limits.append(
                ShuffleLimit(envelope_id=envelope_id, max_amount=max_amount)
            )
        else:
            limit.max_amount = max_amount
        return new_state

    def envelope_statuses(self, state: BudgetEngineState) -> dict[str, StatusResult]:
        """Committed status of every envelope, keyed by envelope id"""
        now = self.time_provider.now()
        return {
            env.id: calculate_status(env, now, policy=self.policy)
            for env in state.envelopes
        }

    # ------------------------------------------------------------------
    # Purchase session
    # ------------------------------------------------------------------

    def select_envelope(
        self, state: BudgetEngineState, envelope_id: str | None
    ) -> BudgetEngineState:
        """
        Make an envelope current (or clear the session with None)

        Any uncommitted simulation is dropped. Unknown ids are a no-op.
        """
        if envelope_id is None:
            new_state = state.model_copy(deep=True)
            new_state.session = SessionSlot()
            return new_state

        envelope = state.get_envelope(envelope_id)
        if envelope is None:
            logger.warning("Envelope not found for selection", envelope_id=envelope_id)
            return state

        new_state = state.model_copy(deep=True)
        new_state.session = self._idle_session(envelope)
        return new_state

    def simulate(
        self,
        state: BudgetEngineState,
        amount: Decimal,
        item: str | None = None,
    ) -> tuple[BudgetEngineState, StatusResult]:
        """
        Evaluate a hypothetical purchase against the current envelope

        The envelope is not modified. Replaces any earlier simulation.

        Raises:
            NoEnvelopeSelected: No current envelope
            ValidationError: Non-positive amount
        """
        envelope = state.current_envelope
        if envelope is None:
            raise NoEnvelopeSelected()

        draft = build_validated(PurchaseDraft, {"amount": amount, "item": item})
        now = self.time_provider.now()
        purchase = Purchase(
            id=self.id_factory.generate("purchase"),
            envelope_id=envelope.id,
            amount=draft.amount,
            item=draft.item,
            date=now,
        )
        result = calculate_status(envelope, now, purchase=purchase, policy=self.policy)

        new_state = state.model_copy(deep=True)
        new_state.session = SessionSlot(
            state=SessionState.SIMULATING,
            current_envelope_id=envelope.id,
            current_purchase=purchase,
            status_result=result,
        )

        purchases_simulated_total.labels(status=result.status.value).inc()
        logger.debug(
            "Purchase simulated",
            envelope_id=envelope.id,
            purchase_id=purchase.id,
            status=result.status.value,
        )
        return new_state, result

    def confirm(self, state: BudgetEngineState) -> tuple[BudgetEngineState, StatusResult]:
        """
        Commit the simulated purchase

        Spend, purchase history and the current period's log change together.
        Confirming an EMPTY / BUDGET_BREAKER purchase is allowed; offering a
        shuffle instead is the caller's decision.

        Raises:
            InvalidSessionState: Not simulating
        """
        session = state.session
        envelope = state.current_envelope
        if session.state != SessionState.SIMULATING or session.current_purchase is None:
            raise InvalidSessionState("confirm", session.state.value)
        if envelope is None:
            raise InvalidSessionState("confirm", "missing envelope")

        purchase = session.current_purchase
        new_state = state.model_copy(deep=True)
        target = new_state.get_envelope(envelope.id)
        target.spent += purchase.amount
        new_state.purchases.append(purchase)

        period = new_state.current_period
        if period is not None:
            period.transactions.append(purchase)
        new_state.sync_current_period()

        new_state.session = self._idle_session(target)

        purchases_confirmed_total.inc()
        logger.info(
            "Purchase confirmed",
            envelope_id=target.id,
            purchase_id=purchase.id,
            status=new_state.session.status_result.status.value,
        )
        return new_state, new_state.session.status_result

    def cancel(self, state: BudgetEngineState) -> tuple[BudgetEngineState, StatusResult]:
        """
        Discard the simulated purchase

        Raises:
            InvalidSessionState: Not simulating
        """
        session = state.session
        envelope = state.current_envelope
        if session.state != SessionState.SIMULATING:
            raise InvalidSessionState("cancel", session.state.value)
        if envelope is None:
            raise InvalidSessionState("cancel", "missing envelope")

        new_state = state.model_copy(deep=True)
        new_state.session = self._idle_session(envelope)

        purchases_cancelled_total.inc()
        logger.debug("Purchase simulation cancelled", envelope_id=envelope.id)
        return new_state, new_state.session.status_result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _idle_session(self, envelope: Envelope) -> SessionSlot:
        return SessionSlot(
            state=SessionState.IDLE,
            current_envelope_id=envelope.id,
            status_result=calculate_status(
                envelope, self.time_provider.now(), policy=self.policy
            ),
        )

    def _default_limit(self, envelope: Envelope) -> ShuffleLimit:
        return ShuffleLimit(
            envelope_id=envelope.id,
            max_amount=envelope.allocation * self.policy.default_shuffle_limit_ratio,
        )

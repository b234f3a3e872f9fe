"""
Bills Handlers - mutate the bill list and balance, then recompute

Routine conditions (unknown bill, not enough money to pay) are reported
through return values and logs, not exceptions. Only malformed input raises.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from budget_enforcer.bills.funding import compute_bills_envelope, recompute
from budget_enforcer.bills.models import Bill, BillsEnvelope, BillSpec
from budget_enforcer.kernel.errors import ValidationError
from budget_enforcer.kernel.ids import IdFactory, default_id_factory
from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TimeProvider
from budget_enforcer.kernel.validation import build_validated
from budget_enforcer.periods.models import PaycheckFrequency
from budget_enforcer.state import BudgetEngineState

logger = get_logger(__name__)

EDITABLE_BILL_FIELDS = {"name", "amount", "due_day", "is_recurring", "category"}


class BillsHandlers:
    """Bills envelope operations over BudgetEngineState"""

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: BudgetPolicy,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory

    def _today(self) -> date:
        return self.time_provider.now().date()

    def _with_envelope(
        self, state: BudgetEngineState, envelope: BillsEnvelope
    ) -> BudgetEngineState:
        new_state = state.model_copy(deep=True)
        new_state.bills_envelope = recompute(envelope, self._today(), self.policy)
        return new_state

    def ensure_bills_envelope(
        self,
        state: BudgetEngineState,
        frequency: PaycheckFrequency = PaycheckFrequency.BIWEEKLY,
    ) -> BudgetEngineState:
        """Create an empty bills envelope if there is none yet"""
        if state.bills_envelope is not None:
            return state
        new_state = state.model_copy(deep=True)
        new_state.bills_envelope = compute_bills_envelope(
            [], Decimal("0"), frequency, self._today(), self.policy
        )
        return new_state

    def set_paycheck_frequency(
        self, state: BudgetEngineState, frequency: PaycheckFrequency
    ) -> BudgetEngineState:
        """Re-derive per-paycheck funding for a new pay cadence"""
        envelope = state.bills_envelope
        if envelope is None or envelope.paycheck_frequency == frequency:
            return state

        updated = envelope.model_copy(deep=True)
        updated.paycheck_frequency = frequency

        logger.info("Bills paycheck frequency changed", frequency=frequency.value)
        return self._with_envelope(state, updated)

    def add_bill(
        self,
        state: BudgetEngineState,
        spec: BillSpec | dict,
        frequency: PaycheckFrequency = PaycheckFrequency.BIWEEKLY,
    ) -> BudgetEngineState:
        """
        Args:
            frequency: Pay cadence used if this creates the bills envelope

        Raises:
            ValidationError: Invalid bill fields
        """
        data = spec.model_dump() if isinstance(spec, BillSpec) else dict(spec)
        bill = build_validated(Bill, {**data, "id": self.id_factory.generate("bill")})

        state = self.ensure_bills_envelope(state, frequency)
        envelope = state.bills_envelope.model_copy(deep=True)
        envelope.bills.append(bill)

        logger.info("Bill added", bill_id=bill.id, due_day=bill.due_day)
        return self._with_envelope(state, envelope)

    def update_bill(
        self, state: BudgetEngineState, bill_id: str, **changes: Any
    ) -> BudgetEngineState:
        """Change bill fields; unknown ids are a no-op"""
        unknown = set(changes) - EDITABLE_BILL_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "field cannot be updated")

        bill = state.bills_envelope.get_bill(bill_id) if state.bills_envelope else None
        if bill is None:
            logger.warning("Bill not found for update", bill_id=bill_id)
            return state

        updated = build_validated(Bill, {**bill.model_dump(), **changes})
        envelope = state.bills_envelope.model_copy(deep=True)
        envelope.bills = [updated if b.id == bill_id else b for b in envelope.bills]

        logger.info("Bill updated", bill_id=bill_id, fields=sorted(changes))
        return self._with_envelope(state, envelope)

    def delete_bill(self, state: BudgetEngineState, bill_id: str) -> BudgetEngineState:
        if state.bills_envelope is None or state.bills_envelope.get_bill(bill_id) is None:
            logger.warning("Bill not found for delete", bill_id=bill_id)
            return state

        envelope = state.bills_envelope.model_copy(deep=True)
        envelope.bills = [b for b in envelope.bills if b.id != bill_id]

        logger.info("Bill deleted", bill_id=bill_id)
        return self._with_envelope(state, envelope)

    def add_money_to_bills(
        self,
        state: BudgetEngineState,
        amount: Decimal,
        frequency: PaycheckFrequency = PaycheckFrequency.BIWEEKLY,
    ) -> BudgetEngineState:
        """
        Args:
            frequency: Pay cadence used if this creates the bills envelope

        Raises:
            ValidationError: amount is not positive
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("amount", "must be greater than zero")

        state = self.ensure_bills_envelope(state, frequency)
        envelope = state.bills_envelope.model_copy(deep=True)
        envelope.current_balance += amount

        logger.info("Money added to bills envelope")
        return self._with_envelope(state, envelope)

    def pay_bill(
        self, state: BudgetEngineState, bill_id: str
    ) -> tuple[BudgetEngineState, bool]:
        """
        Pay a bill from the envelope balance

        Returns:
            (new_state, True) on payment. (state, False) when the bill is
            unknown or the balance cannot cover it; nothing changes then.
        """
        envelope = state.bills_envelope
        bill = envelope.get_bill(bill_id) if envelope else None
        if bill is None:
            logger.warning("Bill not found for payment", bill_id=bill_id)
            return state, False
        if envelope.current_balance < bill.amount:
            logger.warning("Insufficient bills balance", bill_id=bill_id)
            return state, False

        updated = envelope.model_copy(deep=True)
        updated.current_balance -= bill.amount
        updated.get_bill(bill_id).last_paid_date = self._today()

        logger.info("Bill paid", bill_id=bill_id)
        return self._with_envelope(state, updated), True

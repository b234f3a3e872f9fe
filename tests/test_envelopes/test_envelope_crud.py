"""
Tests for envelope add / update / delete and shuffle limit upkeep
"""

from datetime import date
from decimal import Decimal

import pytest

from budget_enforcer.envelopes.handlers import EnvelopeHandlers
from budget_enforcer.envelopes.models import StatusType
from budget_enforcer.kernel.errors import ValidationError
from budget_enforcer.kernel.ids import SequentialIdFactory
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TestTimeProvider
from budget_enforcer.state import BudgetEngineState


@pytest.fixture
def handlers(
    test_time: TestTimeProvider, policy: BudgetPolicy, ids: SequentialIdFactory
) -> EnvelopeHandlers:
    return EnvelopeHandlers(test_time, policy, ids)


def test_add_envelope_uses_period_start_and_default_limit(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    state = handlers.add_envelope(budget_state, "Gifts", Decimal("200"), 14)

    envelope = state.envelopes[-1]
    assert envelope.id == "env_1"
    assert envelope.start_date == date(2025, 1, 11)
    assert state.get_shuffle_limit("env_1").max_amount == Decimal("40")
    assert state.current_period.envelopes[-1].name == "Gifts"
    assert len(budget_state.envelopes) == 3


def test_add_envelope_without_period_starts_today(handlers: EnvelopeHandlers) -> None:
    state = handlers.add_envelope(BudgetEngineState(), "Food", Decimal("100"), 7)
    assert state.envelopes[0].start_date == date(2025, 1, 15)
    assert state.has_active_budget


@pytest.mark.parametrize(
    "name,allocation,length",
    [("", "100", 14), ("Food", "-1", 14), ("Food", "100", 0)],
)
def test_add_envelope_validation(
    handlers: EnvelopeHandlers,
    budget_state: BudgetEngineState,
    name: str,
    allocation: str,
    length: int,
) -> None:
    with pytest.raises(ValidationError):
        handlers.add_envelope(budget_state, name, Decimal(allocation), length)


def test_update_envelope_changes_fields(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    state = handlers.update_envelope(budget_state, "env_food", allocation=Decimal("500"))
    assert state.get_envelope("env_food").allocation == Decimal("500")
    assert budget_state.get_envelope("env_food").allocation == Decimal("420")


def test_update_envelope_refreshes_selected_status(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    state = handlers.select_envelope(budget_state, "env_food")
    state = handlers.update_envelope(state, "env_food", spent=Decimal("420"))
    assert state.session.status_result.status == StatusType.ENVELOPE_EMPTY


def test_update_unknown_envelope_is_noop(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    assert handlers.update_envelope(budget_state, "env_missing", name="X") is budget_state


def test_update_rejects_unknown_field(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    with pytest.raises(ValidationError):
        handlers.update_envelope(budget_state, "env_food", id="env_other")


def test_update_rejects_invalid_value(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    with pytest.raises(ValidationError):
        handlers.update_envelope(budget_state, "env_food", allocation=Decimal("-5"))


def test_delete_envelope_removes_limit_and_session(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    state = handlers.select_envelope(budget_state, "env_food")
    state = handlers.delete_envelope(state, "env_food")

    assert state.get_envelope("env_food") is None
    assert state.get_shuffle_limit("env_food") is None
    assert state.session.current_envelope_id is None
    assert [env.id for env in state.current_period.envelopes] == ["env_fun", "env_gas"]


def test_update_shuffle_limit_upserts(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    state = handlers.update_shuffle_limit(budget_state, "env_food", Decimal("15"))
    assert state.get_shuffle_limit("env_food").max_amount == Decimal("15")

    state.shuffle_limits = []
    state = handlers.update_shuffle_limit(state, "env_food", Decimal("25"))
    assert state.get_shuffle_limit("env_food").max_amount == Decimal("25")


def test_update_shuffle_limit_rejects_negative(
    handlers: EnvelopeHandlers, budget_state: BudgetEngineState
) -> None:
    with pytest.raises(ValidationError):
        handlers.update_shuffle_limit(budget_state, "env_food", Decimal("-1"))


def test_envelope_statuses(handlers: EnvelopeHandlers, budget_state: BudgetEngineState) -> None:
    statuses = handlers.envelope_statuses(budget_state)
    assert statuses["env_food"].status == StatusType.SUPER_SAFE
    assert statuses["env_fun"].status == StatusType.DANGER

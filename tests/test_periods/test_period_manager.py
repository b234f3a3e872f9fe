"""
Tests for the Period Manager - upcoming periods, starting periods, rollover
"""

from datetime import date, datetime
from decimal import Decimal

import pydantic
import pytest

from budget_enforcer.bills.models import BillSpec, BillsSeed
from budget_enforcer.envelopes.models import Period
from budget_enforcer.kernel.errors import ValidationError
from budget_enforcer.kernel.ids import SequentialIdFactory
from budget_enforcer.kernel.metrics import period_rollovers_total
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TestTimeProvider
from budget_enforcer.periods.manager import PeriodHandlers
from budget_enforcer.periods.models import (
    SUGGESTED_ENVELOPES,
    EnvelopeTemplate,
    PaycheckFrequency,
    PeriodPlan,
    UserPreferences,
)
from budget_enforcer.state import BudgetEngineState, SessionState


@pytest.fixture
def handlers(
    test_time: TestTimeProvider, policy: BudgetPolicy, ids: SequentialIdFactory
) -> PeriodHandlers:
    return PeriodHandlers(test_time, policy, ids)


@pytest.fixture
def january_state(handlers: PeriodHandlers) -> BudgetEngineState:
    """Biweekly period Jan 1-14 with Food overspent and Fun underspent"""
    state = handlers.start_new_period(
        BudgetEngineState(),
        date(2025, 1, 1),
        14,
        [
            EnvelopeTemplate(name="Food", allocation=Decimal("400")),
            EnvelopeTemplate(name="Fun", allocation=Decimal("200")),
        ],
    )
    state.envelopes[0].spent = Decimal("450")
    state.envelopes[1].spent = Decimal("120")
    return state


class TestNextPeriods:
    def test_current_period_listed_first(
        self, handlers: PeriodHandlers, biweekly_preferences: UserPreferences
    ) -> None:
        current = Period(
            id="period_2025-01-01", start_date=date(2025, 1, 1), end_date=date(2025, 1, 14)
        )
        periods = handlers.next_periods(
            biweekly_preferences,
            current,
            is_planned=lambda period_id: period_id == "period_2025-01-29",
        )

        assert [p.id for p in periods] == [
            "period_2025-01-01",
            "period_2025-01-15",
            "period_2025-01-29",
        ]
        assert periods[0].is_current and periods[0].is_planned
        assert periods[1].end_date == date(2025, 1, 28)
        assert not periods[1].is_planned
        assert periods[2].is_planned

    def test_without_current_period_starts_at_next_payday(
        self, handlers: PeriodHandlers, biweekly_preferences: UserPreferences
    ) -> None:
        periods = handlers.next_periods(biweekly_preferences, None, count=2)

        assert periods[0].start_date == date(2025, 1, 25)
        assert not periods[0].is_current
        assert periods[1].start_date == date(2025, 2, 8)

    def test_monthly_periods_chain_on_anchor(self, handlers: PeriodHandlers) -> None:
        preferences = UserPreferences(
            paycheck_frequency=PaycheckFrequency.MONTHLY, next_payday=date(2025, 1, 31)
        )
        periods = handlers.next_periods(preferences, None, count=3)

        assert [(p.start_date, p.end_date) for p in periods] == [
            (date(2025, 1, 31), date(2025, 2, 27)),
            (date(2025, 2, 28), date(2025, 3, 30)),
            (date(2025, 3, 31), date(2025, 4, 29)),
        ]

    def test_count_zero_lists_nothing(
        self, handlers: PeriodHandlers, biweekly_preferences: UserPreferences
    ) -> None:
        current = Period(
            id="period_2025-01-01", start_date=date(2025, 1, 1), end_date=date(2025, 1, 14)
        )
        assert handlers.next_periods(biweekly_preferences, current, count=0) == []
        assert handlers.next_periods(biweekly_preferences, None, count=0) == []

    def test_count_one_is_just_the_current_period(
        self, handlers: PeriodHandlers, biweekly_preferences: UserPreferences
    ) -> None:
        current = Period(
            id="period_2025-01-01", start_date=date(2025, 1, 1), end_date=date(2025, 1, 14)
        )
        periods = handlers.next_periods(biweekly_preferences, current, count=1)
        assert [p.id for p in periods] == ["period_2025-01-01"]

    def test_negative_count_rejected(
        self, handlers: PeriodHandlers, biweekly_preferences: UserPreferences
    ) -> None:
        with pytest.raises(ValidationError):
            handlers.next_periods(biweekly_preferences, None, count=-1)


class TestStartNewPeriod:
    def test_creates_envelopes_and_period(self, january_state: BudgetEngineState) -> None:
        period = january_state.current_period

        assert period.id == "period_2025-01-01"
        assert period.end_date == date(2025, 1, 14)
        assert [env.name for env in january_state.envelopes] == ["Food", "Fun"]
        assert january_state.envelopes[0].start_date == date(2025, 1, 1)
        assert january_state.get_shuffle_limit(
            january_state.envelopes[0].id
        ).max_amount == Decimal("80")

    def test_carries_previous_remaining_by_name(
        self, handlers: PeriodHandlers, january_state: BudgetEngineState
    ) -> None:
        state = handlers.start_new_period(
            january_state,
            date(2025, 1, 15),
            14,
            [
                EnvelopeTemplate(name="Food", allocation=Decimal("400")),
                EnvelopeTemplate(name="Fun", allocation=Decimal("200")),
                EnvelopeTemplate(name="Gifts", allocation=Decimal("50")),
            ],
        )

        remaining = {env.name: env.previous_remaining for env in state.envelopes}
        assert remaining == {
            "Food": Decimal("0"),
            "Fun": Decimal("80"),
            "Gifts": Decimal("0"),
        }
        assert all(env.spent == Decimal("0") for env in state.envelopes)
        assert len(state.periods) == 2

    def test_resets_session_and_limits_keeps_history(
        self, handlers: PeriodHandlers, january_state: BudgetEngineState
    ) -> None:
        january_state.shuffle_limits[0].current_shuffled = Decimal("30")
        january_state.session.state = SessionState.SIMULATING
        state = handlers.start_new_period(january_state, date(2025, 1, 15), 14, SUGGESTED_ENVELOPES)

        assert state.session.state == SessionState.IDLE
        assert state.session.current_envelope_id is None
        assert all(limit.current_shuffled == 0 for limit in state.shuffle_limits)
        assert {limit.envelope_id for limit in state.shuffle_limits} == {
            env.id for env in state.envelopes
        }
        assert state.periods[0].id == "period_2025-01-01"

    def test_bills_seed_initialises_bills_envelope(self, handlers: PeriodHandlers) -> None:
        seed = BillsSeed(
            initial_balance=Decimal("200"),
            bills=[BillSpec(name="Rent", amount=Decimal("1000"), due_day=1)],
            paycheck_frequency=PaycheckFrequency.MONTHLY,
        )
        state = handlers.start_new_period(
            BudgetEngineState(), date(2025, 1, 15), 14, SUGGESTED_ENVELOPES, bills_seed=seed
        )

        bills = state.bills_envelope
        assert bills.current_balance == Decimal("200")
        assert bills.paycheck_frequency == PaycheckFrequency.MONTHLY
        assert bills.bills[0].id == "bill_1"
        assert bills.target_amount == Decimal("1150.00")

    def test_explicit_end_date(self, handlers: PeriodHandlers) -> None:
        state = handlers.start_new_period(
            BudgetEngineState(),
            date(2025, 1, 20),
            26,
            SUGGESTED_ENVELOPES,
            end_date=date(2025, 2, 14),
        )
        assert state.current_period.end_date == date(2025, 2, 14)
        assert state.envelopes[0].period_length == 26

    def test_end_date_before_start_rejected(
        self, handlers: PeriodHandlers, january_state: BudgetEngineState
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            handlers.start_new_period(
                january_state,
                date(2025, 1, 15),
                14,
                SUGGESTED_ENVELOPES,
                end_date=date(2025, 1, 10),
            )
        assert exc_info.value.field == "end_date"
        assert january_state.current_period.id == "period_2025-01-01"
        assert len(january_state.periods) == 1

    def test_end_date_must_match_period_length(self, handlers: PeriodHandlers) -> None:
        with pytest.raises(ValidationError) as exc_info:
            handlers.start_new_period(
                BudgetEngineState(),
                date(2025, 1, 20),
                14,
                SUGGESTED_ENVELOPES,
                end_date=date(2025, 2, 14),
            )
        assert exc_info.value.field == "period_length"

    def test_zero_length_rejected(self, handlers: PeriodHandlers) -> None:
        with pytest.raises(ValidationError):
            handlers.start_new_period(
                BudgetEngineState(), date(2025, 1, 20), 0, SUGGESTED_ENVELOPES
            )

    def test_period_model_rejects_inverted_bounds(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            Period(id="period_x", start_date=date(2025, 1, 15), end_date=date(2025, 1, 14))

    def test_bills_seed_takes_users_frequency(self, handlers: PeriodHandlers) -> None:
        seed = BillsSeed(
            initial_balance=Decimal("2000"),
            bills=[BillSpec(name="Rent", amount=Decimal("1000"), due_day=1)],
        )
        state = handlers.start_new_period(
            BudgetEngineState(),
            date(2025, 1, 1),
            31,
            SUGGESTED_ENVELOPES,
            bills_seed=seed,
            paycheck_frequency=PaycheckFrequency.MONTHLY,
        )

        assert state.bills_envelope.paycheck_frequency == PaycheckFrequency.MONTHLY
        assert state.bills_envelope.required_per_paycheck == Decimal("1000.00")

    def test_existing_bills_envelope_follows_users_frequency(
        self, handlers: PeriodHandlers, january_state: BudgetEngineState
    ) -> None:
        funded = handlers.bills.add_money_to_bills(
            handlers.bills.add_bill(
                january_state, BillSpec(name="Rent", amount=Decimal("1000"), due_day=1)
            ),
            Decimal("2000"),
        )
        state = handlers.start_new_period(
            funded,
            date(2025, 1, 15),
            14,
            SUGGESTED_ENVELOPES,
            paycheck_frequency=PaycheckFrequency.MONTHLY,
        )

        assert state.bills_envelope.paycheck_frequency == PaycheckFrequency.MONTHLY
        assert state.bills_envelope.required_per_paycheck == Decimal("1000.00")
        assert funded.bills_envelope.paycheck_frequency == PaycheckFrequency.BIWEEKLY


class TestRollover:
    def test_should_rollover_uses_reference_hour(
        self, handlers: PeriodHandlers, january_state: BudgetEngineState
    ) -> None:
        assert not handlers.should_rollover(january_state, datetime(2025, 1, 15, 5, 59))
        assert handlers.should_rollover(january_state, datetime(2025, 1, 15, 6, 0))

    def test_no_period_never_rolls_over(self, handlers: PeriodHandlers) -> None:
        assert not handlers.should_rollover(BudgetEngineState(), datetime(2030, 1, 1))

    def test_not_due_is_noop(
        self,
        handlers: PeriodHandlers,
        january_state: BudgetEngineState,
        biweekly_preferences: UserPreferences,
    ) -> None:
        state, started = handlers.rollover(
            january_state,
            biweekly_preferences,
            lambda period_id: PeriodPlan(),
            datetime(2025, 1, 14, 23, 0),
        )
        assert started is False
        assert state is january_state

    def test_missing_plan_is_noop(
        self,
        handlers: PeriodHandlers,
        january_state: BudgetEngineState,
        biweekly_preferences: UserPreferences,
    ) -> None:
        before = period_rollovers_total.labels(outcome="no_plan")._value.get()
        state, started = handlers.rollover(
            january_state, biweekly_preferences, lambda period_id: None, datetime(2025, 1, 15, 7)
        )

        assert started is False
        assert state is january_state
        assert period_rollovers_total.labels(outcome="no_plan")._value.get() == before + 1

    def test_rollover_starts_planned_period_once(
        self,
        handlers: PeriodHandlers,
        january_state: BudgetEngineState,
        biweekly_preferences: UserPreferences,
    ) -> None:
        requested: list[str] = []
        plan = PeriodPlan(
            envelopes=[EnvelopeTemplate(name="Fun", allocation=Decimal("250"))],
            bills_allocation=Decimal("300"),
        )

        def lookup(period_id: str) -> PeriodPlan:
            requested.append(period_id)
            return plan

        now = datetime(2025, 1, 15, 7)
        state, started = handlers.rollover(january_state, biweekly_preferences, lookup, now)

        assert started is True
        assert requested == ["period_2025-01-15"]
        assert state.current_period.id == "period_2025-01-15"
        assert state.current_period.end_date == date(2025, 1, 28)
        assert state.envelopes[0].previous_remaining == Decimal("80")
        assert state.bills_envelope.current_balance == Decimal("300")

        again, started_again = handlers.rollover(state, biweekly_preferences, lookup, now)
        assert started_again is False
        assert again is state

    def test_rollover_applies_users_frequency_to_bills(
        self, handlers: PeriodHandlers, january_state: BudgetEngineState
    ) -> None:
        funded = handlers.bills.add_money_to_bills(
            handlers.bills.add_bill(
                january_state, BillSpec(name="Rent", amount=Decimal("1000"), due_day=1)
            ),
            Decimal("2000"),
        )
        monthly = UserPreferences(
            paycheck_frequency=PaycheckFrequency.MONTHLY, next_payday=date(2025, 1, 15)
        )

        state, started = handlers.rollover(
            funded, monthly, lambda period_id: PeriodPlan(), datetime(2025, 1, 15, 7)
        )

        assert started is True
        assert state.current_period.end_date == date(2025, 2, 14)
        assert state.bills_envelope.paycheck_frequency == PaycheckFrequency.MONTHLY
        assert state.bills_envelope.required_per_paycheck == Decimal("1000.00")

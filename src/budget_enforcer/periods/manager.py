"""
Period Manager - list upcoming periods, start new ones, roll over on schedule

A period starts from a set of envelope templates. Unspent money from the
outgoing envelopes is recorded as previous_remaining on the same-named new
envelope (informational; it is not added to the new allocation).

Rollover is driven from outside: a scheduler asks should_rollover(now) and
calls rollover(now, plan_lookup). Rollover only happens when the current
period has ended and a saved plan exists for the next one, so repeated
calls are harmless.
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta
from decimal import Decimal

from budget_enforcer.bills.funding import compute_bills_envelope, recompute
from budget_enforcer.bills.handlers import BillsHandlers
from budget_enforcer.bills.models import Bill, BillsSeed
from budget_enforcer.envelopes.models import Envelope, Period, ShuffleLimit
from budget_enforcer.kernel.errors import ValidationError
from budget_enforcer.kernel.ids import IdFactory, default_id_factory
from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.metrics import period_rollovers_total
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TimeProvider
from budget_enforcer.kernel.validation import build_validated
from budget_enforcer.periods.calendar import (
    is_period_ended,
    next_period_bounds,
    period_bounds_from_start,
    period_id_for,
)
from budget_enforcer.periods.models import (
    EnvelopeTemplate,
    PaycheckFrequency,
    PeriodDescriptor,
    PeriodPlan,
    UserPreferences,
)
from budget_enforcer.state import BudgetEngineState, SessionSlot

logger = get_logger(__name__)

PlanLookup = Callable[[str], PeriodPlan | None]


class PeriodHandlers:
    """Period lifecycle operations over BudgetEngineState"""

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: BudgetPolicy,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory
        self.bills = BillsHandlers(time_provider, policy, id_factory)

    def next_periods(
        self,
        preferences: UserPreferences,
        current_period: Period | None,
        is_planned: Callable[[str], bool] | None = None,
        count: int | None = None,
    ) -> list[PeriodDescriptor]:
        """
        The current period (if any) followed by upcoming ones

        Args:
            preferences: Pay schedule
            current_period: Period in progress, listed first as-is
            is_planned: Whether a saved plan exists for a period id
            count: Number of periods to list (policy default when None)

        Raises:
            ValidationError: Negative count
            ConfigurationError: Semimonthly schedule without pay days
        """
        if count is None:
            count = self.policy.upcoming_period_count
        if count < 0:
            raise ValidationError("count", "must not be negative")
        has_plan = is_planned or (lambda period_id: False)
        periods: list[PeriodDescriptor] = []

        if current_period is not None:
            periods.append(
                PeriodDescriptor(
                    id=current_period.id,
                    start_date=current_period.start_date,
                    end_date=current_period.end_date,
                    period_length=current_period.period_length,
                    is_planned=True,
                    is_current=True,
                )
            )
            bounds = next_period_bounds(preferences, current_period.end_date)
        else:
            bounds = period_bounds_from_start(preferences, preferences.next_payday)

        while len(periods) < count:
            period_id = period_id_for(bounds.start_date)
            periods.append(
                PeriodDescriptor(
                    id=period_id,
                    start_date=bounds.start_date,
                    end_date=bounds.end_date,
                    period_length=bounds.period_length,
                    is_planned=has_plan(period_id),
                )
            )
            bounds = next_period_bounds(preferences, bounds.end_date)

        return periods[:count]

    def start_new_period(
        self,
        state: BudgetEngineState,
        start_date: date,
        period_length: int,
        envelope_templates: list[EnvelopeTemplate],
        end_date: date | None = None,
        bills_seed: BillsSeed | None = None,
        period_id: str | None = None,
        paycheck_frequency: PaycheckFrequency | None = None,
    ) -> BudgetEngineState:
        """
        Replace the active envelopes with a fresh set and open a new period

        Purchase and shuffle history is kept; shuffle limits restart at the
        default share of each new allocation. A bills seed replaces the bills
        envelope, otherwise the existing one is carried over.

        paycheck_frequency is the user's pay cadence. It applies to the bills
        envelope unless the seed names its own.

        Raises:
            ValidationError: Invalid template, period length or end date
        """
        if period_length < 1:
            raise ValidationError("period_length", "must be at least 1 day")
        if end_date is None:
            end_date = start_date + timedelta(days=period_length - 1)
        elif end_date < start_date:
            raise ValidationError("end_date", "must not be before start_date")
        elif (end_date - start_date).days + 1 != period_length:
            raise ValidationError(
                "period_length", "does not match the span from start_date to end_date"
            )

        carried = {
            env.name: max(Decimal("0"), env.remaining()) for env in state.envelopes
        }

        envelopes = [
            build_validated(
                Envelope,
                {
                    "id": self.id_factory.generate("env"),
                    "name": template.name,
                    "allocation": template.allocation,
                    "spent": Decimal("0"),
                    "period_length": period_length,
                    "start_date": start_date,
                    "previous_remaining": carried.get(template.name, Decimal("0")),
                },
            )
            for template in envelope_templates
        ]

        period = build_validated(
            Period,
            {
                "id": period_id or period_id_for(start_date),
                "start_date": start_date,
                "end_date": end_date,
                "envelopes": [env.model_copy(deep=True) for env in envelopes],
            },
        )

        new_state = state.model_copy(deep=True)
        new_state.envelopes = envelopes
        new_state.periods.append(period)
        new_state.session = SessionSlot()
        new_state.shuffle_limits = [
            ShuffleLimit(
                envelope_id=env.id,
                max_amount=env.allocation * self.policy.default_shuffle_limit_ratio,
            )
            for env in envelopes
        ]

        today = self.time_provider.now().date()
        if bills_seed is not None:
            frequency = (
                bills_seed.paycheck_frequency
                or paycheck_frequency
                or (state.bills_envelope.paycheck_frequency if state.bills_envelope else None)
                or PaycheckFrequency.BIWEEKLY
            )
            bills = [
                Bill(**spec.model_dump(), id=self.id_factory.generate("bill"))
                for spec in bills_seed.bills
            ]
            new_state.bills_envelope = compute_bills_envelope(
                bills, bills_seed.initial_balance, frequency, today, self.policy
            )
        elif new_state.bills_envelope is not None:
            if paycheck_frequency is not None:
                new_state.bills_envelope.paycheck_frequency = paycheck_frequency
            new_state.bills_envelope = recompute(new_state.bills_envelope, today, self.policy)

        logger.info(
            "Period started",
            period_id=period.id,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            envelope_count=len(envelopes),
        )
        return new_state

    def should_rollover(self, state: BudgetEngineState, now: datetime | None = None) -> bool:
        """True when the current period has ended"""
        period = state.current_period
        if period is None:
            return False
        return is_period_ended(
            period.start_date,
            period.period_length,
            now or self.time_provider.now(),
            self.policy.rollover_reference_hour,
        )

    def rollover(
        self,
        state: BudgetEngineState,
        preferences: UserPreferences,
        plan_lookup: PlanLookup,
        now: datetime | None = None,
    ) -> tuple[BudgetEngineState, bool]:
        """
        Start the next period from its saved plan when the current one ended

        The plan's bills allocation is deposited into the bills envelope.

        Returns:
            (new_state, True) when a period was started, else (state, False)
        """
        if not self.should_rollover(state, now):
            period_rollovers_total.labels(outcome="not_due").inc()
            return state, False

        bounds = next_period_bounds(preferences, state.current_period.end_date)
        period_id = period_id_for(bounds.start_date)
        plan = plan_lookup(period_id)
        if plan is None:
            period_rollovers_total.labels(outcome="no_plan").inc()
            logger.warning("No saved plan for next period", period_id=period_id)
            return state, False

        new_state = self.start_new_period(
            state,
            start_date=bounds.start_date,
            period_length=bounds.period_length,
            envelope_templates=plan.envelopes,
            end_date=bounds.end_date,
            period_id=period_id,
            paycheck_frequency=preferences.paycheck_frequency,
        )
        if plan.bills_allocation > 0:
            new_state = self.bills.add_money_to_bills(
                new_state, plan.bills_allocation, preferences.paycheck_frequency
            )

        period_rollovers_total.labels(outcome="started").inc()
        return new_state, True

"""
Tests for the Status Calculator - pacing classification and display lookup
"""

from datetime import datetime
from decimal import Decimal

import pytest

from budget_enforcer.envelopes.models import Envelope, Purchase, StatusType
from budget_enforcer.envelopes.status import (
    STATUS_DISPLAY,
    calculate_status,
    classify_spend,
    envelope_status,
    format_currency,
    format_days_worth,
)
from tests.helpers import make_envelope

NOW = datetime(2025, 1, 15, 12, 0)


def purchase(amount: str, envelope_id: str = "env_food") -> Purchase:
    return Purchase(id="p1", envelope_id=envelope_id, amount=Decimal(amount), date=NOW)


class TestCalculateStatus:
    def test_under_pace_is_super_safe(self, food_envelope: Envelope) -> None:
        result = calculate_status(food_envelope, NOW)

        assert result.current_day == 5
        assert result.daily_amount == Decimal("30")
        assert result.expected_spend == Decimal("150")
        assert result.status == StatusType.SUPER_SAFE
        assert result.remaining_amount == Decimal("330")
        assert result.days_worth_of_spending == Decimal("3")

    def test_hypothetical_purchase_pushes_into_danger(self, food_envelope: Envelope) -> None:
        result = calculate_status(food_envelope, NOW, purchase=purchase("150"))

        assert result.status == StatusType.DANGER
        assert result.days_worth_after_purchase == Decimal("8")
        assert result.purchase.amount == Decimal("150")

    def test_calculation_does_not_touch_envelope(self, food_envelope: Envelope) -> None:
        before = food_envelope.model_dump()
        calculate_status(food_envelope, NOW, purchase=purchase("400"))
        assert food_envelope.model_dump() == before

    def test_already_empty_envelope(self) -> None:
        envelope = make_envelope("env_food", "Food", "100", "100")
        result = calculate_status(envelope, NOW, purchase=purchase("20"))
        assert result.status == StatusType.ENVELOPE_EMPTY

    def test_purchase_breaking_budget(self) -> None:
        envelope = make_envelope("env_food", "Food", "100", "80")
        result = calculate_status(envelope, NOW, purchase=purchase("30"))

        assert result.status == StatusType.BUDGET_BREAKER
        assert result.shortfall() == Decimal("10")
        assert result.status.needs_shuffle()

    @pytest.mark.parametrize(
        "spent,expected",
        [
            ("30", StatusType.SUPER_SAFE),
            ("40", StatusType.SAFE),
            ("50", StatusType.SAFE),
            ("55", StatusType.OFF_TRACK),
            ("60", StatusType.OFF_TRACK),
            ("61", StatusType.DANGER),
        ],
    )
    def test_pacing_thresholds(self, spent: str, expected: StatusType) -> None:
        """140 over 14 days: expected 50 on day 5, danger above 60"""
        envelope = make_envelope("env_x", "X", "140", spent)
        assert calculate_status(envelope, NOW).status == expected

    def test_zero_allocation_has_no_days_worth(self) -> None:
        envelope = make_envelope("env_x", "X", "0")
        result = calculate_status(envelope, NOW)

        assert result.days_worth_of_spending == Decimal("0")
        assert result.status == StatusType.ENVELOPE_EMPTY

    def test_display_comes_from_table(self, food_envelope: Envelope) -> None:
        result = calculate_status(food_envelope, NOW)
        assert result.display == STATUS_DISPLAY[StatusType.SUPER_SAFE]
        assert result.display.label == "Super Safe"

    def test_envelope_status_shortcut(self, food_envelope: Envelope) -> None:
        assert envelope_status(food_envelope, NOW) == StatusType.SUPER_SAFE


class TestClassifySpend:
    def test_severity_never_decreases_as_spend_grows(self) -> None:
        allocation = Decimal("300")
        expected = Decimal("100")
        severities = [
            classify_spend(Decimal(spend), Decimal("0"), allocation, expected).severity()
            for spend in range(0, 320, 5)
        ]
        assert severities == sorted(severities)

    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("1", StatusType.SUPER_SAFE),
            ("30", StatusType.SAFE),
            ("60", StatusType.SAFE),
            ("61", StatusType.OFF_TRACK),
            ("90", StatusType.OFF_TRACK),
            ("91", StatusType.DANGER),
            ("329.99", StatusType.DANGER),
            ("330", StatusType.BUDGET_BREAKER),
            ("500", StatusType.BUDGET_BREAKER),
        ],
    )
    def test_purchase_amount_boundaries(
        self, food_envelope: Envelope, amount: str, expected: StatusType
    ) -> None:
        """90 spent of 420: expected 150 on day 5, safe from 120, danger above 180"""
        assert calculate_status(food_envelope, NOW, purchase=purchase(amount)).status == expected

    def test_severity_never_decreases_as_purchase_grows(self, food_envelope: Envelope) -> None:
        amounts = ["1", "29.99", "30", "60", "60.01", "90", "90.01", "329.99", "330", "1000"]
        severities = [
            calculate_status(food_envelope, NOW, purchase=purchase(a)).status.severity()
            for a in amounts
        ]
        assert severities == sorted(severities)
        assert severities[0] == StatusType.SUPER_SAFE.severity()
        assert severities[-1] == StatusType.BUDGET_BREAKER.severity()

    @pytest.mark.parametrize(
        "spent,expected",
        [
            ("0", StatusType.SUPER_SAFE),
            ("150", StatusType.OFF_TRACK),
            ("175", StatusType.DANGER),
            ("410", StatusType.BUDGET_BREAKER),
            ("419.99", StatusType.BUDGET_BREAKER),
            ("420", StatusType.ENVELOPE_EMPTY),
            ("450", StatusType.ENVELOPE_EMPTY),
        ],
    )
    def test_committed_spend_moves_breaker_to_empty(
        self, food_envelope: Envelope, spent: str, expected: StatusType
    ) -> None:
        envelope = food_envelope.model_copy(update={"spent": Decimal(spent)})
        result = calculate_status(envelope, NOW, purchase=purchase("10"))
        assert result.status == expected

    def test_every_status_has_display(self) -> None:
        assert set(STATUS_DISPLAY) == set(StatusType)


class TestFormatting:
    def test_format_currency(self) -> None:
        assert format_currency(Decimal("1234.5")) == "$1,234.50"
        assert format_currency(Decimal("0")) == "$0.00"
        assert format_currency(Decimal("-12.345")) == "-$12.35"

    def test_format_days_worth(self) -> None:
        assert format_days_worth(Decimal("3")) == "3.0 days"
        assert format_days_worth(Decimal("2.5")) == "2.5 days"

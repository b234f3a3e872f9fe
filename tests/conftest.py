"""
Pytest configuration and shared fixtures

The clock is pinned to Wednesday 2025-01-15 12:00 (local, naive). Sample
envelopes start on 2025-01-11, so "today" is day 5 of a 14-day period.
"""

import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator

import pytest

from budget_enforcer.envelopes.models import Envelope
from budget_enforcer.kernel.ids import SequentialIdFactory
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TestTimeProvider
from budget_enforcer.periods.models import PaycheckFrequency, UserPreferences
from budget_enforcer.state import BudgetEngineState
from tests.helpers import make_envelope, make_state


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def test_time() -> TestTimeProvider:
    """Provide a controllable clock fixed at 2025-01-15 12:00"""
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0))


@pytest.fixture
def policy() -> BudgetPolicy:
    return BudgetPolicy()


@pytest.fixture
def ids() -> SequentialIdFactory:
    return SequentialIdFactory()


@pytest.fixture
def biweekly_preferences() -> UserPreferences:
    return UserPreferences(
        paycheck_frequency=PaycheckFrequency.BIWEEKLY,
        next_payday=date(2025, 1, 25),
        paycheck_amount=Decimal("2000"),
    )


@pytest.fixture
def food_envelope() -> Envelope:
    """420 over 14 days (30/day) with 90 spent: super-safe on day 5"""
    return make_envelope("env_food", "Food", "420", "90")


@pytest.fixture
def budget_state(food_envelope: Envelope) -> BudgetEngineState:
    return make_state(
        [
            food_envelope,
            make_envelope("env_fun", "Entertainment", "200", "170"),
            make_envelope("env_gas", "Transportation", "150", "130"),
        ]
    )

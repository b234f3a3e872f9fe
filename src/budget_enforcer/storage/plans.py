"""
Plan Store - saved envelope plans for upcoming periods

Plans are keyed by user and period id. Each user may also keep one default
template, used when a period has no plan of its own.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.retry import retry_on_sqlite_lock
from budget_enforcer.periods.models import PeriodPlan

logger = get_logger(__name__)


class PlanStore(Protocol):
    """Saved-plan collaborator"""

    def get_plan(self, user_id: str, period_id: str) -> PeriodPlan | None:
        ...

    def save_plan(self, user_id: str, period_id: str, plan: PeriodPlan) -> None:
        ...

    def delete_plan(self, user_id: str, period_id: str) -> None:
        ...

    def get_default_template(self, user_id: str) -> PeriodPlan | None:
        ...

    def save_default_template(self, user_id: str, plan: PeriodPlan) -> None:
        ...


def lookup_plan(store: PlanStore, user_id: str, period_id: str) -> PeriodPlan | None:
    """The period's own plan, falling back to the user's default template"""
    plan = store.get_plan(user_id, period_id)
    if plan is not None:
        return plan
    return store.get_default_template(user_id)


class InMemoryPlanStore:
    """Dict-backed plan store"""

    def __init__(self) -> None:
        self._plans: dict[tuple[str, str], str] = {}
        self._templates: dict[str, str] = {}

    def get_plan(self, user_id: str, period_id: str) -> PeriodPlan | None:
        document = self._plans.get((user_id, period_id))
        return PeriodPlan.model_validate_json(document) if document else None

    def save_plan(self, user_id: str, period_id: str, plan: PeriodPlan) -> None:
        self._plans[(user_id, period_id)] = plan.model_dump_json()

    def delete_plan(self, user_id: str, period_id: str) -> None:
        self._plans.pop((user_id, period_id), None)

    def get_default_template(self, user_id: str) -> PeriodPlan | None:
        document = self._templates.get(user_id)
        return PeriodPlan.model_validate_json(document) if document else None

    def save_default_template(self, user_id: str, plan: PeriodPlan) -> None:
        self._templates[user_id] = plan.model_dump_json()


class SQLitePlanStore:
    """
    SQLite-based plan store

    Schema:
    - period_plans table: (user_id, period_id) -> plan JSON
    - default_templates table: user_id -> plan JSON
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS period_plans (
                    user_id TEXT NOT NULL,
                    period_id TEXT NOT NULL,
                    plan_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, period_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS default_templates (
                    user_id TEXT PRIMARY KEY,
                    plan_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def get_plan(self, user_id: str, period_id: str) -> PeriodPlan | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT plan_json FROM period_plans WHERE user_id = ? AND period_id = ?",
                (user_id, period_id),
            ).fetchone()
        return PeriodPlan.model_validate_json(row["plan_json"]) if row else None

    @retry_on_sqlite_lock()
    def save_plan(self, user_id: str, period_id: str, plan: PeriodPlan) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO period_plans (user_id, period_id, plan_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, period_id) DO UPDATE SET
                    plan_json = excluded.plan_json,
                    updated_at = excluded.updated_at
            """,
                (
                    user_id,
                    period_id,
                    plan.model_dump_json(),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
        logger.debug("Period plan saved", period_id=period_id)

    @retry_on_sqlite_lock()
    def delete_plan(self, user_id: str, period_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM period_plans WHERE user_id = ? AND period_id = ?",
                (user_id, period_id),
            )
            conn.commit()

    @retry_on_sqlite_lock()
    def get_default_template(self, user_id: str) -> PeriodPlan | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT plan_json FROM default_templates WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return PeriodPlan.model_validate_json(row["plan_json"]) if row else None

    @retry_on_sqlite_lock()
    def save_default_template(self, user_id: str, plan: PeriodPlan) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO default_templates (user_id, plan_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    plan_json = excluded.plan_json,
                    updated_at = excluded.updated_at
            """,
                (user_id, plan.model_dump_json(), datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()

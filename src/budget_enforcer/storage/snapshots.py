"""
Snapshot Store - load and save a user's budget snapshot

A snapshot is stored as one JSON document per user. Dates are written as
ISO-8601 strings by pydantic and parsed back into date/datetime values when
the snapshot is validated on load.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.retry import retry_on_sqlite_lock
from budget_enforcer.state import Snapshot

logger = get_logger(__name__)


class SnapshotStore(Protocol):
    """Persistence collaborator for engine snapshots"""

    def load(self, user_id: str) -> Snapshot | None:
        ...

    def save(self, user_id: str, snapshot: Snapshot) -> None:
        ...


class InMemorySnapshotStore:
    """
    Dict-backed store for tests and previews

    Snapshots are kept as JSON text so a load goes through the same parsing
    as the SQLite store.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def load(self, user_id: str) -> Snapshot | None:
        document = self._documents.get(user_id)
        if document is None:
            return None
        return Snapshot.model_validate_json(document)

    def save(self, user_id: str, snapshot: Snapshot) -> None:
        self._documents[user_id] = snapshot.model_dump_json()


class SQLiteSnapshotStore:
    """
    SQLite-based snapshot store

    Schema:
    - snapshots table: user id, snapshot version, JSON document, timestamp
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Args:
            db_path: Path to SQLite database file (may be shared with a plan store)
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    user_id TEXT PRIMARY KEY,
                    version INTEGER NOT NULL,
                    snapshot_json TEXT NOT NULL,
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
    def load(self, user_id: str) -> Snapshot | None:
        """
        Load the user's snapshot

        Returns:
            Snapshot if one was saved, None otherwise
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT snapshot_json FROM snapshots WHERE user_id = ?",
                (user_id,),
            ).fetchone()

        if not row:
            return None
        return Snapshot.model_validate_json(row["snapshot_json"])

    @retry_on_sqlite_lock()
    def save(self, user_id: str, snapshot: Snapshot) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO snapshots (user_id, version, snapshot_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    version = excluded.version,
                    snapshot_json = excluded.snapshot_json,
                    updated_at = excluded.updated_at
            """,
                (
                    user_id,
                    snapshot.version,
                    snapshot.model_dump_json(),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
        logger.debug("Snapshot saved", user_id=user_id)

    @retry_on_sqlite_lock()
    def delete(self, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM snapshots WHERE user_id = ?", (user_id,))
            conn.commit()

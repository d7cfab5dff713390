"""
History Store: append-only record of agent outcomes per subject.

Behavioral Contract:
- Append-only. No outcome is ever modified or deleted.
- Outcomes are returned in insertion order.
- Readers always see a consistent prefix of what was appended.
"""

import json
import sqlite3
import threading
from typing import List

from netpilot.models.agent import AgentOutcome


class HistoryStore:
    """
    Outcome history keyed by subject.
    Default is an in-memory SQLite database; pass a file path to keep it.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS outcomes (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    subject_id TEXT NOT NULL,
                    agent_id TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    executed_at TEXT NOT NULL,
                    outcome_json TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_outcomes_subject ON outcomes(subject_id, seq)
            """)
            self._conn.commit()

    def append(self, subject_id: str, outcomes: List[AgentOutcome]) -> None:
        """Append a batch atomically."""
        if not outcomes:
            return
        rows = [
            (
                subject_id,
                outcome.agent_id,
                int(outcome.success),
                outcome.executed_at.isoformat(),
                outcome.model_dump_json(),
            )
            for outcome in outcomes
        ]
        with self._lock:
            with self._conn:
                self._conn.executemany(
                    """
                    INSERT INTO outcomes (subject_id, agent_id, success, executed_at, outcome_json)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    rows,
                )

    def get_history(self, subject_id: str) -> List[AgentOutcome]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT outcome_json FROM outcomes WHERE subject_id = ? ORDER BY seq",
                (subject_id,),
            ).fetchall()
        return [AgentOutcome.model_validate(json.loads(row["outcome_json"])) for row in rows]

    def get_by_agent(self, subject_id: str, agent_id: str) -> List[AgentOutcome]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT outcome_json FROM outcomes
                WHERE subject_id = ? AND agent_id = ? ORDER BY seq
                """,
                (subject_id, agent_id),
            ).fetchall()
        return [AgentOutcome.model_validate(json.loads(row["outcome_json"])) for row in rows]

    def count(self, subject_id: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS n FROM outcomes WHERE subject_id = ?",
                (subject_id,),
            ).fetchone()
        return row["n"]

    def subjects(self) -> List[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT DISTINCT subject_id FROM outcomes ORDER BY subject_id"
            ).fetchall()
        return [row["subject_id"] for row in rows]

    def close(self) -> None:
        self._conn.close()

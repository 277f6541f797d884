"""SQLite-backed persistent state store implementation."""

import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .base import StateTransition


class SqliteStore:
    """Project-scoped SQLite state store with transition audit logging.

    One database file can hold many projects; every row is keyed by the
    project's real path, so state survives restarts and never leaks between
    projects.
    """

    def __init__(self, db_path: str, project_id: str) -> None:
        """Initialize with database path and project scope.

        Args:
            db_path: Path to SQLite database file (``:memory:`` allowed)
            project_id: Scope for all reads and writes, usually the
                project's real path
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db = sqlite3.connect(db_path)
        self.db.row_factory = sqlite3.Row
        self.project_id = project_id
        self._init_tables()

    @classmethod
    def for_project(cls, db_path: str, project_dir: str) -> "SqliteStore":
        """Open a store scoped to the real path of ``project_dir``."""
        return cls(db_path, os.path.realpath(project_dir))

    def _init_tables(self) -> None:
        """Initialize project_state and project_transitions tables."""
        create_state_table = """
            CREATE TABLE IF NOT EXISTS project_state (
                project_id TEXT NOT NULL,
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (project_id, namespace, key)
            )
        """

        create_transitions_table = """
            CREATE TABLE IF NOT EXISTS project_transitions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_id TEXT NOT NULL,
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                old_value TEXT,
                new_value TEXT,
                trigger TEXT,
                timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """

        create_transitions_index = """
            CREATE INDEX IF NOT EXISTS idx_project_transitions_time
            ON project_transitions(project_id, timestamp)
        """

        self.db.execute(create_state_table)
        self.db.execute(create_transitions_table)
        self.db.execute(create_transitions_index)
        self.db.commit()

    def get(self, namespace: str, key: str) -> Optional[str]:
        """Get value for key from current state."""
        cursor = self.db.execute(
            "SELECT value FROM project_state WHERE project_id = ? AND namespace = ? AND key = ?",
            (self.project_id, namespace, key)
        )
        row = cursor.fetchone()

        if row is None:
            return None
        return row[0]

    def put(self, namespace: str, key: str, value: str, trigger: Optional[str] = None) -> None:
        """Write a value and its audit record in one transaction."""
        now = datetime.now().isoformat()

        with self.db:
            old_value = self.get(namespace, key)
            self.db.execute(
                """INSERT OR REPLACE INTO project_state (project_id, namespace, key, value, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (self.project_id, namespace, key, value, now)
            )
            self.db.execute(
                """INSERT INTO project_transitions (project_id, namespace, key, old_value, new_value, trigger, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (self.project_id, namespace, key, old_value, value, trigger, now)
            )

    def get_transitions(self, key: Optional[str] = None, limit: int = 100) -> List[StateTransition]:
        """Get audit log of state transitions, newest first."""
        if key is None:
            cursor = self.db.execute(
                """SELECT namespace, key, old_value, new_value, trigger, timestamp
                   FROM project_transitions
                   WHERE project_id = ?
                   ORDER BY id DESC LIMIT ?""",
                (self.project_id, limit)
            )
        else:
            cursor = self.db.execute(
                """SELECT namespace, key, old_value, new_value, trigger, timestamp
                   FROM project_transitions
                   WHERE project_id = ? AND key = ?
                   ORDER BY id DESC LIMIT ?""",
                (self.project_id, key, limit)
            )

        transitions = []
        for row in cursor:
            namespace, key_name, old_value, new_value, trigger, timestamp = row
            transitions.append(StateTransition(
                namespace=namespace,
                key=key_name,
                old_value=old_value,
                new_value=new_value,
                trigger=trigger,
                timestamp=datetime.fromisoformat(timestamp),
            ))
        return transitions

    def close(self) -> None:
        """Close the database connection."""
        if self.db:
            self.db.close()
            self.db = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

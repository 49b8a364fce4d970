"""SQLite task journal with WAL mode."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from realty_coordinator.config import DEFAULT_DATA_DIR

if TYPE_CHECKING:
    from realty_coordinator.engine.tasks import TaskRecord
    from realty_coordinator.engine.workflows import WorkflowDescriptor


class Database:
    """SQLite storage layer with WAL mode for the coordinator."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or DEFAULT_DATA_DIR
        self.db_path = self.data_dir / "data" / "realty.db"

    def _ensure_dirs(self) -> None:
        (self.data_dir / "data").mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with WAL mode."""
        self._ensure_dirs()
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_tables(self) -> None:
        """Create all tables if they don't exist."""
        with self.connect() as conn:
            conn.executescript(_SCHEMA)
            columns = {row["name"] for row in conn.execute("PRAGMA table_info(tasks)")}
            for name, ddl in _TASK_COLUMNS_V2:
                if name not in columns:
                    conn.execute(f"ALTER TABLE tasks ADD COLUMN {name} {ddl}")
            conn.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (2)")

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Execute a query and return results."""
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchall()


class TaskJournal:
    """
    Durable log of finalized tasks and registered workflows.

    The coordinator's in-memory store stays authoritative while it runs; the
    journal is what survives between CLI invocations.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self.db.ensure_tables()

    def record_task(self, record: TaskRecord) -> None:
        """Upsert one task record."""
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks (
                    task_id, type, input, strategy, agent_id, context, status,
                    created_at, completed_at, error, result
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(task_id) DO UPDATE SET
                    status = excluded.status,
                    completed_at = excluded.completed_at,
                    error = excluded.error,
                    result = excluded.result
                """,
                (
                    record.id,
                    record.type,
                    record.input,
                    record.strategy,
                    record.agent_id,
                    json.dumps(record.context.to_dict(), default=str) if record.context else None,
                    record.status.value,
                    record.created_at.isoformat(),
                    record.completed_at.isoformat() if record.completed_at else None,
                    record.error,
                    json.dumps(record.result.to_dict(), default=str) if record.result else None,
                ),
            )

    def record_workflow(self, descriptor: WorkflowDescriptor) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO workflows (
                    workflow_id, name, trigger_name, agents, schedule, steps, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    descriptor.workflow_id,
                    descriptor.name,
                    descriptor.trigger,
                    json.dumps(descriptor.agents),
                    descriptor.schedule,
                    json.dumps(descriptor.steps),
                    descriptor.created_at.isoformat(),
                ),
            )

    def recent_tasks(self, limit: int = 50) -> list[dict[str, Any]]:
        """Newest first."""
        rows = self.db.execute(
            "SELECT * FROM tasks ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        )
        return [self._row_to_task(row) for row in rows]

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        rows = self.db.execute("SELECT * FROM tasks WHERE task_id = ?", (task_id,))
        if rows:
            return self._row_to_task(rows[0])
        return None

    def workflows(self) -> list[dict[str, Any]]:
        rows = self.db.execute("SELECT * FROM workflows ORDER BY created_at")
        return [
            {
                "workflow_id": row["workflow_id"],
                "name": row["name"],
                "trigger": row["trigger_name"],
                "agents": json.loads(row["agents"]),
                "schedule": row["schedule"],
                "steps": json.loads(row["steps"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]

    def get_stats(self) -> dict[str, Any]:
        rows = self.db.execute("SELECT status, COUNT(*) AS n FROM tasks GROUP BY status")
        by_status = {row["status"]: row["n"] for row in rows}
        return {"total_tasks": sum(by_status.values()), "by_status": by_status}

    def _row_to_task(self, row: Any) -> dict[str, Any]:
        return {
            "id": row["task_id"],
            "type": row["type"],
            "input": row["input"],
            "strategy": row["strategy"],
            "agent_id": row["agent_id"],
            "context": json.loads(row["context"]) if row["context"] else None,
            "status": row["status"],
            "created_at": row["created_at"],
            "completed_at": row["completed_at"],
            "error": row["error"],
            "result": json.loads(row["result"]) if row["result"] else None,
        }


# Added in schema version 2; older journals are migrated in place.
_TASK_COLUMNS_V2 = (
    ("agent_id", "TEXT NOT NULL DEFAULT 'coordinator'"),
    ("context", "TEXT"),
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id TEXT UNIQUE NOT NULL,
    type TEXT NOT NULL,
    input TEXT NOT NULL,
    strategy TEXT NOT NULL,
    agent_id TEXT NOT NULL DEFAULT 'coordinator',
    context TEXT,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    completed_at TEXT,
    error TEXT,
    result TEXT
);

CREATE TABLE IF NOT EXISTS workflows (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workflow_id TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    trigger_name TEXT NOT NULL,
    agents TEXT NOT NULL DEFAULT '[]',
    schedule TEXT,
    steps TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);

INSERT OR IGNORE INTO schema_version (version) VALUES (1);
"""

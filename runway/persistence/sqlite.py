"""SQLite implementation of the execution repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import ExecutionInstance, StepRecord
from .repository import ExecutionRepository


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteExecutionRepository(ExecutionRepository):
    """Persist execution state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                execution_id TEXT PRIMARY KEY,
                workflow_name TEXT NOT NULL,
                event_name TEXT NOT NULL,
                payload TEXT,
                status TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                error TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                attempt INTEGER NOT NULL DEFAULT 1,
                started_at TEXT,
                completed_at TEXT,
                status TEXT,
                output TEXT,
                UNIQUE (execution_id, step_name, attempt)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _row_to_execution(row: sqlite3.Row, steps: list[StepRecord]) -> ExecutionInstance:
        return ExecutionInstance(
            execution_id=row["execution_id"],
            workflow_name=row["workflow_name"],
            event_name=row["event_name"],
            payload=json.loads(row["payload"]) if row["payload"] else {},
            status=row["status"],
            attempts=row["attempts"],
            error=row["error"],
            steps=steps,
        )

    # ------------------------------------------------------------------
    # Repository API
    async def create_execution(
        self,
        execution_id: str,
        workflow_name: str,
        event_name: str,
        payload: dict | None = None,
    ) -> bool:
        inserted = await asyncio.to_thread(
            self._execute,
            """
            INSERT OR IGNORE INTO executions
                (execution_id, workflow_name, event_name, payload, status)
            VALUES (?, ?, ?, ?, ?)
            """,
            execution_id,
            workflow_name,
            event_name,
            json.dumps(payload or {}),
            "running",
        )
        return inserted == 1

    async def mark_attempt_started(self, execution_id: str, attempt: int) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET attempts = MAX(attempts, ?) WHERE execution_id = ?",
            attempt,
            execution_id,
        )

    async def mark_step_started(
        self, execution_id: str, step_name: str, attempt: int = 1
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR IGNORE INTO step_history (execution_id, step_name, attempt, started_at)
            VALUES (?, ?, ?, ?)
            """,
            execution_id,
            step_name,
            attempt,
            _now(),
        )

    async def mark_step_completed(
        self,
        execution_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
        attempt: int = 1,
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE step_history
            SET completed_at = ?, status = ?, output = ?
            WHERE execution_id = ? AND step_name = ? AND attempt = ?
            """,
            _now(),
            status,
            json.dumps(output or {}),
            execution_id,
            step_name,
            attempt,
        )

    async def get_step_output(self, execution_id: str, step_name: str) -> dict | None:
        row = await asyncio.to_thread(
            self._fetchone,
            """
            SELECT output FROM step_history
            WHERE execution_id = ? AND step_name = ? AND status = 'completed'
            ORDER BY attempt DESC LIMIT 1
            """,
            execution_id,
            step_name,
        )
        if not row or not row["output"]:
            return None
        return json.loads(row["output"])

    async def mark_execution_completed(
        self, execution_id: str, status: str, error: str | None = None
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET status = ?, error = ? WHERE execution_id = ?",
            status,
            error,
            execution_id,
        )

    async def get_execution(self, execution_id: str) -> ExecutionInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT * FROM executions WHERE execution_id = ?",
            execution_id,
        )
        if not row:
            return None
        steps_rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT * FROM step_history WHERE execution_id = ? ORDER BY id",
            execution_id,
        )
        steps = [
            StepRecord(
                id=r["id"],
                execution_id=r["execution_id"],
                step_name=r["step_name"],
                attempt=r["attempt"],
                started_at=datetime.fromisoformat(r["started_at"]) if r["started_at"] else None,
                completed_at=datetime.fromisoformat(r["completed_at"]) if r["completed_at"] else None,
                status=r["status"],
                output=json.loads(r["output"]) if r["output"] else None,
            )
            for r in steps_rows
        ]
        return self._row_to_execution(row, steps)

    async def list_executions(self) -> list[ExecutionInstance]:
        rows = await asyncio.to_thread(self._fetchall, "SELECT * FROM executions")
        return [self._row_to_execution(row, []) for row in rows]

"""PostgreSQL implementation of the execution repository."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import asyncpg

from .models import ExecutionInstance, StepRecord
from .repository import ExecutionRepository


class PostgresExecutionRepository(ExecutionRepository):
    """Persist execution state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                execution_id TEXT PRIMARY KEY,
                workflow_name TEXT NOT NULL,
                event_name TEXT NOT NULL,
                payload JSONB,
                status TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                error TEXT
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id SERIAL PRIMARY KEY,
                execution_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                attempt INTEGER NOT NULL DEFAULT 1,
                started_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ,
                status TEXT,
                output JSONB,
                UNIQUE (execution_id, step_name, attempt)
            )
            """
        )

    @staticmethod
    def _loads(value):
        if value is None:
            return None
        return json.loads(value) if isinstance(value, str) else value

    # ------------------------------------------------------------------
    async def create_execution(
        self,
        execution_id: str,
        workflow_name: str,
        event_name: str,
        payload: dict | None = None,
    ) -> bool:
        conn = await self._connect()
        try:
            result = await conn.execute(
                """
                INSERT INTO executions (execution_id, workflow_name, event_name, payload, status)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (execution_id) DO NOTHING
                """,
                execution_id,
                workflow_name,
                event_name,
                json.dumps(payload or {}),
                "running",
            )
        finally:
            await conn.close()
        return result.endswith(" 1")

    async def mark_attempt_started(self, execution_id: str, attempt: int) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "UPDATE executions SET attempts = GREATEST(attempts, $1) WHERE execution_id = $2",
                attempt,
                execution_id,
            )
        finally:
            await conn.close()

    async def mark_step_started(
        self, execution_id: str, step_name: str, attempt: int = 1
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO step_history (execution_id, step_name, attempt, started_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (execution_id, step_name, attempt) DO NOTHING
                """,
                execution_id,
                step_name,
                attempt,
                datetime.now(timezone.utc),
            )
        finally:
            await conn.close()

    async def mark_step_completed(
        self,
        execution_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
        attempt: int = 1,
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                UPDATE step_history
                SET completed_at = $1, status = $2, output = $3
                WHERE execution_id = $4 AND step_name = $5 AND attempt = $6
                """,
                datetime.now(timezone.utc),
                status,
                json.dumps(output or {}),
                execution_id,
                step_name,
                attempt,
            )
        finally:
            await conn.close()

    async def get_step_output(self, execution_id: str, step_name: str) -> dict | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                """
                SELECT output FROM step_history
                WHERE execution_id = $1 AND step_name = $2 AND status = 'completed'
                ORDER BY attempt DESC LIMIT 1
                """,
                execution_id,
                step_name,
            )
        finally:
            await conn.close()
        return self._loads(row["output"]) if row else None

    async def mark_execution_completed(
        self, execution_id: str, status: str, error: str | None = None
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "UPDATE executions SET status = $1, error = $2 WHERE execution_id = $3",
                status,
                error,
                execution_id,
            )
        finally:
            await conn.close()

    async def get_execution(self, execution_id: str) -> ExecutionInstance | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT * FROM executions WHERE execution_id = $1",
                execution_id,
            )
            if not row:
                return None
            steps_rows = await conn.fetch(
                "SELECT * FROM step_history WHERE execution_id = $1 ORDER BY id",
                execution_id,
            )
        finally:
            await conn.close()
        steps = [
            StepRecord(
                id=r["id"],
                execution_id=r["execution_id"],
                step_name=r["step_name"],
                attempt=r["attempt"],
                started_at=r["started_at"],
                completed_at=r["completed_at"],
                status=r["status"],
                output=self._loads(r["output"]),
            )
            for r in steps_rows
        ]
        return ExecutionInstance(
            execution_id=row["execution_id"],
            workflow_name=row["workflow_name"],
            event_name=row["event_name"],
            payload=self._loads(row["payload"]) or {},
            status=row["status"],
            attempts=row["attempts"],
            error=row["error"],
            steps=steps,
        )

    async def list_executions(self) -> list[ExecutionInstance]:
        conn = await self._connect()
        try:
            rows = await conn.fetch("SELECT * FROM executions")
        finally:
            await conn.close()
        return [
            ExecutionInstance(
                execution_id=r["execution_id"],
                workflow_name=r["workflow_name"],
                event_name=r["event_name"],
                payload=self._loads(r["payload"]) or {},
                status=r["status"],
                attempts=r["attempts"],
                error=r["error"],
            )
            for r in rows
        ]

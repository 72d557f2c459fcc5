"""In-memory implementation of the execution repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from .models import ExecutionInstance, StepRecord
from .repository import ExecutionRepository


class InMemoryExecutionRepository(ExecutionRepository):
    """Store execution state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, ExecutionInstance] = {}
        self._step_id = 0

    # ------------------------------------------------------------------
    async def create_execution(
        self,
        execution_id: str,
        workflow_name: str,
        event_name: str,
        payload: dict | None = None,
    ) -> bool:
        if execution_id in self._executions:
            return False
        self._executions[execution_id] = ExecutionInstance(
            execution_id=execution_id,
            workflow_name=workflow_name,
            event_name=event_name,
            payload=payload or {},
            status="running",
        )
        return True

    async def mark_attempt_started(self, execution_id: str, attempt: int) -> None:
        ex = self._executions.get(execution_id)
        if ex:
            ex.attempts = max(ex.attempts, attempt)

    async def mark_step_started(
        self, execution_id: str, step_name: str, attempt: int = 1
    ) -> None:
        ex = self._executions.get(execution_id)
        if not ex:
            return
        # ignore duplicate starts for the same attempt
        for step in ex.steps:
            if step.step_name == step_name and step.attempt == attempt:
                return
        self._step_id += 1
        ex.steps.append(
            StepRecord(
                id=self._step_id,
                execution_id=execution_id,
                step_name=step_name,
                attempt=attempt,
                started_at=datetime.now(timezone.utc),
            )
        )

    async def mark_step_completed(
        self,
        execution_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
        attempt: int = 1,
    ) -> None:
        ex = self._executions.get(execution_id)
        if not ex:
            return
        for step in ex.steps:
            if (
                step.step_name == step_name
                and step.attempt == attempt
                and step.completed_at is None
            ):
                step.completed_at = datetime.now(timezone.utc)
                step.status = status
                step.output = output or {}
                break

    async def get_step_output(self, execution_id: str, step_name: str) -> dict | None:
        ex = self._executions.get(execution_id)
        if not ex:
            return None
        for step in reversed(ex.steps):
            if step.step_name == step_name and step.status == "completed":
                return step.output
        return None

    async def mark_execution_completed(
        self, execution_id: str, status: str, error: str | None = None
    ) -> None:
        ex = self._executions.get(execution_id)
        if ex:
            ex.status = status
            ex.error = error

    async def get_execution(self, execution_id: str) -> ExecutionInstance | None:
        return self._executions.get(execution_id)

    async def list_executions(self) -> list[ExecutionInstance]:
        return list(self._executions.values())

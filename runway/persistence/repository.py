"""Repository abstraction for execution state persistence."""

from __future__ import annotations

from typing import Protocol

from .models import ExecutionInstance


class ExecutionRepository(Protocol):
    """Protocol for execution state persistence backends."""

    async def create_execution(
        self,
        execution_id: str,
        workflow_name: str,
        event_name: str,
        payload: dict | None = None,
    ) -> bool:
        """Persist initial execution state. Returns ``False`` if it already exists."""

    async def mark_attempt_started(self, execution_id: str, attempt: int) -> None:
        """Record the start of attempt ``attempt``."""

    async def mark_step_started(
        self, execution_id: str, step_name: str, attempt: int = 1
    ) -> None:
        """Record start of a step."""

    async def mark_step_completed(
        self,
        execution_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
        attempt: int = 1,
    ) -> None:
        """Record completion of a step."""

    async def get_step_output(self, execution_id: str, step_name: str) -> dict | None:
        """Return the output of the latest completed run of ``step_name``."""

    async def mark_execution_completed(
        self, execution_id: str, status: str, error: str | None = None
    ) -> None:
        """Mark the execution as finished."""

    async def get_execution(self, execution_id: str) -> ExecutionInstance | None:
        """Retrieve the execution instance by id."""

    async def list_executions(self) -> list[ExecutionInstance]:
        """Return all persisted executions."""

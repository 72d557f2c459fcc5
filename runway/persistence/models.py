"""Data models for persisted execution state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class StepRecord(BaseModel):
    """Record of an individual step run within one attempt."""

    id: Optional[int] = None
    execution_id: str
    step_name: str
    attempt: int = 1
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: Optional[str] = None
    output: Optional[dict[str, Any]] = None


class ExecutionInstance(BaseModel):
    """Persisted workflow execution data."""

    execution_id: str
    workflow_name: str
    event_name: str
    payload: dict[str, Any] = Field(default_factory=dict)
    status: str = "running"
    attempts: int = 0
    error: Optional[str] = None
    steps: list[StepRecord] = Field(default_factory=list)

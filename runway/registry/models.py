"""Pydantic models describing registered workflows."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models import utcnow


class WorkflowDescriptor(BaseModel):
    """Serializable summary of a workflow definition."""

    name: str
    event: str
    description: Optional[str] = None
    retries: int
    cost: int = 0
    refund_on_failure: bool = False
    record_kind: Optional[str] = None
    steps: List[str] = Field(default_factory=list)

    @field_validator("event")
    @classmethod
    def _ensure_event(cls, v: str) -> str:
        if not v:
            raise ValueError("event must be a non-empty string")
        return v


class RegistrySnapshot(BaseModel):
    workflows: List[WorkflowDescriptor] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)
    schema_version: str = "1"

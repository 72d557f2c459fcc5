"""Core message contracts and error types for runway workflows."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class WorkflowTrigger(BaseModel):
    """
    Envelope exchanged over the bus. Names the workflow event and carries its payload.

    ``trigger_id`` doubles as the execution id, so a trigger is executed at most once.
    """

    model_config = ConfigDict(frozen=True)

    trigger_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_name: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    spec_version: str = "1.0"

    def to_json(self) -> str:
        """Serialize trigger to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "WorkflowTrigger":
        """Deserialize trigger from JSON."""
        return cls.model_validate_json(data)


class SerializedOutput(BaseModel):
    data: Any = Field(default=None, description="Serialized values")
    type: Optional[str] = Field(default=None, description="Class name")
    module: Optional[str] = Field(default=None, description="Module path")


# ----------------------------------------------------------------------
# Errors


class WorkflowError(Exception):
    """Base class for runway errors."""


class StepFailed(WorkflowError):
    """Raised by a step body. ``retryable`` decides whether another attempt runs."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class TerminalStepError(StepFailed):
    """A failure that no retry can fix, e.g. a missing record or a malformed payload."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class RecordNotFound(TerminalStepError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} record {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidPayload(TerminalStepError):
    pass


class QualityGateRejected(StepFailed):
    """Business-rule rejection that deliberately reuses the whole-attempt retry path."""

    def __init__(self, score: int, threshold: int) -> None:
        super().__init__(
            f"Quality check failed - score {score} below {threshold}, will retry"
        )
        self.score = score
        self.threshold = threshold


class AdapterError(StepFailed):
    """An external capability call failed."""


class InsufficientCredits(WorkflowError):
    def __init__(self, user_id: str, required: int, available: int | None = None) -> None:
        super().__init__(
            f"Insufficient credits for user {user_id}: {required} required"
            + (f", {available} available" if available is not None else "")
        )
        self.user_id = user_id
        self.required = required
        self.available = available


class InvalidStatusTransition(TerminalStepError):
    """A record already past the requested status; retrying cannot move it back."""

    def __init__(self, record_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Record {record_id} cannot move from {current} to {requested}"
        )
        self.current = current
        self.requested = requested


class RetryNotAllowed(WorkflowError):
    """Only failed records can be retried."""


class UnknownWorkflow(WorkflowError):
    def __init__(self, event_name: str) -> None:
        super().__init__(f"No workflow registered for event '{event_name}'")
        self.event_name = event_name

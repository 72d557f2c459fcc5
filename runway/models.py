from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordKind(str, Enum):
    AVATARS = "avatars"
    HYBRID_AVATARS = "hybrid_avatars"
    JOBS = "jobs"
    TRANSFER_JOBS = "transfer_jobs"


class RecordStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, other: "RecordStatus") -> bool:
        """Status only moves forward; ``failed -> pending`` is the retry reset."""
        if self == other:
            return True
        return other in _TRANSITIONS[self]


_TRANSITIONS: dict[RecordStatus, set[RecordStatus]] = {
    RecordStatus.PENDING: {RecordStatus.PROCESSING, RecordStatus.FAILED},
    RecordStatus.PROCESSING: {RecordStatus.COMPLETED, RecordStatus.FAILED},
    RecordStatus.COMPLETED: set(),
    RecordStatus.FAILED: {RecordStatus.PENDING},
}


class EntityRecord(BaseModel):
    """A user-visible job row: avatar, hybrid avatar, video job or transfer job.

    Table-specific columns (``name``, ``style``, ``avatar_id`` ...) are kept as
    extra fields.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    user_id: str
    status: RecordStatus = RecordStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    current_step: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    preview_images: list[str] = Field(default_factory=list)
    output_video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    lora_weights_url: Optional[str] = None
    error_message: Optional[str] = None
    trigger_event: Optional[str] = None
    trigger_payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class TransactionType(str, Enum):
    USAGE = "usage"
    REFUND = "refund"
    PURCHASE = "purchase"
    BONUS = "bonus"


class UserProfile(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    preferred_language: str = "en"
    credits: int = 0


class CreditTransaction(BaseModel):
    """Immutable ledger entry."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    user_id: str
    amount: int
    type: TransactionType
    balance_after: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Product(BaseModel):
    """A catalogue item that can be placed on a model."""

    id: str
    user_id: Optional[str] = None
    name: str
    type: Optional[str] = None
    image_url: Optional[str] = None

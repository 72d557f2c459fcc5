from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..models import utcnow


class EntityRow(SQLModel, table=True):
    """One avatar, hybrid avatar, video job or transfer job.

    The full record document lives in ``document``; the indexed columns are
    copies used for filtering.
    """

    __tablename__ = "entity_records"

    kind: str = Field(primary_key=True)
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    status: str = Field(default="pending")
    progress: int = 0
    document: dict = Field(sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow)


class UserProfileRow(SQLModel, table=True):
    __tablename__ = "user_profiles"

    id: str = Field(primary_key=True)
    email: Optional[str] = None
    display_name: Optional[str] = None
    preferred_language: str = "en"
    credits: int = 0


class CreditTransactionRow(SQLModel, table=True):
    """Append-only ledger entry."""

    __tablename__ = "credit_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="user_profiles.id", index=True)
    amount: int
    type: str
    balance_after: int
    details: dict = Field(default_factory=dict, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow)


class ProductRow(SQLModel, table=True):
    __tablename__ = "products"

    id: str = Field(primary_key=True)
    user_id: Optional[str] = None
    name: str
    type: Optional[str] = None
    image_url: Optional[str] = None

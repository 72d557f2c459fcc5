"""In-memory entity and account stores."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional, Tuple

from ..contracts import InsufficientCredits, InvalidStatusTransition, RecordNotFound
from ..models import (
    CreditTransaction,
    EntityRecord,
    Product,
    RecordKind,
    RecordStatus,
    TransactionType,
    UserProfile,
    utcnow,
)
from .base import AccountStore, EntityStore


def apply_patch(current: EntityRecord, fields: Dict[str, Any]) -> EntityRecord:
    """Return ``current`` with ``fields`` applied.

    Shared by every store backend so that merge and transition rules stay the
    same regardless of where the row lives.
    """

    patch = dict(fields)
    if "status" in patch and patch["status"] is not None:
        requested = RecordStatus(patch["status"])
        if not current.status.can_transition_to(requested):
            raise InvalidStatusTransition(
                current.id, current.status.value, requested.value
            )
        patch["status"] = requested
    if "metadata" in patch:
        patch["metadata"] = {**current.metadata, **(patch["metadata"] or {})}

    data = current.model_dump()
    data.update(patch)
    data["updated_at"] = utcnow()
    return EntityRecord.model_validate(data)


class InMemoryEntityStore(EntityStore):
    """Keeps records in a dict. Every successful write is kept in ``history``."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[RecordKind, str], EntityRecord] = {}
        self._products: Dict[str, Product] = {}
        self.history: list[Tuple[RecordKind, str, Dict[str, Any]]] = []

    async def get(self, kind: RecordKind, record_id: str) -> Optional[EntityRecord]:
        return self._records.get((RecordKind(kind), record_id))

    async def insert(self, kind: RecordKind, record: EntityRecord) -> EntityRecord:
        key = (RecordKind(kind), record.id)
        if key in self._records:
            raise ValueError(f"{key[0].value} record {record.id} already exists")
        self._records[key] = record
        return record

    async def update(self, kind: RecordKind, record_id: str, **fields: Any) -> EntityRecord:
        key = (RecordKind(kind), record_id)
        current = self._records.get(key)
        if current is None:
            raise RecordNotFound(key[0].value, record_id)
        updated = apply_patch(current, fields)
        self._records[key] = updated
        self.history.append((key[0], record_id, dict(fields)))
        return updated

    async def list(
        self, kind: RecordKind, user_id: Optional[str] = None
    ) -> list[EntityRecord]:
        kind = RecordKind(kind)
        return [
            record
            for (k, _), record in self._records.items()
            if k == kind and (user_id is None or record.user_id == user_id)
        ]

    async def add_product(self, product: Product) -> Product:
        self._products[product.id] = product
        return product

    async def get_products(self, product_ids: Iterable[str]) -> list[Product]:
        return [self._products[pid] for pid in product_ids if pid in self._products]

    def progress_history(self, kind: RecordKind, record_id: str) -> list[int]:
        """Progress values written to one record, in order."""
        return [
            fields["progress"]
            for k, rid, fields in self.history
            if k == kind and rid == record_id and "progress" in fields
        ]

    def status_history(self, kind: RecordKind, record_id: str) -> list[RecordStatus]:
        return [
            RecordStatus(fields["status"])
            for k, rid, fields in self.history
            if k == kind and rid == record_id and fields.get("status") is not None
        ]


class InMemoryAccountStore(AccountStore):
    """Profiles and ledger in memory; mutations are serialized per user."""

    def __init__(self) -> None:
        self._profiles: Dict[str, UserProfile] = {}
        self._ledger: list[CreditTransaction] = []
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        self._profiles[profile.id] = profile
        return profile

    async def debit(
        self, user_id: str, amount: int, metadata: Optional[dict[str, Any]] = None
    ) -> CreditTransaction:
        async with self._locks[user_id]:
            profile = self._require(user_id)
            if profile.credits < amount:
                raise InsufficientCredits(user_id, amount, profile.credits)
            return self._apply(profile, -amount, TransactionType.USAGE, metadata)

    async def credit(
        self,
        user_id: str,
        amount: int,
        type: TransactionType = TransactionType.REFUND,
        metadata: Optional[dict[str, Any]] = None,
    ) -> CreditTransaction:
        async with self._locks[user_id]:
            profile = self._require(user_id)
            return self._apply(profile, amount, type, metadata)

    async def transactions(self, user_id: str) -> list[CreditTransaction]:
        return [tx for tx in self._ledger if tx.user_id == user_id]

    def _require(self, user_id: str) -> UserProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise RecordNotFound("user_profiles", user_id)
        return profile

    def _apply(
        self,
        profile: UserProfile,
        amount: int,
        type: TransactionType,
        metadata: Optional[dict[str, Any]],
    ) -> CreditTransaction:
        updated = profile.model_copy(update={"credits": profile.credits + amount})
        self._profiles[profile.id] = updated
        tx = CreditTransaction(
            id=len(self._ledger) + 1,
            user_id=profile.id,
            amount=amount,
            type=type,
            balance_after=updated.credits,
            metadata=metadata or {},
        )
        self._ledger.append(tx)
        return tx

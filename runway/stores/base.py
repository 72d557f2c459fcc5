"""Store interfaces consumed by the workflows."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from ..models import (
    CreditTransaction,
    EntityRecord,
    Product,
    RecordKind,
    TransactionType,
    UserProfile,
)


class EntityStore(Protocol):
    """Row store for avatars, hybrid avatars, video jobs and transfer jobs.

    Updates are single-row patches with last-write-wins semantics. ``metadata``
    patches are merged into the stored bag, and status changes must follow
    :meth:`RecordStatus.can_transition_to`.
    """

    async def get(self, kind: RecordKind, record_id: str) -> Optional[EntityRecord]:
        """Return the record or ``None``."""

    async def insert(self, kind: RecordKind, record: EntityRecord) -> EntityRecord:
        """Insert a new record. Raises ``ValueError`` if the id is taken."""

    async def update(self, kind: RecordKind, record_id: str, **fields: Any) -> EntityRecord:
        """Patch a record and return the new state. Raises ``RecordNotFound``."""

    async def list(
        self, kind: RecordKind, user_id: Optional[str] = None
    ) -> list[EntityRecord]:
        """Return records of ``kind``, optionally restricted to one owner."""

    async def add_product(self, product: Product) -> Product:
        """Insert or replace a catalogue product."""

    async def get_products(self, product_ids: Iterable[str]) -> list[Product]:
        """Return the products that exist among ``product_ids``."""


class AccountStore(Protocol):
    """User profiles and the append-only credit ledger.

    Every balance mutation updates the stored balance and appends exactly one
    ledger entry in the same operation.
    """

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """Return the profile or ``None``."""

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Insert a profile with its opening balance."""

    async def debit(
        self, user_id: str, amount: int, metadata: Optional[dict[str, Any]] = None
    ) -> CreditTransaction:
        """Atomically take ``amount`` credits. Raises ``InsufficientCredits``."""

    async def credit(
        self,
        user_id: str,
        amount: int,
        type: TransactionType = TransactionType.REFUND,
        metadata: Optional[dict[str, Any]] = None,
    ) -> CreditTransaction:
        """Atomically add ``amount`` credits with a ledger entry of ``type``."""

    async def transactions(self, user_id: str) -> list[CreditTransaction]:
        """Return the user's ledger in insertion order."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel, select

from ..contracts import InsufficientCredits, RecordNotFound
from ..models import (
    CreditTransaction,
    EntityRecord,
    Product,
    RecordKind,
    TransactionType,
    UserProfile,
)
from ..stores.base import AccountStore, EntityStore
from ..stores.inmemory import apply_patch
from .models import CreditTransactionRow, EntityRow, ProductRow, UserProfileRow


class RecordsDB:
    """Async database helper shared by the SQL-backed stores."""

    def __init__(self, database_url: str) -> None:
        connect_args = (
            {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        )
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )
        self._ready = False

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self._ready = True

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if not self._ready:
            await self.init_db()
        async with AsyncSession(self.engine, expire_on_commit=False) as session:
            yield session


def _to_record(row: EntityRow) -> EntityRecord:
    return EntityRecord.model_validate(row.document)


def _to_transaction(row: CreditTransactionRow) -> CreditTransaction:
    return CreditTransaction(
        id=row.id,
        user_id=row.user_id,
        amount=row.amount,
        type=TransactionType(row.type),
        balance_after=row.balance_after,
        metadata=row.details or {},
        created_at=row.created_at,
    )


class SQLEntityStore(EntityStore):
    def __init__(self, db: RecordsDB) -> None:
        self._db = db

    async def get(self, kind: RecordKind, record_id: str) -> Optional[EntityRecord]:
        async with self._db.session() as session:
            row = await session.get(EntityRow, (RecordKind(kind).value, record_id))
            return _to_record(row) if row else None

    async def insert(self, kind: RecordKind, record: EntityRecord) -> EntityRecord:
        kind = RecordKind(kind)
        async with self._db.session() as session:
            if await session.get(EntityRow, (kind.value, record.id)) is not None:
                raise ValueError(f"{kind.value} record {record.id} already exists")
            session.add(
                EntityRow(
                    kind=kind.value,
                    id=record.id,
                    user_id=record.user_id,
                    status=record.status.value,
                    progress=record.progress,
                    document=record.model_dump(mode="json"),
                    updated_at=record.updated_at,
                )
            )
            await session.commit()
        return record

    async def update(self, kind: RecordKind, record_id: str, **fields: Any) -> EntityRecord:
        kind = RecordKind(kind)
        async with self._db.session() as session:
            row = await session.get(EntityRow, (kind.value, record_id))
            if row is None:
                raise RecordNotFound(kind.value, record_id)
            updated = apply_patch(_to_record(row), fields)
            row.status = updated.status.value
            row.progress = updated.progress
            row.document = updated.model_dump(mode="json")
            row.updated_at = updated.updated_at
            session.add(row)
            await session.commit()
        return updated

    async def list(
        self, kind: RecordKind, user_id: Optional[str] = None
    ) -> list[EntityRecord]:
        stmt = select(EntityRow).where(EntityRow.kind == RecordKind(kind).value)
        if user_id is not None:
            stmt = stmt.where(EntityRow.user_id == user_id)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def add_product(self, product: Product) -> Product:
        async with self._db.session() as session:
            await session.merge(ProductRow(**product.model_dump()))
            await session.commit()
        return product

    async def get_products(self, product_ids: Iterable[str]) -> list[Product]:
        ids = list(product_ids)
        if not ids:
            return []
        async with self._db.session() as session:
            result = await session.execute(select(ProductRow).where(ProductRow.id.in_(ids)))
            rows = {row.id: row for row in result.scalars().all()}
        return [
            Product.model_validate(rows[pid].model_dump()) for pid in ids if pid in rows
        ]


class SQLAccountStore(AccountStore):
    """Balance changes are single conditional ``UPDATE ... RETURNING`` statements."""

    def __init__(self, db: RecordsDB) -> None:
        self._db = db

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        async with self._db.session() as session:
            row = await session.get(UserProfileRow, user_id)
            return UserProfile.model_validate(row.model_dump()) if row else None

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        async with self._db.session() as session:
            session.add(UserProfileRow(**profile.model_dump()))
            await session.commit()
        return profile

    async def debit(
        self, user_id: str, amount: int, metadata: Optional[dict[str, Any]] = None
    ) -> CreditTransaction:
        stmt = (
            update(UserProfileRow)
            .where(UserProfileRow.id == user_id, UserProfileRow.credits >= amount)
            .values(credits=UserProfileRow.credits - amount)
            .returning(UserProfileRow.credits)
        )
        async with self._db.session() as session:
            balance = (await session.execute(stmt)).scalar_one_or_none()
            if balance is None:
                profile = await session.get(UserProfileRow, user_id)
                await session.rollback()
                if profile is None:
                    raise RecordNotFound("user_profiles", user_id)
                raise InsufficientCredits(user_id, amount, profile.credits)
            return await self._append(
                session, user_id, -amount, TransactionType.USAGE, balance, metadata
            )

    async def credit(
        self,
        user_id: str,
        amount: int,
        type: TransactionType = TransactionType.REFUND,
        metadata: Optional[dict[str, Any]] = None,
    ) -> CreditTransaction:
        stmt = (
            update(UserProfileRow)
            .where(UserProfileRow.id == user_id)
            .values(credits=UserProfileRow.credits + amount)
            .returning(UserProfileRow.credits)
        )
        async with self._db.session() as session:
            balance = (await session.execute(stmt)).scalar_one_or_none()
            if balance is None:
                await session.rollback()
                raise RecordNotFound("user_profiles", user_id)
            return await self._append(session, user_id, amount, type, balance, metadata)

    async def transactions(self, user_id: str) -> list[CreditTransaction]:
        stmt = (
            select(CreditTransactionRow)
            .where(CreditTransactionRow.user_id == user_id)
            .order_by(CreditTransactionRow.id)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [_to_transaction(row) for row in result.scalars().all()]

    async def _append(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        type: TransactionType,
        balance: int,
        metadata: Optional[dict[str, Any]],
    ) -> CreditTransaction:
        row = CreditTransactionRow(
            user_id=user_id,
            amount=amount,
            type=type.value,
            balance_after=balance,
            details=metadata or {},
        )
        session.add(row)
        await session.commit()
        await session.refresh(row)
        return _to_transaction(row)

"""SQL implementation of the Repository port.

Each call opens its own session from the factory and commits before
returning, so a ``save`` is the atomic unit the engine relies on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from account_escrow.domain.enums import EntityKind
from account_escrow.domain.transaction import Transaction
from account_escrow.domain.user import User
from account_escrow.infrastructure.database.orm_models import TransactionRow, UserRow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from account_escrow.domain.ports import Predicate

_ROWS: dict[EntityKind, type[TransactionRow] | type[UserRow]] = {
    EntityKind.TRANSACTION: TransactionRow,
    EntityKind.USER: UserRow,
}


def _to_row(entity: Transaction | User) -> TransactionRow | UserRow:
    if isinstance(entity, Transaction):
        return TransactionRow(
            id=entity.id,
            short_id=entity.short_id,
            seller_id=entity.seller_id,
            buyer_id=entity.buyer_id,
            state=entity.state.value,
            amount=entity.amount,
            record=entity.to_record(),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
    record = entity.to_record()
    return UserRow(
        id=entity.id,
        role=record["role"],
        is_blocked=entity.is_blocked,
        record=record,
        updated_at=entity.updated_at,
    )


def _from_row(kind: EntityKind, row: TransactionRow | UserRow) -> Transaction | User:
    if kind is EntityKind.TRANSACTION:
        return Transaction.from_record(row.record)
    return User.from_record(row.record)


class SqlRepository:
    """Data access for transactions and users."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, kind: EntityKind, entity_id: str) -> Transaction | User | None:
        """Fetch an entity by id."""
        async with self._session_factory() as session:
            row = await session.get(_ROWS[kind], entity_id)
            return None if row is None else _from_row(kind, row)

    async def save(self, entity: Transaction | User) -> None:
        """Insert or replace an entity in a single commit."""
        async with self._session_factory() as session:
            try:
                await session.merge(_to_row(entity))
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def query(self, kind: EntityKind, predicate: Predicate) -> list[Any]:
        """Fetch every entity of ``kind`` matching ``predicate``, oldest first."""
        kind_of_row = _ROWS[kind]
        stmt = select(kind_of_row)
        if kind is EntityKind.TRANSACTION:
            stmt = stmt.order_by(TransactionRow.created_at.asc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            entities = [_from_row(kind, row) for row in result.scalars().all()]
        return [entity for entity in entities if predicate(entity)]

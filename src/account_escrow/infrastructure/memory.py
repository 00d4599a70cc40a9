"""In-memory repository.

Stores each entity as its serialized record, so callers never share a live
object with the store. Used by tests and by single-process dry runs.
"""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING, Any

from account_escrow.domain.enums import EntityKind
from account_escrow.domain.transaction import Transaction
from account_escrow.domain.user import User

if TYPE_CHECKING:
    from account_escrow.domain.ports import Predicate

_ENTITY_TYPES: dict[EntityKind, type[Transaction] | type[User]] = {
    EntityKind.TRANSACTION: Transaction,
    EntityKind.USER: User,
}


def kind_of(entity: Transaction | User) -> EntityKind:
    """Entity kind for a domain object."""
    if isinstance(entity, Transaction):
        return EntityKind.TRANSACTION
    if isinstance(entity, User):
        return EntityKind.USER
    raise TypeError(f"unsupported entity type: {type(entity).__name__}")


class InMemoryRepository:
    """Dict-backed implementation of the Repository port."""

    def __init__(self) -> None:
        self._records: dict[EntityKind, dict[str, dict[str, Any]]] = {
            kind: {} for kind in EntityKind
        }
        self._lock = asyncio.Lock()
        self.saves = 0

    async def get(self, kind: EntityKind, entity_id: str) -> Transaction | User | None:
        record = self._records[kind].get(entity_id)
        if record is None:
            return None
        return _ENTITY_TYPES[kind].from_record(copy.deepcopy(record))

    async def save(self, entity: Transaction | User) -> None:
        async with self._lock:
            self._records[kind_of(entity)][entity.id] = copy.deepcopy(entity.to_record())
            self.saves += 1

    async def query(self, kind: EntityKind, predicate: Predicate) -> list[Any]:
        entity_type = _ENTITY_TYPES[kind]
        entities = [
            entity_type.from_record(copy.deepcopy(record))
            for record in list(self._records[kind].values())
        ]
        return [entity for entity in entities if predicate(entity)]

    def count(self, kind: EntityKind) -> int:
        return len(self._records[kind])

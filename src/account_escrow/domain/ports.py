"""Collaborator protocols consumed by the escrow core.

These are Protocols (structural subtyping) so adapters don't need to inherit
from a base class, they just need to match the shape. The domain layer has
ZERO imports from SQLAlchemy, Redis, httpx or any transport.

Concrete implementations:
    - Repository:   infrastructure/memory.py, infrastructure/database/repositories.py
    - Notifier:     infrastructure/notifiers.py
    - Authorizer:   services/authorization.py
    - CodeVerifier: verifiers/__init__.py
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from account_escrow.domain.enums import CodeVerdict, EntityKind, PartyRole
    from account_escrow.domain.transaction import Transaction
    from account_escrow.domain.user import User

Predicate = Callable[[Any], bool]


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


@runtime_checkable
class Repository(Protocol):
    """Durable store for transactions and users.

    ``get`` and ``query`` return detached copies; a change is visible to
    other callers only after ``save``. A ``save`` is atomic per entity.
    """

    async def get(self, kind: EntityKind, entity_id: str) -> Transaction | User | None: ...

    async def save(self, entity: Transaction | User) -> None: ...

    async def query(self, kind: EntityKind, predicate: Predicate) -> list[Any]: ...


@runtime_checkable
class Notifier(Protocol):
    """Outbound message delivery (chat bridge, webhook, log).

    Implementations may raise NotificationFailureError or return False;
    the notification gateway treats both as a logged, non-fatal failure.
    """

    async def send(self, user_id: str, kind: str, context: dict[str, Any]) -> bool: ...


@runtime_checkable
class Authorizer(Protocol):
    async def is_admin(self, actor_id: str) -> bool: ...

    async def is_blocked(self, actor_id: str) -> bool: ...

    async def is_registered(self, actor_id: str) -> bool: ...

    def resolve_role(self, transaction: Transaction, actor_id: str) -> PartyRole: ...


@runtime_checkable
class CodeVerifier(Protocol):
    """Checks an account transfer code submitted by the seller.

    Returns VERIFIED, REJECTED, or PENDING when a human has to confirm.
    """

    async def verify(self, transaction: Transaction, code: str) -> CodeVerdict: ...

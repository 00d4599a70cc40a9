"""Authorization gateway backed by configured admin ids and the user directory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from account_escrow.domain.enums import ActorRole, PartyRole
from account_escrow.domain.exceptions import UnauthorizedError
from account_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from account_escrow.domain.ports import Authorizer
    from account_escrow.domain.transaction import Transaction
    from account_escrow.services.users import UserDirectory

logger = get_logger(__name__)


class DirectoryAuthorizer:
    """Admins are the configured ids plus any user stored with the admin role."""

    def __init__(self, users: UserDirectory, admin_ids: Sequence[str] = ()) -> None:
        self._users = users
        self._admin_ids = frozenset(str(a) for a in admin_ids)

    async def is_admin(self, actor_id: str) -> bool:
        if actor_id in self._admin_ids:
            return True
        user = await self._users.get(actor_id)
        return user is not None and user.is_admin

    async def is_blocked(self, actor_id: str) -> bool:
        user = await self._users.get(actor_id)
        return user is not None and user.is_blocked

    async def is_registered(self, actor_id: str) -> bool:
        user = await self._users.get(actor_id)
        return user is not None and user.is_registered

    def resolve_role(self, transaction: Transaction, actor_id: str) -> PartyRole:
        return transaction.role_of(actor_id)


async def authorize(
    authorizer: Authorizer,
    tx: Transaction,
    actor_id: str,
    required: ActorRole,
    action: str,
) -> PartyRole:
    """Check that ``actor_id`` may perform ``action`` on ``tx``.

    Admin actions additionally require that the admin is not a party to the
    transaction, so nobody arbitrates their own trade.

    Raises:
        UnauthorizedError: With the reason; nothing is modified.
    """

    def deny(reason: str) -> UnauthorizedError:
        logger.warning(
            "authorization.denied",
            transaction_id=tx.id,
            actor_id=actor_id,
            action=action,
            reason=reason,
        )
        return UnauthorizedError(actor_id, action, reason)

    if not actor_id:
        raise deny("no actor")
    if await authorizer.is_blocked(actor_id):
        raise deny("account is blocked")

    role = authorizer.resolve_role(tx, actor_id)
    if required is ActorRole.ADMIN:
        if not await authorizer.is_admin(actor_id):
            raise deny("admin only")
        if role is not PartyRole.NONE:
            raise deny("admins cannot arbitrate their own transaction")
    elif required is ActorRole.SELLER and role is not PartyRole.SELLER:
        raise deny("seller only")
    elif required is ActorRole.BUYER and role is not PartyRole.BUYER:
        raise deny("buyer only")
    elif required is ActorRole.PARTY and role is PartyRole.NONE:
        raise deny("participants only")
    elif required is ActorRole.PROSPECT:
        if role is not PartyRole.NONE:
            raise deny("parties cannot claim this listing")
        if not await authorizer.is_registered(actor_id):
            raise deny("registration required")
    return role

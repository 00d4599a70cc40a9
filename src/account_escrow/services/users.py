"""User directory: lookup, on-demand registration, blocking and statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from account_escrow.domain.enums import EntityKind
from account_escrow.domain.exceptions import UserNotFoundError
from account_escrow.domain.user import User
from account_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from account_escrow.domain.ports import Clock, Repository
    from account_escrow.domain.transaction import Transaction

logger = get_logger(__name__)


class UserDirectory:
    def __init__(self, repository: Repository, clock: Clock) -> None:
        self._repo = repository
        self._clock = clock

    async def get(self, user_id: str) -> User | None:
        return await self._repo.get(EntityKind.USER, str(user_id))

    async def get_or_raise(self, user_id: str) -> User:
        user = await self.get(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    async def ensure(self, user_id: str, **fields: Any) -> User:
        """Return the user, creating a record on first contact."""
        user = await self.get(user_id)
        if user is None:
            user = User.new(str(user_id), self._clock.now(), **fields)
            await self._repo.save(user)
            logger.info("user.created", user_id=user.id)
        return user

    async def touch(self, user_id: str) -> User:
        """Ensure the user exists and stamp their last activity."""
        user = await self.ensure(user_id)
        user.touch(self._clock.now())
        await self._repo.save(user)
        return user

    async def register(self, user_id: str, name: str, username: str | None = None) -> User:
        user = await self.ensure(user_id)
        user.complete_registration(name, self._clock.now())
        if username:
            user.username = username
        await self._repo.save(user)
        logger.info("user.registered", user_id=user.id)
        return user

    async def block(self, user_id: str, reason: str) -> User:
        user = await self.get_or_raise(user_id)
        user.block(reason, self._clock.now())
        await self._repo.save(user)
        logger.warning("user.blocked", user_id=user.id, reason=reason)
        return user

    async def unblock(self, user_id: str) -> User:
        user = await self.get_or_raise(user_id)
        user.unblock(self._clock.now())
        await self._repo.save(user)
        logger.info("user.unblocked", user_id=user.id)
        return user

    async def all(self) -> list[User]:
        return await self._repo.query(EntityKind.USER, lambda _: True)

    async def record_outcome(self, transaction: Transaction) -> None:
        """Fold a terminal transaction into both parties' statistics."""
        now = self._clock.now()
        for user_id in transaction.participants:
            user = await self.ensure(user_id)
            user.record_outcome(transaction.state, transaction.amount, now)
            await self._repo.save(user)
        logger.info(
            "user.stats_updated",
            transaction_id=transaction.id,
            outcome=transaction.state.value,
            users=transaction.participants,
        )

"""Transition engine — the single choke point for transaction state changes.

Every state change goes through ``set_state`` (or ``fire``, which resolves a
named event to its target first). Changes are applied to a loaded, detached
Transaction and become durable only when ``commit`` saves the whole entity,
so history and state can never be written separately.

Mutations of one transaction are serialized by a per-transaction asyncio
lock. Locks are held around the read-modify-write only; callers deliver
notifications after leaving ``locked``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from account_escrow.domain.enums import EntityKind, Phase, TransactionState
from account_escrow.domain.exceptions import RetryExhaustedError, TransactionNotFoundError
from account_escrow.domain.state_machine import validate_transition
from account_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from account_escrow.domain.ports import Clock, Repository
    from account_escrow.domain.transaction import HistoryEntry, Transaction
    from account_escrow.services.users import UserDirectory

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


class TransitionEngine:
    """Loads, transitions and persists transactions."""

    def __init__(
        self,
        repository: Repository,
        clock: Clock,
        users: UserDirectory,
        max_retry_attempts: int = 3,
    ) -> None:
        self._repo = repository
        self._clock = clock
        self._users = users
        self._max_retry_attempts = max_retry_attempts
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def repository(self) -> Repository:
        return self._repo

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def locked(self, key: str) -> AsyncIterator[None]:
        """Hold the mutation lock for ``key`` (a transaction id or other scope)."""
        async with self._lock_for(key):
            yield

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self, transaction_id: str) -> Transaction:
        tx = await self._repo.get(EntityKind.TRANSACTION, transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx

    async def commit(self, tx: Transaction, previous_state: TransactionState) -> None:
        """Persist ``tx`` in one save and run terminal side effects.

        Statistics are updated only on the commit that moves the transaction
        out of an active state, so each party is counted once.
        """
        await self._repo.save(tx)
        if tx.is_terminal and not previous_state.is_terminal:
            await self._users.record_outcome(tx)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def set_state(
        self,
        tx: Transaction,
        new_state: TransactionState,
        note: str,
        actor_id: str,
    ) -> HistoryEntry:
        """Apply a legal transition in memory. Raises InvalidStateTransitionError."""
        previous = tx.state
        entry = tx.set_state(new_state, note, actor_id, self._clock.now())
        logger.info(
            "transaction.state_changed",
            transaction_id=tx.id,
            from_state=previous.value,
            to_state=entry.to_state.value,
            actor_id=actor_id,
        )
        return entry

    def fire(self, tx: Transaction, event_name: str, note: str, actor_id: str) -> HistoryEntry:
        """Resolve a named state machine event and apply it."""
        target = validate_transition(tx.state, event_name)
        return self.set_state(tx, target, note, actor_id)

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    @property
    def max_retry_attempts(self) -> int:
        return self._max_retry_attempts

    def consume_retry(self, tx: Transaction, phase: Phase) -> int:
        """Count one more attempt of a retryable phase.

        Raises:
            RetryExhaustedError: If the ceiling is already reached. The
                transaction is left untouched.
        """
        attempts = tx.retry_count(phase)
        if attempts >= self._max_retry_attempts:
            logger.warning(
                "transaction.retry_exhausted",
                transaction_id=tx.id,
                phase=str(phase),
                attempts=attempts,
            )
            raise RetryExhaustedError(tx.id, str(phase), attempts)
        count = tx.increment_retry(phase, self._clock.now())
        logger.info("transaction.retry", transaction_id=tx.id, phase=str(phase), attempt=count)
        return count

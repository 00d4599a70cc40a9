"""Phase timeouts.

TimeoutRegistry holds the dwell ceiling per state and answers whether a
transaction has overstayed. TimeoutSweeper is the periodic background check
that moves expired transactions to FAILED.

The time spent in a step is measured from the last history entry (creation
time before the first transition), so a self-transition such as a rejected
video restarts the clock for the re-upload.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

from account_escrow.domain.enums import EntityKind, NotificationKind, TransactionState
from account_escrow.logging_config import bind_transaction, get_logger
from account_escrow.services.engine import SYSTEM_ACTOR

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from account_escrow.domain.transaction import Transaction
    from account_escrow.services.engine import TransitionEngine
    from account_escrow.services.notifications import Notification, NotificationGateway

logger = get_logger(__name__)

DEFAULT_TIMEOUTS: dict[TransactionState, timedelta] = {
    TransactionState.INITIATED: timedelta(minutes=30),
    TransactionState.ELIGIBILITY_CHECK: timedelta(minutes=30),
    TransactionState.PAYMENT_PENDING: timedelta(hours=24),
    TransactionState.PAYMENT_VERIFIED: timedelta(hours=72),
    TransactionState.ACCOUNT_TRANSFER: timedelta(minutes=15),
    TransactionState.BUYER_VERIFICATION: timedelta(hours=24),
    TransactionState.FINAL_VERIFICATION: timedelta(hours=2),
}


def timeout_note(state: TransactionState) -> str:
    return f"Timeout in step: {state.value}"


class TimeoutRegistry:
    """Per-state dwell ceilings. Terminal states never expire."""

    def __init__(
        self,
        ceilings: Mapping[TransactionState, timedelta] | None = None,
        default: timedelta = timedelta(minutes=30),
    ) -> None:
        self._default = default
        self._ceilings = dict(DEFAULT_TIMEOUTS)
        if ceilings:
            self._ceilings.update(ceilings)

    def ceiling_for(self, state: TransactionState) -> timedelta | None:
        if state.is_terminal:
            return None
        return self._ceilings.get(state, self._default)

    def current_step_duration(self, tx: Transaction, now: datetime) -> timedelta:
        return now - tx.current_step_started_at

    def deadline(self, tx: Transaction) -> datetime | None:
        ceiling = self.ceiling_for(tx.state)
        if ceiling is None:
            return None
        return tx.current_step_started_at + ceiling

    def is_expired(self, tx: Transaction, now: datetime) -> bool:
        ceiling = self.ceiling_for(tx.state)
        if ceiling is None:
            return False
        return self.current_step_duration(tx, now) > ceiling


async def expire_transaction(
    engine: TransitionEngine,
    gateway: NotificationGateway,
    tx: Transaction,
) -> list[Notification]:
    """Fail ``tx`` for overstaying its step and return the notices to send.

    Must be called while holding the transaction's lock.
    """
    previous = tx.state
    engine.set_state(tx, TransactionState.FAILED, timeout_note(previous), SYSTEM_ACTOR)
    await engine.commit(tx, previous)
    logger.warning("transaction.timed_out", transaction_id=tx.id, step=previous.value)

    context = {**tx.summary(), "step": previous.value}
    return [
        *gateway.for_parties(tx, NotificationKind.TRANSACTION_TIMED_OUT, context),
        *gateway.for_admins(NotificationKind.TRANSACTION_TIMED_OUT, context),
    ]


class TimeoutSweeper:
    """Background sweep over active transactions.

    A transaction whose lock is held by a live action is skipped and picked
    up on the next sweep. A transaction waiting on arbitration of a buyer
    issue is never timed out.
    """

    def __init__(
        self,
        engine: TransitionEngine,
        timeouts: TimeoutRegistry,
        gateway: NotificationGateway,
    ) -> None:
        self._engine = engine
        self._timeouts = timeouts
        self._gateway = gateway

    async def sweep_once(self) -> list[str]:
        """Run one pass; return the ids of the transactions that were failed."""
        now = self._engine.clock.now()
        candidates = await self._engine.repository.query(
            EntityKind.TRANSACTION,
            lambda tx: tx.is_active and self._timeouts.is_expired(tx, now),
        )

        expired: list[str] = []
        for candidate in candidates:
            if candidate.has_open_issue:
                logger.info("timeout.skipped_arbitration", transaction_id=candidate.id)
                continue
            if self._engine.is_locked(candidate.id):
                logger.info("timeout.skipped_locked", transaction_id=candidate.id)
                continue

            with bind_transaction(candidate.id):
                async with self._engine.locked(candidate.id):
                    tx = await self._engine.load(candidate.id)
                    if (
                        not tx.is_active
                        or tx.has_open_issue
                        or not self._timeouts.is_expired(tx, self._engine.clock.now())
                    ):
                        continue
                    outbox = await expire_transaction(self._engine, self._gateway, tx)
                await self._gateway.deliver(outbox)
            expired.append(tx.id)

        logger.info("timeout.sweep_completed", scanned=len(candidates), expired=len(expired))
        return expired

    async def run(self, interval_seconds: float) -> None:
        """Sweep forever until cancelled."""
        logger.info("timeout.sweeper_started", interval_seconds=interval_seconds)
        while True:
            try:
                await self.sweep_once()
            except Exception as exc:
                logger.exception("timeout.sweep_failed", error=str(exc))
            await asyncio.sleep(interval_seconds)

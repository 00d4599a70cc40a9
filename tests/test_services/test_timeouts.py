"""Phase dwell ceilings: lazy expiry on dispatch and the background sweeper."""

from __future__ import annotations

from datetime import timedelta

import pytest

from account_escrow.domain.enums import TransactionState
from account_escrow.domain.exceptions import TimeoutExpiredError
from account_escrow.services.escrow_service import EscrowService
from account_escrow.services.timeouts import TimeoutRegistry, timeout_note
from support import ADMIN, BUYER, SELLER, ManualClock


class TestTimeoutRegistry:
    def test_terminal_states_never_expire(self) -> None:
        registry = TimeoutRegistry()
        for state in (
            TransactionState.COMPLETED,
            TransactionState.CANCELLED,
            TransactionState.FAILED,
        ):
            assert registry.ceiling_for(state) is None

    def test_overrides_merge_with_defaults(self) -> None:
        registry = TimeoutRegistry({TransactionState.ACCOUNT_TRANSFER: timedelta(minutes=5)})
        assert registry.ceiling_for(TransactionState.ACCOUNT_TRANSFER) == timedelta(minutes=5)
        assert registry.ceiling_for(TransactionState.FINAL_VERIFICATION) == timedelta(hours=2)

    def test_note_names_the_step(self) -> None:
        assert timeout_note(TransactionState.PAYMENT_PENDING) == "Timeout in step: payment_pending"


class TestExpiryOnDispatch:
    @pytest.mark.asyncio
    async def test_late_action_fails_the_transaction(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.ELIGIBILITY_CHECK)
        clock.advance(minutes=31)

        with pytest.raises(TimeoutExpiredError) as exc_info:
            await service.confirm_eligibility(tx.id, SELLER)

        assert exc_info.value.state == TransactionState.ELIGIBILITY_CHECK
        stored = await service.get_transaction(tx.id, SELLER)
        assert stored.state is TransactionState.FAILED
        assert stored.data.eligibility is None
        assert stored.history[-1].note == "Timeout in step: eligibility_check"

    @pytest.mark.asyncio
    async def test_action_just_inside_the_window(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.ELIGIBILITY_CHECK)
        clock.advance(minutes=30)

        tx = await service.confirm_eligibility(tx.id, SELLER)
        assert tx.state is TransactionState.PAYMENT_PENDING

    @pytest.mark.asyncio
    async def test_admin_actions_bypass_expiry(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.PAYMENT_PENDING)
        clock.advance(hours=25)

        tx = await service.approve_payment(tx.id, ADMIN)
        assert tx.state is TransactionState.PAYMENT_VERIFIED

    @pytest.mark.asyncio
    async def test_failed_stats_recorded_once(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.BUYER_VERIFICATION)
        clock.advance(hours=25)

        with pytest.raises(TimeoutExpiredError):
            await service.accept_account(tx.id, BUYER)

        buyer = await service.users.get_or_raise(BUYER)
        assert buyer.stats.total_transactions == 1
        assert buyer.stats.cancelled_transactions == 1


class TestSweeper:
    @pytest.mark.asyncio
    async def test_nothing_expires_early(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.FINAL_VERIFICATION)
        clock.advance(hours=1, minutes=59)

        assert await service.sweeper().sweep_once() == []
        stored = await service.get_transaction(tx.id, ADMIN)
        assert stored.state is TransactionState.FINAL_VERIFICATION

    @pytest.mark.asyncio
    async def test_open_issue_is_not_timed_out(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.BUYER_VERIFICATION)
        await service.report_issue(tx.id, BUYER, "account lock")
        clock.advance(days=3)

        assert await service.sweeper().sweep_once() == []

        tx = await service.resolve_issue(tx.id, ADMIN, "seller fixed the lock")
        assert tx.history[-1].timestamp == clock.now()
        clock.advance(hours=23)
        assert await service.sweeper().sweep_once() == []
        clock.advance(hours=2)
        assert await service.sweeper().sweep_once() == [tx.id]

    @pytest.mark.asyncio
    async def test_locked_transaction_is_skipped(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.INITIATED)
        clock.advance(hours=1)

        async with service.engine.locked(tx.id):
            assert await service.sweeper().sweep_once() == []

        assert await service.sweeper().sweep_once() == [tx.id]

    @pytest.mark.asyncio
    async def test_rejected_video_restarts_the_clock(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        tx = await drive(TransactionState.FINAL_VERIFICATION)
        await service.upload_logout_video(tx.id, SELLER, "video-1", duration=30)
        clock.advance(hours=1, minutes=30)
        await service.reject_video(tx.id, ADMIN, "too dark")

        clock.advance(hours=1)
        assert await service.sweeper().sweep_once() == []

        clock.advance(hours=1, seconds=1)
        assert await service.sweeper().sweep_once() == [tx.id]

    @pytest.mark.asyncio
    async def test_terminal_transactions_are_ignored(
        self, service: EscrowService, drive, clock: ManualClock
    ) -> None:
        await drive(TransactionState.COMPLETED)
        clock.advance(days=30)
        assert await service.sweeper().sweep_once() == []

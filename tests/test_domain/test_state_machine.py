"""Tests for the TransactionStateMachine domain guard.

These tests verify that:
    1. The happy path walks from initiated to completed.
    2. Illegal transitions are blocked and terminal states absorb.
    3. The derived transition table matches the declared events.
    4. validate_transition reports illegal events as domain errors.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from account_escrow.domain.enums import TERMINAL_STATES, TransactionState
from account_escrow.domain.exceptions import InvalidStateTransitionError
from account_escrow.domain.state_machine import (
    TRANSITION_TABLE,
    TransactionStateMachine,
    allowed_events,
    is_legal,
    validate_transition,
)


class TestHappyPath:
    """Test the full happy-path lifecycle: initiated -> completed."""

    def test_full_lifecycle(self) -> None:
        sm = TransactionStateMachine("initiated")
        assert sm.status == "initiated"

        sm.start_eligibility_check()
        assert sm.status == "eligibility_check"

        sm.confirm_eligibility()
        assert sm.status == "payment_pending"

        sm.approve_payment()
        assert sm.status == "payment_verified"

        sm.start_transfer()
        assert sm.status == "account_transfer"

        sm.verify_transfer()
        assert sm.status == "buyer_verification"

        sm.accept_account()
        assert sm.status == "final_verification"

        sm.approve_video()
        assert sm.status == "completed"


class TestSelfTransitions:
    def test_report_issue_stays_in_buyer_verification(self) -> None:
        sm = TransactionStateMachine("buyer_verification")
        sm.report_issue()
        assert sm.status == "buyer_verification"

    def test_reject_video_stays_in_final_verification(self) -> None:
        sm = TransactionStateMachine("final_verification")
        sm.reject_video()
        assert sm.status == "final_verification"


class TestCancellationAndFailure:
    @pytest.mark.parametrize(
        "state", [s for s in TransactionState if s not in TERMINAL_STATES]
    )
    def test_every_active_state_can_fail(self, state: TransactionState) -> None:
        sm = TransactionStateMachine(state.value)
        sm.mark_failed()
        assert sm.status == "failed"

    def test_reject_eligibility_cancels(self) -> None:
        sm = TransactionStateMachine("eligibility_check")
        sm.reject_eligibility()
        assert sm.status == "cancelled"


class TestIllegalTransitions:
    """Verify that illegal transitions raise TransitionNotAllowed."""

    def test_initiated_to_completed(self) -> None:
        sm = TransactionStateMachine("initiated")
        with pytest.raises(TransitionNotAllowed):
            sm.approve_video()

    def test_payment_pending_cannot_skip_to_transfer(self) -> None:
        sm = TransactionStateMachine("payment_pending")
        with pytest.raises(TransitionNotAllowed):
            sm.start_transfer()

    @pytest.mark.parametrize("state", sorted(TERMINAL_STATES))
    def test_terminal_states_absorb(self, state: TransactionState) -> None:
        assert allowed_events(state) == ()
        assert TRANSITION_TABLE[state] == frozenset()

    def test_unknown_state_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown state"):
            TransactionStateMachine("shipped")


class TestTransitionTable:
    def test_eligibility_check_targets(self) -> None:
        assert TRANSITION_TABLE[TransactionState.ELIGIBILITY_CHECK] == {
            TransactionState.PAYMENT_PENDING,
            TransactionState.CANCELLED,
            TransactionState.FAILED,
        }

    def test_buyer_verification_includes_itself(self) -> None:
        assert is_legal(TransactionState.BUYER_VERIFICATION, TransactionState.BUYER_VERIFICATION)
        assert not is_legal(TransactionState.INITIATED, TransactionState.INITIATED)

    def test_allowed_events_for_payment_pending(self) -> None:
        assert allowed_events(TransactionState.PAYMENT_PENDING) == (
            "approve_payment",
            "reject_payment",
            "mark_failed",
            "cancel_transaction",
        )


class TestValidateTransitionFunction:
    """Test the convenience function."""

    def test_valid_transition(self) -> None:
        result = validate_transition("payment_verified", "start_transfer")
        assert result is TransactionState.ACCOUNT_TRANSFER

    def test_illegal_event_raises_domain_error(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_transition("initiated", "approve_payment")
        assert exc_info.value.current_state == "initiated"
        assert exc_info.value.attempted == "approve_payment"

    def test_unknown_event_raises_domain_error(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            validate_transition("initiated", "teleport")

"""Tests for domain enumerations."""

from __future__ import annotations

from account_escrow.domain.enums import (
    SELLER_CANCELLABLE_STATES,
    TERMINAL_STATES,
    AccountType,
    Phase,
    TransactionState,
)


class TestTransactionState:
    def test_all_states_exist(self) -> None:
        expected = {
            "initiated", "eligibility_check", "payment_pending", "payment_verified",
            "account_transfer", "buyer_verification", "final_verification",
            "completed", "cancelled", "failed",
        }
        actual = {s.value for s in TransactionState}
        assert actual == expected

    def test_state_is_str_enum(self) -> None:
        assert isinstance(TransactionState.INITIATED, str)
        assert TransactionState.INITIATED == "initiated"

    def test_terminal_states(self) -> None:
        assert TERMINAL_STATES == {
            TransactionState.COMPLETED,
            TransactionState.CANCELLED,
            TransactionState.FAILED,
        }
        assert TransactionState.FAILED.is_terminal
        assert not TransactionState.FINAL_VERIFICATION.is_terminal

    def test_seller_cancellable_states_stop_before_transfer(self) -> None:
        assert TransactionState.PAYMENT_VERIFIED in SELLER_CANCELLABLE_STATES
        assert TransactionState.ACCOUNT_TRANSFER not in SELLER_CANCELLABLE_STATES
        assert not SELLER_CANCELLABLE_STATES & TERMINAL_STATES


class TestPhase:
    def test_phase_record_keys(self) -> None:
        assert Phase.BUYER_VERIFICATION == "buyerVerification"
        assert Phase.FINAL_VERIFICATION == "finalVerification"
        assert len(Phase) == 5


class TestAccountType:
    def test_account_types(self) -> None:
        assert AccountType.GMAIL == "gmail"
        assert AccountType.SUPERCELL_ID == "supercell_id"

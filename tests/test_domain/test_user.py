"""Tests for the User entity and its statistics."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from account_escrow.domain.enums import TransactionState, UserRole
from account_escrow.domain.exceptions import ValidationError
from account_escrow.domain.user import User

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestUser:
    def test_new_user(self) -> None:
        user = User.new("42", NOW)
        assert user.role is UserRole.USER
        assert not user.is_registered
        assert not user.is_admin
        assert user.display_name == "42"

    def test_registration(self) -> None:
        user = User.new("42", NOW)
        user.complete_registration("  Sara ", NOW)
        assert user.name == "Sara"
        assert user.is_registered

    def test_registration_needs_name(self) -> None:
        with pytest.raises(ValidationError):
            User.new("42", NOW).complete_registration(" ", NOW)

    def test_block_and_unblock(self) -> None:
        user = User.new("42", NOW)
        user.block("fraud", NOW)
        assert user.is_blocked and user.block_reason == "fraud"
        user.unblock(NOW)
        assert not user.is_blocked and user.block_reason is None


class TestStats:
    def test_completed_outcome(self) -> None:
        user = User.new("42", NOW)
        user.record_outcome(TransactionState.COMPLETED, 500_000, NOW)
        assert user.stats.total_transactions == 1
        assert user.stats.completed_transactions == 1
        assert user.stats.total_volume == 500_000
        assert user.stats.success_rate == 1.0

    def test_cancelled_and_failed_count_as_cancelled(self) -> None:
        user = User.new("42", NOW)
        user.record_outcome(TransactionState.CANCELLED, 500_000, NOW)
        user.record_outcome(TransactionState.FAILED, 500_000, NOW)
        assert user.stats.cancelled_transactions == 2
        assert user.stats.total_volume == 0

    def test_non_terminal_outcome_rejected(self) -> None:
        with pytest.raises(ValueError):
            User.new("42", NOW).record_outcome(TransactionState.PAYMENT_PENDING, 1, NOW)

class TestSerialization:
    def test_round_trip(self) -> None:
        user = User.new("42", NOW, username="sara", role=UserRole.ADMIN)
        user.record_outcome(TransactionState.COMPLETED, 100_000, NOW)
        user.block("spam", NOW)
        assert User.from_record(user.to_record()) == user
        assert user.to_record()["role"] == "admin"

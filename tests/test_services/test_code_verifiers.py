"""Transfer code verifiers and their factory."""

from __future__ import annotations

import pytest

from account_escrow.config import Settings
from account_escrow.domain.enums import CodeVerdict
from account_escrow.domain.ports import CodeVerifier
from account_escrow.domain.transaction import Transaction
from account_escrow.infrastructure.memory import InMemoryRepository
from account_escrow.services.escrow_service import EscrowService
from account_escrow.verifiers import (
    CodeVerifierFactory,
    FormatCodeVerifier,
    ManualReviewCodeVerifier,
    MockCodeVerifier,
)
from support import DESCRIPTION, SELLER, ManualClock, RecordingNotifier


@pytest.fixture
def transaction(clock: ManualClock) -> Transaction:
    return Transaction.new(SELLER, "gmail", 100_000, DESCRIPTION, clock.now())


class TestFactory:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("manual", ManualReviewCodeVerifier),
            ("format", FormatCodeVerifier),
            ("mock", MockCodeVerifier),
        ],
    )
    def test_creates_each_type(self, name: str, expected: type) -> None:
        verifier = CodeVerifierFactory.create(name)
        assert isinstance(verifier, expected)
        assert isinstance(verifier, CodeVerifier)

    def test_passes_config(self) -> None:
        verifier = CodeVerifierFactory.create("mock", should_pass=False)
        assert isinstance(verifier, MockCodeVerifier)

    def test_unknown_type(self) -> None:
        with pytest.raises(ValueError, match="Unknown code verifier type"):
            CodeVerifierFactory.create("telepathy")

    def test_missing_type(self) -> None:
        with pytest.raises(ValueError, match="required"):
            CodeVerifierFactory.create("")

    def test_supported_types(self) -> None:
        assert CodeVerifierFactory.get_supported_types() == ["manual", "format", "mock"]


class TestVerdicts:
    @pytest.mark.asyncio
    async def test_manual_always_pending(self, transaction: Transaction) -> None:
        verdict = await ManualReviewCodeVerifier().verify(transaction, "AB12CD")
        assert verdict is CodeVerdict.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("AB12CD", CodeVerdict.VERIFIED),
            ("123", CodeVerdict.REJECTED),
            ("AB 12", CodeVerdict.REJECTED),
        ],
    )
    async def test_format(
        self, transaction: Transaction, code: str, expected: CodeVerdict
    ) -> None:
        assert await FormatCodeVerifier().verify(transaction, code) is expected

    @pytest.mark.asyncio
    async def test_mock_records_calls(self, transaction: Transaction) -> None:
        verifier = MockCodeVerifier(verdict="pending")

        verdict = await verifier.verify(transaction, "AB12CD")

        assert verdict is CodeVerdict.PENDING
        assert verifier.calls == [(transaction.id, "AB12CD")]


class TestConfiguredVerifier:
    @pytest.mark.asyncio
    async def test_format_verifier_uses_configured_lengths(self, transaction: Transaction) -> None:
        settings = Settings(
            _env_file=None,
            code_verifier="format",
            transfer_code_min_length=6,
            transfer_code_max_length=12,
        )

        service = EscrowService.from_settings(settings, InMemoryRepository(), RecordingNotifier())

        verifier = service.code_verifier
        assert isinstance(verifier, FormatCodeVerifier)
        assert await verifier.verify(transaction, "AB12CD34EF56") is CodeVerdict.VERIFIED
        assert await verifier.verify(transaction, "AB12") is CodeVerdict.REJECTED

    def test_manual_is_the_default(self) -> None:
        service = EscrowService.from_settings(
            Settings(_env_file=None), InMemoryRepository(), RecordingNotifier()
        )
        assert isinstance(service.code_verifier, ManualReviewCodeVerifier)

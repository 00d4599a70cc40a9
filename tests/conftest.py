"""Shared test fixtures for the account escrow test suite.

Provides:
    - A manual clock the tests advance explicitly
    - A notifier that records (or refuses) every message
    - An in-memory repository and a wired EscrowService whose seller, buyer
      and outsider have completed registration
    - ``drive``: pushes a fresh transaction along the happy path to a state
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from account_escrow.domain.enums import TransactionState
from account_escrow.domain.ports import CodeVerifier
from account_escrow.domain.validation import EscrowLimits
from account_escrow.infrastructure.memory import InMemoryRepository
from account_escrow.services.escrow_service import EscrowService
from account_escrow.services.timeouts import TimeoutRegistry
from account_escrow.verifiers import ManualReviewCodeVerifier

from support import (
    ADMIN,
    BUYER,
    CARD_DETAILS,
    DESCRIPTION,
    REGISTERED,
    SELLER,
    ManualClock,
    RecordingNotifier,
)


# ---------------------------------------------------------------------------
# Core Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def limits() -> EscrowLimits:
    return EscrowLimits()


@pytest.fixture
def code_verifier() -> CodeVerifier:
    """Override in a test module to change how transfer codes are judged."""
    return ManualReviewCodeVerifier()


@pytest_asyncio.fixture
async def service(
    repository: InMemoryRepository,
    notifier: RecordingNotifier,
    clock: ManualClock,
    limits: EscrowLimits,
    code_verifier: CodeVerifier,
) -> EscrowService:
    escrow = EscrowService(
        repository,
        notifier,
        clock=clock,
        limits=limits,
        timeouts=TimeoutRegistry(),
        code_verifier=code_verifier,
        admin_ids=[ADMIN],
    )
    for user_id, name in REGISTERED.items():
        await escrow.users.register(user_id, name)
    return escrow


@pytest.fixture
def drive(service: EscrowService):
    """Return an async helper that creates a transaction and walks it to ``target``."""

    async def _drive(target: TransactionState, claim: bool = True):
        tx = await service.create_transaction(SELLER, "gmail", 500_000, DESCRIPTION)
        if target is TransactionState.INITIATED:
            return tx
        tx = await service.start_eligibility_check(tx.id, SELLER)
        if target is TransactionState.ELIGIBILITY_CHECK:
            return tx
        tx = await service.confirm_eligibility(tx.id, SELLER)
        if target is TransactionState.PAYMENT_PENDING:
            return tx
        await service.submit_payment_details(tx.id, SELLER, CARD_DETAILS)
        tx = await service.approve_payment(tx.id, ADMIN)
        if claim:
            tx = await service.claim_listing(tx.id, BUYER)
        if target is TransactionState.PAYMENT_VERIFIED:
            return tx
        tx = await service.start_transfer(tx.id, SELLER)
        if target is TransactionState.ACCOUNT_TRANSFER:
            return tx
        await service.submit_new_email(tx.id, SELLER, "buyer@example.com")
        await service.request_transfer_code(tx.id, SELLER)
        tx = await service.submit_transfer_code(tx.id, SELLER, "AB12CD")
        if tx.state is TransactionState.ACCOUNT_TRANSFER:
            tx = await service.confirm_transfer_code(tx.id, ADMIN)
        if target is TransactionState.BUYER_VERIFICATION:
            return tx
        tx = await service.accept_account(tx.id, BUYER)
        if target is TransactionState.FINAL_VERIFICATION:
            return tx
        await service.upload_logout_video(tx.id, SELLER, "file-video-1", duration=60)
        tx = await service.approve_video(tx.id, ADMIN)
        assert tx.state is TransactionState.COMPLETED
        return tx

    return _drive

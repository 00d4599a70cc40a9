"""SqlRepository against an in-memory SQLite database."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from account_escrow.domain.enums import EntityKind, Phase, TransactionState, UserRole
from account_escrow.domain.transaction import Transaction
from account_escrow.domain.user import User
from account_escrow.infrastructure.database import Base, SqlRepository
from account_escrow.services.escrow_service import EscrowService
from account_escrow.services.timeouts import TimeoutRegistry
from support import ADMIN, BUYER, CARD_DETAILS, DESCRIPTION, SELLER, ManualClock, RecordingNotifier

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def sql_repository():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    yield SqlRepository(factory)
    await engine.dispose()


class TestSqlRepository:
    @pytest.mark.asyncio
    async def test_missing_entity(self, sql_repository: SqlRepository) -> None:
        assert await sql_repository.get(EntityKind.TRANSACTION, "nope") is None
        assert await sql_repository.get(EntityKind.USER, "nope") is None

    @pytest.mark.asyncio
    async def test_transaction_round_trip(
        self, sql_repository: SqlRepository, clock: ManualClock
    ) -> None:
        tx = Transaction.new(SELLER, "gmail", 250_000, DESCRIPTION, clock.now())
        tx.set_state(TransactionState.ELIGIBILITY_CHECK, "started", SELLER, clock.now())
        tx.update_data(Phase.ELIGIBILITY, clock.now(), has_capability=True)

        await sql_repository.save(tx)
        loaded = await sql_repository.get(EntityKind.TRANSACTION, tx.id)

        assert loaded.to_record() == tx.to_record()

    @pytest.mark.asyncio
    async def test_save_replaces(self, sql_repository: SqlRepository, clock: ManualClock) -> None:
        tx = Transaction.new(SELLER, "gmail", 250_000, DESCRIPTION, clock.now())
        await sql_repository.save(tx)

        clock.advance(minutes=5)
        tx.set_state(TransactionState.CANCELLED, "changed mind", SELLER, clock.now())
        await sql_repository.save(tx)

        loaded = await sql_repository.get(EntityKind.TRANSACTION, tx.id)
        assert loaded.state is TransactionState.CANCELLED
        assert loaded.cancelled_at == clock.now()
        assert len(await sql_repository.query(EntityKind.TRANSACTION, lambda _: True)) == 1

    @pytest.mark.asyncio
    async def test_query_filters_oldest_first(
        self, sql_repository: SqlRepository, clock: ManualClock
    ) -> None:
        first = Transaction.new(SELLER, "gmail", 100_000, DESCRIPTION, clock.now())
        clock.advance(minutes=1)
        other = Transaction.new("seller-2", "gmail", 100_000, DESCRIPTION, clock.now())
        clock.advance(minutes=1)
        second = Transaction.new(SELLER, "supercell_id", 100_000, DESCRIPTION, clock.now())
        for tx in (second, other, first):
            await sql_repository.save(tx)

        mine = await sql_repository.query(EntityKind.TRANSACTION, lambda t: t.seller_id == SELLER)

        assert [t.id for t in mine] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_user_round_trip(self, sql_repository: SqlRepository, clock: ManualClock) -> None:
        user = User.new(ADMIN, clock.now(), role=UserRole.ADMIN)
        user.block("test", clock.now())

        await sql_repository.save(user)
        loaded = await sql_repository.get(EntityKind.USER, ADMIN)

        assert loaded.is_admin
        assert loaded.is_blocked
        assert loaded.to_record() == user.to_record()


class TestServiceOnSql:
    @pytest.mark.asyncio
    async def test_lifecycle_persists(
        self, sql_repository: SqlRepository, clock: ManualClock
    ) -> None:
        service = EscrowService(
            sql_repository,
            RecordingNotifier(),
            clock=clock,
            timeouts=TimeoutRegistry(),
            admin_ids=[ADMIN],
        )
        await service.users.register(SELLER, "Ali")
        await service.users.register(BUYER, "Sara")
        tx = await service.create_transaction(SELLER, "gmail", 300_000, DESCRIPTION)
        await service.start_eligibility_check(tx.id, SELLER)
        await service.confirm_eligibility(tx.id, SELLER)
        await service.submit_payment_details(tx.id, SELLER, CARD_DETAILS)
        await service.approve_payment(tx.id, ADMIN)
        await service.claim_listing(tx.id, BUYER)

        stored = await sql_repository.get(EntityKind.TRANSACTION, tx.id)

        assert stored.state is TransactionState.PAYMENT_VERIFIED
        assert stored.buyer_id == BUYER
        assert stored.data.payment.card_details == CARD_DETAILS
        assert len(stored.history) == 3

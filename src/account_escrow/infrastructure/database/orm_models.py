"""SQLAlchemy 2.0 ORM models for the account escrow service.

Two tables:
    1. transactions — one row per escrow trade.
    2. users        — sellers, buyers and admins.

Design decisions:
    - The full entity record lives in a JSON column. Phase data, history,
      evidence files and admin notes change shape per phase and are always
      read together with their transaction.
    - Hot-path query columns (state, seller_id, buyer_id) are copied out of
      the record and indexed.
    - CHECK constraint on state to prevent invalid enum values at DB level.
    - JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development).
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from account_escrow.domain.enums import TransactionState

RecordJSON = JSON().with_variant(JSONB(), "postgresql")

_STATE_VALUES = ", ".join(f"'{state.value}'" for state in TransactionState)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. transactions
# ---------------------------------------------------------------------------
class TransactionRow(Base):
    """A stored escrow transaction."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    short_id: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    # --- Participants ---
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False)
    buyer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)

    # --- Status (Enum-guarded) ---
    state: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Current lifecycle state (guarded by TransactionStateMachine)",
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # --- Full entity ---
    record: Mapped[dict] = mapped_column(RecordJSON, nullable=False)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(f"state IN ({_STATE_VALUES})", name="ck_transaction_valid_state"),
        CheckConstraint("amount > 0", name="ck_transaction_positive_amount"),
        Index("idx_transaction_state", "state"),
        Index("idx_transaction_seller", "seller_id"),
        Index("idx_transaction_buyer", "buyer_id"),
        Index("idx_transaction_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<TransactionRow id={self.id} state={self.state} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 2. users
# ---------------------------------------------------------------------------
class UserRow(Base):
    """A stored user profile."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    record: Mapped[dict] = mapped_column(RecordJSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_user_blocked", "is_blocked"),)

    def __repr__(self) -> str:
        return f"<UserRow id={self.id} role={self.role} blocked={self.is_blocked}>"

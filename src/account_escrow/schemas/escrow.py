"""Pydantic schemas for the escrow API.

These schemas define the request/response shapes for the REST API. They are
separate from the domain entities so the wire format can stay stable while
the entities evolve.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from account_escrow.domain.transaction import Transaction

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateTransactionRequest(BaseModel):
    """Request body for opening a new sale."""

    account_type: str = Field(
        ...,
        description="Kind of game account being sold",
        examples=["gmail", "supercell_id"],
    )
    amount: int = Field(
        ...,
        gt=0,
        description="Sale price in whole currency units",
        examples=[150_000],
    )
    description: str = Field(
        ...,
        description="What the buyer gets: level, trophies, linked games",
        examples=["Level 14 account with 6000 trophies and all legendaries"],
    )
    idempotency_key: str | None = Field(
        default=None,
        description="Optional idempotency key to prevent duplicate transactions",
    )


class ActionRequest(BaseModel):
    """Request body for a step action. Keys depend on the action."""

    payload: dict[str, Any] = Field(
        default_factory=dict,
        description='Action arguments, e.g. {"card_details": "..."} or {"reason": "..."}',
    )


class RegisterUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    username: str | None = Field(default=None, max_length=64)


class BlockUserRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class HistoryEntryResponse(BaseModel):
    """One recorded state change."""

    model_config = ConfigDict(from_attributes=True)

    from_state: str
    to_state: str
    timestamp: datetime
    note: str
    actor_id: str


class EvidenceFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    file_type: str
    file_ref: str
    uploaded_by: str
    uploaded_at: datetime
    size: int | None = None
    duration: int | None = None


class AdminNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    note: str
    admin_id: str
    timestamp: datetime


class TransactionSummaryResponse(BaseModel):
    """Public listing view. Carries no phase data or evidence."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    short_id: str
    state: str
    account_type: str
    amount: int
    description: str
    seller_id: str
    buyer_id: str | None
    created_at: datetime
    updated_at: datetime


class TransactionResponse(TransactionSummaryResponse):
    """Full transaction as seen by a party or an admin."""

    data: dict[str, Any]
    files: list[EvidenceFileResponse]
    history: list[HistoryEntryResponse]
    admin_notes: list[AdminNoteResponse]
    retry_attempts: dict[str, int]
    completed_at: datetime | None
    cancelled_at: datetime | None
    available_actions: list[str] = Field(
        default_factory=list,
        description="Actions the caller may invoke in the current state",
    )

    @classmethod
    def from_entity(
        cls, tx: Transaction, available_actions: list[str] | None = None
    ) -> TransactionResponse:
        return cls(
            id=tx.id,
            short_id=tx.short_id,
            state=tx.state.value,
            account_type=str(tx.account_type),
            amount=tx.amount,
            description=tx.description,
            seller_id=tx.seller_id,
            buyer_id=tx.buyer_id,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
            data=tx.data.to_record(),
            files=[EvidenceFileResponse.model_validate(f) for f in tx.files],
            history=[HistoryEntryResponse.model_validate(h) for h in tx.history],
            admin_notes=[AdminNoteResponse.model_validate(n) for n in tx.admin_notes],
            retry_attempts=dict(tx.retry_attempts),
            completed_at=tx.completed_at,
            cancelled_at=tx.cancelled_at,
            available_actions=available_actions or [],
        )


class PendingReviewResponse(BaseModel):
    reason: str
    transaction: TransactionSummaryResponse


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None
    username: str | None
    role: str
    is_registered: bool
    is_blocked: bool
    block_reason: str | None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Overall health: ok or degraded")
    version: str
    database: str = Field(description="Database connectivity status")
    redis: str = Field(description="Redis connectivity status")

"""Pydantic API schemas."""

from account_escrow.schemas.escrow import (
    ActionRequest,
    AdminNoteResponse,
    BlockUserRequest,
    CreateTransactionRequest,
    EvidenceFileResponse,
    HealthResponse,
    HistoryEntryResponse,
    PendingReviewResponse,
    RegisterUserRequest,
    TransactionResponse,
    TransactionSummaryResponse,
    UserResponse,
)

__all__ = [
    "ActionRequest",
    "AdminNoteResponse",
    "BlockUserRequest",
    "CreateTransactionRequest",
    "EvidenceFileResponse",
    "HealthResponse",
    "HistoryEntryResponse",
    "PendingReviewResponse",
    "RegisterUserRequest",
    "TransactionResponse",
    "TransactionSummaryResponse",
    "UserResponse",
]

"""Admin routes.

Every route requires the caller to be an admin. Arbitration on a single
transaction (force_cancel, abort_transaction, resolve_issue, reviews) uses
the generic action endpoint.

Routes:
    GET    /api/v1/admin/pending                  — Review queue
    GET    /api/v1/admin/stats                    — System statistics
    POST   /api/v1/admin/users/{id}/block         — Block a user
    POST   /api/v1/admin/users/{id}/unblock       — Unblock a user
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from account_escrow.api.deps import get_actor_id, get_escrow_service
from account_escrow.schemas.escrow import (
    BlockUserRequest,
    PendingReviewResponse,
    TransactionSummaryResponse,
    UserResponse,
)
from account_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


@router.get(
    "/pending",
    response_model=list[PendingReviewResponse],
    summary="Transactions waiting on an admin",
)
async def pending_reviews(
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> list[PendingReviewResponse]:
    pending = await svc.list_pending_reviews(actor_id)
    return [
        PendingReviewResponse(
            reason=item["reason"],
            transaction=TransactionSummaryResponse.model_validate(item["transaction"]),
        )
        for item in pending
    ]


@router.get("/stats", summary="System statistics")
async def system_stats(
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> dict[str, Any]:
    return await svc.system_stats(actor_id)


@router.post("/users/{user_id}/block", response_model=UserResponse, summary="Block a user")
async def block_user(
    user_id: str,
    request: BlockUserRequest,
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> UserResponse:
    user = await svc.block_user(actor_id, user_id, request.reason)
    return UserResponse.model_validate(user)


@router.post("/users/{user_id}/unblock", response_model=UserResponse, summary="Unblock a user")
async def unblock_user(
    user_id: str,
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> UserResponse:
    user = await svc.unblock_user(actor_id, user_id)
    return UserResponse.model_validate(user)

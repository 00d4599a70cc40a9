"""Marketplace listing routes.

Routes:
    GET    /api/v1/listings    — Verified sales nobody has claimed yet
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from account_escrow.api.deps import get_actor_id, get_escrow_service
from account_escrow.schemas.escrow import TransactionSummaryResponse
from account_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/listings", tags=["Listings"])


@router.get(
    "",
    response_model=list[TransactionSummaryResponse],
    summary="Browse available listings",
)
async def list_available(
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> list[TransactionSummaryResponse]:
    """Claim one with the ``claim_listing`` action."""
    listings = await svc.list_available_listings(actor_id)
    return [TransactionSummaryResponse.model_validate(tx) for tx in listings]

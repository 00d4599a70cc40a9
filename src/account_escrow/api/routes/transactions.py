"""Transaction REST API routes.

Every step of a sale goes through one generic action endpoint, so new
actions only need a handler, not a route.

Routes:
    POST   /api/v1/transactions                         — Open a new sale
    GET    /api/v1/transactions                         — The caller's transactions
    GET    /api/v1/transactions/{id}                    — Full transaction details
    GET    /api/v1/transactions/{id}/history            — State change trail
    POST   /api/v1/transactions/{id}/actions/{action}   — Run a step action
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from account_escrow.api.deps import (
    get_actor_id,
    get_app_settings,
    get_escrow_service,
    get_limited_actor_id,
)
from account_escrow.config import Settings
from account_escrow.infrastructure.redis_client import (
    claim_idempotency,
    get_redis,
    is_redis_available,
    release_idempotency,
)
from account_escrow.logging_config import get_logger
from account_escrow.schemas.escrow import (
    ActionRequest,
    CreateTransactionRequest,
    HistoryEntryResponse,
    TransactionResponse,
    TransactionSummaryResponse,
)
from account_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=201,
    summary="Open a new sale",
)
async def create_transaction(
    request: CreateTransactionRequest,
    actor_id: str = Depends(get_limited_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
    settings: Settings = Depends(get_app_settings),
) -> TransactionResponse:
    """Create a transaction in INITIATED state with the caller as seller."""
    redis = get_redis() if request.idempotency_key and is_redis_available() else None
    if redis is not None:
        await claim_idempotency(
            redis, request.idempotency_key, settings.redis_idempotency_ttl_seconds
        )
    try:
        tx = await svc.create_transaction(
            seller_id=actor_id,
            account_type=request.account_type,
            amount=request.amount,
            description=request.description,
        )
    except Exception:
        if redis is not None:
            await release_idempotency(redis, request.idempotency_key)
        raise
    return TransactionResponse.from_entity(tx, await svc.available_actions(tx, actor_id))


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[TransactionSummaryResponse],
    summary="List the caller's transactions",
)
async def list_my_transactions(
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> list[TransactionSummaryResponse]:
    txs = await svc.list_user_transactions(actor_id)
    return [TransactionSummaryResponse.model_validate(tx) for tx in txs]


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction details",
)
async def get_transaction(
    transaction_id: str,
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> TransactionResponse:
    """Return the full transaction and the actions the caller may take next."""
    tx = await svc.get_transaction(transaction_id, actor_id)
    return TransactionResponse.from_entity(tx, await svc.available_actions(tx, actor_id))


@router.get(
    "/{transaction_id}/history",
    response_model=list[HistoryEntryResponse],
    summary="Get the state change trail",
)
async def get_history(
    transaction_id: str,
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> list[HistoryEntryResponse]:
    history = await svc.get_history(transaction_id, actor_id)
    return [HistoryEntryResponse.model_validate(entry) for entry in history]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@router.post(
    "/{transaction_id}/actions/{action}",
    response_model=TransactionResponse,
    summary="Run a step action",
)
async def run_action(
    transaction_id: str,
    action: str,
    request: ActionRequest | None = None,
    actor_id: str = Depends(get_limited_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> TransactionResponse:
    """Run ``action`` for the caller. The body's ``payload`` holds its arguments."""
    payload = request.payload if request is not None else {}
    tx = await svc.dispatch(transaction_id, action, actor_id, payload)
    return TransactionResponse.from_entity(tx, await svc.available_actions(tx, actor_id))

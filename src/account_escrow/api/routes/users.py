"""User profile routes.

Routes:
    GET    /api/v1/users/me             — The caller's profile
    POST   /api/v1/users/me/register    — Complete registration
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from account_escrow.api.deps import get_actor_id, get_escrow_service
from account_escrow.schemas.escrow import RegisterUserRequest, UserResponse
from account_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=UserResponse, summary="Get the caller's profile")
async def get_me(
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> UserResponse:
    user = await svc.users.touch(actor_id)
    return UserResponse.model_validate(user)


@router.post("/me/register", response_model=UserResponse, summary="Complete registration")
async def register(
    request: RegisterUserRequest,
    actor_id: str = Depends(get_actor_id),
    svc: EscrowService = Depends(get_escrow_service),
) -> UserResponse:
    user = await svc.users.register(actor_id, request.name, request.username)
    return UserResponse.model_validate(user)

"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the escrow
service, the caller's identity and the rate limiter. The service and the
limiter are created once in the application lifespan and kept on
``app.state``.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request

from account_escrow.config import Settings, get_settings
from account_escrow.domain.exceptions import UnauthorizedError
from account_escrow.infrastructure.rate_limiter import SlidingWindowRateLimiter
from account_escrow.services.escrow_service import EscrowService


def get_escrow_service(request: Request) -> EscrowService:
    """Provide the application's EscrowService."""
    service = getattr(request.app.state, "escrow_service", None)
    if service is None:
        raise RuntimeError("Escrow service not initialized. Is the lifespan running?")
    return service


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Provide the per-actor rate limiter."""
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("Rate limiter not initialized. Is the lifespan running?")
    return limiter


async def get_actor_id(x_actor_id: str = Header(default="", alias="X-Actor-Id")) -> str:
    """Identity of the caller, as asserted by the chat bridge in front of the API."""
    actor_id = x_actor_id.strip()
    if not actor_id:
        raise UnauthorizedError("", "request", "missing X-Actor-Id header")
    return actor_id


async def get_limited_actor_id(
    actor_id: str = Depends(get_actor_id),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> str:
    """Caller identity, counted against the caller's rate limit."""
    limiter.hit(actor_id)
    return actor_id


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()

"""Listing: claiming a verified listing, and early cancellation by a party."""

from __future__ import annotations

from account_escrow.domain.enums import (
    SELLER_CANCELLABLE_STATES,
    ActorRole,
    NotificationKind,
    TransactionState,
)
from account_escrow.services.handlers.registry import ActionContext, registry


@registry.action("claim_listing", ActorRole.PROSPECT, TransactionState.PAYMENT_VERIFIED)
async def claim_listing(ctx: ActionContext) -> None:
    ctx.transaction.assign_buyer(ctx.actor_id, ctx.now)
    ctx.notify(ctx.transaction.seller_id, NotificationKind.LISTING_CLAIMED, buyer_id=ctx.actor_id)
    ctx.notify_admins(NotificationKind.LISTING_CLAIMED, buyer_id=ctx.actor_id)


@registry.action("cancel_transaction", ActorRole.PARTY, *SELLER_CANCELLABLE_STATES)
async def cancel_transaction(ctx: ActionContext) -> None:
    """Walk away before the account changes hands. Later stages need an admin."""
    reason = ctx.text("reason") or "no reason given"
    role = ctx.transaction.role_of(ctx.actor_id).value
    ctx.transition("cancel_transaction", f"Cancelled by {role}: {reason}")
    ctx.notify_parties(NotificationKind.TRANSACTION_CANCELLED, reason=reason)
    ctx.notify_admins(NotificationKind.TRANSACTION_CANCELLED, reason=reason)

"""Eligibility phase: the seller attests whether the account can be handed over.

A "no" cancels the trade outright. The two-week cool-down before relisting
is business guidance only and is not enforced here.
"""

from __future__ import annotations

from account_escrow.domain.enums import ActorRole, NotificationKind, Phase, TransactionState
from account_escrow.services.handlers.registry import ActionContext, registry


@registry.action("start_eligibility_check", ActorRole.SELLER, TransactionState.INITIATED)
async def start_eligibility_check(ctx: ActionContext) -> None:
    ctx.transition("start_eligibility_check", "Seller started eligibility check")


@registry.action("confirm_eligibility", ActorRole.SELLER, TransactionState.ELIGIBILITY_CHECK)
async def confirm_eligibility(ctx: ActionContext) -> None:
    ctx.update(
        Phase.ELIGIBILITY,
        has_capability=True,
        confirmed_at=ctx.now,
        confirmed_by=ctx.actor_id,
    )
    ctx.transition("confirm_eligibility", "Seller confirmed the account can be transferred")
    ctx.notify(ctx.actor_id, NotificationKind.ELIGIBILITY_CONFIRMED)


@registry.action("reject_eligibility", ActorRole.SELLER, TransactionState.ELIGIBILITY_CHECK)
async def reject_eligibility(ctx: ActionContext) -> None:
    ctx.update(
        Phase.ELIGIBILITY,
        has_capability=False,
        confirmed_at=ctx.now,
        confirmed_by=ctx.actor_id,
    )
    ctx.transition("reject_eligibility", "Seller reported the account cannot be transferred")
    ctx.notify(ctx.actor_id, NotificationKind.ELIGIBILITY_REJECTED)

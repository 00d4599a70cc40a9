"""Buyer verification phase.

The buyer either accepts the account (advance to final verification) or
reports an issue. An issue keeps the trade where it is, records an admin
note and puts the transaction on arbitration hold: the timeout sweeper
leaves it alone until an admin resolves the issue or cancels the trade.
"""

from __future__ import annotations

from account_escrow.domain.enums import ActorRole, NotificationKind, Phase, TransactionState
from account_escrow.domain.exceptions import ValidationError
from account_escrow.domain.validation import require, validate_issue
from account_escrow.services.handlers.registry import ActionContext, registry

BUYER_VERIFICATION = TransactionState.BUYER_VERIFICATION


@registry.action("accept_account", ActorRole.BUYER, BUYER_VERIFICATION)
async def accept_account(ctx: ActionContext) -> None:
    fields = {"satisfied": True, "verified_at": ctx.now}
    feedback = ctx.text("feedback")
    if feedback:
        fields["feedback"] = feedback
    if ctx.transaction.has_open_issue:
        fields["issue_resolved"] = True
    ctx.update(Phase.BUYER_VERIFICATION, **fields)
    ctx.transition("accept_account", "Buyer confirmed the account works")
    ctx.notify(ctx.transaction.seller_id, NotificationKind.BUYER_SATISFIED)


@registry.action("report_issue", ActorRole.BUYER, BUYER_VERIFICATION)
async def report_issue(ctx: ActionContext) -> None:
    issue = ctx.text("issue")
    require(validate_issue(issue, ctx.limits))

    ctx.update(
        Phase.BUYER_VERIFICATION,
        satisfied=False,
        issue=issue,
        reported_at=ctx.now,
        issue_resolved=False,
    )
    ctx.transaction.add_admin_note(f"Buyer reported issue: {issue}", ctx.actor_id, ctx.now)
    ctx.transition("report_issue", "Buyer reported an issue; awaiting arbitration")
    ctx.notify(ctx.transaction.seller_id, NotificationKind.ISSUE_REPORTED, issue=issue)
    ctx.notify_admins(NotificationKind.ISSUE_REPORTED, issue=issue)


@registry.action("resolve_issue", ActorRole.ADMIN, BUYER_VERIFICATION)
async def resolve_issue(ctx: ActionContext) -> None:
    """Close an open issue so the buyer can decide again."""
    if not ctx.transaction.has_open_issue:
        raise ValidationError("there is no open issue to resolve")
    resolution = ctx.text("resolution") or "resolved by admin"
    ctx.update(Phase.BUYER_VERIFICATION, issue_resolved=True)
    ctx.transaction.add_admin_note(f"Issue resolved: {resolution}", ctx.actor_id, ctx.now)
    # Restarts the buyer's decision window.
    ctx.engine.set_state(
        ctx.transaction, BUYER_VERIFICATION, f"Issue resolved by admin: {resolution}", ctx.actor_id
    )
    ctx.notify_parties(NotificationKind.ISSUE_RESOLVED, resolution=resolution)

"""Admin arbitration: force-cancel, system abort and notes.

These bypass the party checks but never the transition table: a terminal
transaction cannot be cancelled or aborted again.
"""

from __future__ import annotations

from account_escrow.domain.enums import ActorRole, NotificationKind
from account_escrow.domain.exceptions import ValidationError
from account_escrow.services.handlers.registry import (
    ALL_STATES,
    NON_TERMINAL_STATES,
    ActionContext,
    registry,
)


def _reason(ctx: ActionContext, key: str = "reason") -> str:
    reason = ctx.text(key)
    if not reason:
        raise ValidationError(f"{key} is required")
    return reason


@registry.action("force_cancel", ActorRole.ADMIN, *NON_TERMINAL_STATES)
async def force_cancel(ctx: ActionContext) -> None:
    reason = _reason(ctx)
    ctx.transaction.add_admin_note(f"Force-cancelled: {reason}", ctx.actor_id, ctx.now)
    ctx.transition("cancel_transaction", f"Cancelled by admin: {reason}")
    ctx.notify_parties(NotificationKind.TRANSACTION_CANCELLED, reason=reason)


@registry.action("abort_transaction", ActorRole.ADMIN, *NON_TERMINAL_STATES)
async def abort_transaction(ctx: ActionContext) -> None:
    reason = _reason(ctx)
    ctx.transaction.add_admin_note(f"Aborted: {reason}", ctx.actor_id, ctx.now)
    ctx.transition("mark_failed", f"Aborted by admin: {reason}")
    ctx.notify_parties(NotificationKind.TRANSACTION_FAILED, reason=reason)


@registry.action("add_admin_note", ActorRole.ADMIN, *ALL_STATES)
async def add_admin_note(ctx: ActionContext) -> None:
    note = _reason(ctx, "note")
    ctx.transaction.add_admin_note(note, ctx.actor_id, ctx.now)
    ctx.notify_admins(NotificationKind.ADMIN_NOTE_ADDED, exclude=[ctx.actor_id], note=note)

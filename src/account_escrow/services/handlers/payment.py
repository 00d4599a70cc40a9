"""Payment phase: bank-transfer attestation by the seller, approval by an admin.

No payment gateway is involved: the seller submits card details and an
optional receipt, and an admin who is not party to the trade attests that
the money arrived. Approval opens the listing to buyers.
"""

from __future__ import annotations

from account_escrow.domain.enums import (
    ActorRole,
    FileType,
    NotificationKind,
    Phase,
    ReviewStatus,
    TransactionState,
)
from account_escrow.domain.validation import require, validate_card_details, validate_file_size
from account_escrow.services.handlers.registry import ActionContext, registry

RECEIPT_MEDIA = ("photo", "document")


@registry.action("submit_payment_details", ActorRole.SELLER, TransactionState.PAYMENT_PENDING)
async def submit_payment_details(ctx: ActionContext) -> None:
    card_details = ctx.text("card_details")
    require(validate_card_details(card_details, ctx.limits))

    ctx.update(
        Phase.PAYMENT,
        card_details=card_details,
        status=ReviewStatus.PENDING_ADMIN_APPROVAL.value,
        submitted_at=ctx.now,
    )
    ctx.notify_admins(NotificationKind.PAYMENT_SUBMITTED, card_details=card_details)


@registry.action("upload_payment_receipt", ActorRole.SELLER, TransactionState.PAYMENT_PENDING)
async def upload_payment_receipt(ctx: ActionContext) -> None:
    file_ref = ctx.text("file_ref")
    media = ctx.text("media") or "photo"
    size = ctx.integer("size")

    errors = [] if file_ref else ["receipt file reference is required"]
    if media not in RECEIPT_MEDIA:
        errors.append("receipt must be a photo or a document")
    errors.extend(validate_file_size(size, ctx.limits))
    require(errors)

    evidence = ctx.transaction.add_file(
        FileType.PAYMENT_RECEIPT, file_ref, ctx.actor_id, ctx.now, size=size
    )
    ctx.update(Phase.PAYMENT, receipt_file_id=evidence.id)
    ctx.notify_admins(NotificationKind.RECEIPT_UPLOADED, file_id=evidence.id, media=media)


@registry.action("approve_payment", ActorRole.ADMIN, TransactionState.PAYMENT_PENDING)
async def approve_payment(ctx: ActionContext) -> None:
    ctx.update(
        Phase.PAYMENT,
        status=ReviewStatus.APPROVED.value,
        reviewed_by=ctx.actor_id,
        reviewed_at=ctx.now,
    )
    ctx.transition("approve_payment", "Payment approved by admin")
    ctx.notify(ctx.transaction.seller_id, NotificationKind.PAYMENT_APPROVED)


@registry.action("reject_payment", ActorRole.ADMIN, TransactionState.PAYMENT_PENDING)
async def reject_payment(ctx: ActionContext) -> None:
    reason = ctx.text("reason") or "payment could not be confirmed"
    ctx.update(
        Phase.PAYMENT,
        status=ReviewStatus.REJECTED.value,
        reviewed_by=ctx.actor_id,
        reviewed_at=ctx.now,
        rejection_reason=reason,
    )
    ctx.transition("reject_payment", f"Payment rejected by admin: {reason}")
    ctx.notify(ctx.transaction.seller_id, NotificationKind.PAYMENT_REJECTED, reason=reason)

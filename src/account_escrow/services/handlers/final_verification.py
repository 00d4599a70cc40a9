"""Final verification phase: the seller's logout video, reviewed by an admin."""

from __future__ import annotations

from account_escrow.domain.enums import (
    ActorRole,
    FileType,
    NotificationKind,
    Phase,
    ReviewStatus,
    TransactionState,
)
from account_escrow.domain.exceptions import ValidationError
from account_escrow.domain.validation import require, validate_video
from account_escrow.services.handlers.registry import ActionContext, registry

FINAL_VERIFICATION = TransactionState.FINAL_VERIFICATION


def _require_pending_review(ctx: ActionContext) -> None:
    data = ctx.transaction.data.final_verification
    if data is None or data.status != ReviewStatus.PENDING_ADMIN_REVIEW:
        raise ValidationError("no logout video is awaiting review")


@registry.action("upload_logout_video", ActorRole.SELLER, FINAL_VERIFICATION)
async def upload_logout_video(ctx: ActionContext) -> None:
    data = ctx.transaction.data.final_verification
    if data is not None and data.status == ReviewStatus.PENDING_ADMIN_REVIEW:
        raise ValidationError("a logout video is already awaiting review")

    file_ref = ctx.text("file_ref")
    duration = ctx.integer("duration")
    size = ctx.integer("size")
    errors = [] if file_ref else ["video file reference is required"]
    errors.extend(validate_video(duration, size, ctx.limits))
    require(errors)

    evidence = ctx.transaction.add_file(
        FileType.LOGOUT_VIDEO, file_ref, ctx.actor_id, ctx.now, size=size, duration=duration
    )
    ctx.update(
        Phase.FINAL_VERIFICATION,
        video_file_id=evidence.id,
        video_duration=duration,
        status=ReviewStatus.PENDING_ADMIN_REVIEW.value,
        uploaded_at=ctx.now,
    )
    ctx.notify_admins(NotificationKind.VIDEO_UPLOADED, file_id=evidence.id, duration=duration)


@registry.action("approve_video", ActorRole.ADMIN, FINAL_VERIFICATION)
async def approve_video(ctx: ActionContext) -> None:
    _require_pending_review(ctx)
    ctx.update(
        Phase.FINAL_VERIFICATION,
        status=ReviewStatus.APPROVED.value,
        reviewed_by=ctx.actor_id,
        reviewed_at=ctx.now,
    )
    ctx.transition("approve_video", "Logout video approved; transaction completed")
    ctx.notify_parties(NotificationKind.TRANSACTION_COMPLETED)


@registry.action("reject_video", ActorRole.ADMIN, FINAL_VERIFICATION)
async def reject_video(ctx: ActionContext) -> None:
    _require_pending_review(ctx)
    reason = ctx.text("reason") or "video does not show the logout clearly"
    rejections = ctx.transaction.data.final_verification.rejections + 1
    ctx.update(
        Phase.FINAL_VERIFICATION,
        status=ReviewStatus.REJECTED.value,
        reviewed_by=ctx.actor_id,
        reviewed_at=ctx.now,
        rejection_reason=reason,
        rejections=rejections,
    )
    ctx.transition("reject_video", f"Logout video rejected: {reason}")
    ctx.notify(ctx.transaction.seller_id, NotificationKind.VIDEO_REJECTED, reason=reason)

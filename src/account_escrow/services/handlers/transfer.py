"""Account transfer phase.

Steps, all by the seller unless noted:
    1. start_transfer         payment_verified -> account_transfer (needs a buyer)
    2. submit_new_email       the buyer's address the account is moved to
    3. request_transfer_code  the provider sends a code to that address
    4. submit_transfer_code   checked by the configured CodeVerifier:
                                verified -> buyer_verification
                                rejected -> stay; the round is spent
                                pending  -> an admin confirms or rejects
    5. retry_transfer         opens a new round, bounded by the engine's retry
                              ceiling; the closed round moves to ``attempts``

A rejected round accepts neither a new code request nor another code until
retry_transfer opens the next one, so the verifier sees at most one code per
round.

No mail or provider integration lives here; the verifier is the seam.
"""

from __future__ import annotations

from account_escrow.domain.enums import (
    ActorRole,
    CodeVerdict,
    NotificationKind,
    Phase,
    ReviewStatus,
    TransactionState,
)
from account_escrow.domain.exceptions import RetryExhaustedError, ValidationError
from account_escrow.domain.phase_data import CodeAttempt
from account_escrow.domain.validation import require, validate_email, validate_transfer_code
from account_escrow.services.handlers.registry import ActionContext, registry

TRANSFER = TransactionState.ACCOUNT_TRANSFER


def _transfer_status(ctx: ActionContext) -> str | None:
    data = ctx.transaction.data.transfer
    return data.status if data is not None else None


def _ensure_not_in_review(ctx: ActionContext) -> None:
    if _transfer_status(ctx) == ReviewStatus.PENDING_ADMIN_REVIEW:
        raise ValidationError("a transfer code is already awaiting admin review")


def _ensure_round_open(ctx: ActionContext) -> None:
    _ensure_not_in_review(ctx)
    if _transfer_status(ctx) != ReviewStatus.REJECTED:
        return
    attempts = ctx.transaction.retry_count(Phase.TRANSFER)
    if attempts >= ctx.limits.max_retry_attempts:
        raise RetryExhaustedError(ctx.transaction.id, str(Phase.TRANSFER), attempts)
    raise ValidationError("the last code was rejected; start a new round with retry_transfer")


def _mark_verified(ctx: ActionContext, note: str) -> None:
    ctx.update(
        Phase.TRANSFER,
        status=ReviewStatus.VERIFIED.value,
        verified_at=ctx.now,
    )
    ctx.transition("verify_transfer", note)
    ctx.notify_parties(NotificationKind.TRANSFER_VERIFIED)


@registry.action("start_transfer", ActorRole.SELLER, TransactionState.PAYMENT_VERIFIED)
async def start_transfer(ctx: ActionContext) -> None:
    if ctx.transaction.buyer_id is None:
        raise ValidationError("listing has not been claimed by a buyer yet")
    ctx.update(Phase.TRANSFER, status=ReviewStatus.AWAITING_CODE.value)
    ctx.transition("start_transfer", "Seller started the account transfer")
    ctx.notify(ctx.transaction.buyer_id, NotificationKind.TRANSFER_STARTED)


@registry.action("submit_new_email", ActorRole.SELLER, TRANSFER)
async def submit_new_email(ctx: ActionContext) -> None:
    _ensure_not_in_review(ctx)
    email = ctx.text("email")
    require(validate_email(email))
    ctx.update(Phase.TRANSFER, new_email=email, email_submitted_at=ctx.now)


@registry.action("request_transfer_code", ActorRole.SELLER, TRANSFER)
async def request_transfer_code(ctx: ActionContext) -> None:
    _ensure_round_open(ctx)
    data = ctx.transaction.data.transfer
    if data is None or not data.new_email:
        raise ValidationError("submit the new email address before requesting a code")
    ctx.update(
        Phase.TRANSFER,
        code_requested_at=ctx.now,
        status=ReviewStatus.AWAITING_CODE.value,
    )
    ctx.notify(
        ctx.transaction.buyer_id,
        NotificationKind.TRANSFER_CODE_REQUESTED,
        email=data.new_email,
    )


@registry.action("submit_transfer_code", ActorRole.SELLER, TRANSFER)
async def submit_transfer_code(ctx: ActionContext) -> None:
    _ensure_round_open(ctx)
    data = ctx.transaction.data.transfer
    if data is None or data.code_requested_at is None:
        raise ValidationError("request a verification code first")

    code = ctx.text("code")
    require(validate_transfer_code(code, ctx.limits))
    ctx.update(Phase.TRANSFER, code=code, code_submitted_at=ctx.now)

    verdict = await ctx.code_verifier.verify(ctx.transaction, code)
    if verdict == CodeVerdict.VERIFIED:
        _mark_verified(ctx, "Transfer code verified")
    elif verdict == CodeVerdict.REJECTED:
        ctx.update(
            Phase.TRANSFER,
            status=ReviewStatus.REJECTED.value,
            rejection_reason="verification code did not match",
        )
        ctx.notify(ctx.actor_id, NotificationKind.TRANSFER_REJECTED)
    else:
        ctx.update(Phase.TRANSFER, status=ReviewStatus.PENDING_ADMIN_REVIEW.value)
        ctx.notify_admins(NotificationKind.TRANSFER_PENDING_REVIEW, email=data.new_email)


@registry.action("retry_transfer", ActorRole.SELLER, TRANSFER)
async def retry_transfer(ctx: ActionContext) -> None:
    """Start another code round. Raises RetryExhaustedError at the ceiling."""
    _ensure_not_in_review(ctx)
    attempt = ctx.engine.consume_retry(ctx.transaction, Phase.TRANSFER)
    data = ctx.transaction.data.transfer
    closed = CodeAttempt(
        code=data.code,
        requested_at=data.code_requested_at,
        submitted_at=data.code_submitted_at,
        status=data.status,
        reviewed_by=data.reviewed_by,
        rejection_reason=data.rejection_reason,
        closed_at=ctx.now,
    )
    ctx.update(
        Phase.TRANSFER,
        attempts=(*data.attempts, closed),
        status=ReviewStatus.AWAITING_CODE.value,
        code=None,
        code_requested_at=None,
        code_submitted_at=None,
        reviewed_by=None,
        rejection_reason=None,
    )
    ctx.notify(ctx.transaction.buyer_id, NotificationKind.TRANSFER_STARTED, attempt=attempt)


@registry.action("confirm_transfer_code", ActorRole.ADMIN, TRANSFER)
async def confirm_transfer_code(ctx: ActionContext) -> None:
    if _transfer_status(ctx) != ReviewStatus.PENDING_ADMIN_REVIEW:
        raise ValidationError("no transfer code is awaiting review")
    ctx.update(Phase.TRANSFER, reviewed_by=ctx.actor_id)
    _mark_verified(ctx, "Transfer code confirmed by admin")


@registry.action("reject_transfer_code", ActorRole.ADMIN, TRANSFER)
async def reject_transfer_code(ctx: ActionContext) -> None:
    if _transfer_status(ctx) != ReviewStatus.PENDING_ADMIN_REVIEW:
        raise ValidationError("no transfer code is awaiting review")
    reason = ctx.text("reason") or "verification code did not match"
    ctx.update(
        Phase.TRANSFER,
        status=ReviewStatus.REJECTED.value,
        reviewed_by=ctx.actor_id,
        rejection_reason=reason,
    )
    ctx.notify(ctx.transaction.seller_id, NotificationKind.TRANSFER_REJECTED, reason=reason)

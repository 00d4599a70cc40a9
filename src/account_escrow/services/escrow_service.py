"""Escrow Service — application layer for the transaction lifecycle.

This is the layer that coordinates between:
    - Handler registry (which action is legal in which state, for whom)
    - Authorization gateway (is the actor that party, or an admin)
    - Transition engine (locking, the transition choke point, persistence)
    - Timeout registry (phase dwell ceilings)
    - Notification gateway (best-effort delivery after commit)

Every named action method funnels through ``dispatch``:
    1. lock the transaction, load it           -> NotFoundError
    2. authorize the actor for the action       -> UnauthorizedError
    3. check the action is legal in this state  -> InvalidStateTransitionError
    4. fail it first if the step has expired    -> TimeoutExpiredError
    5. run the handler, commit in one save      -> ValidationError, RetryExhaustedError
    6. release the lock, then notify
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from account_escrow.domain.enums import (
    ActorRole,
    CodeVerifierType,
    EntityKind,
    NotificationKind,
    PartyRole,
    ReviewStatus,
    TransactionState,
)
from account_escrow.domain.exceptions import (
    InvalidStateTransitionError,
    RetryExhaustedError,
    TimeoutExpiredError,
    UnauthorizedError,
    ValidationError,
)
from account_escrow.domain.ports import SystemClock
from account_escrow.domain.transaction import Transaction
from account_escrow.domain.validation import EscrowLimits
from account_escrow.logging_config import bind_transaction, get_logger
from account_escrow.services.authorization import DirectoryAuthorizer, authorize
from account_escrow.services.engine import TransitionEngine
from account_escrow.services.handlers import ActionContext, HandlerRegistry
from account_escrow.services.handlers import registry as default_registry
from account_escrow.services.notifications import Notification, NotificationGateway
from account_escrow.services.timeouts import TimeoutRegistry, TimeoutSweeper, expire_transaction
from account_escrow.services.users import UserDirectory
from account_escrow.verifiers import ManualReviewCodeVerifier

if TYPE_CHECKING:
    from collections.abc import Sequence

    from account_escrow.config import Settings
    from account_escrow.domain.ports import Clock, CodeVerifier, Notifier, Repository
    from account_escrow.domain.transaction import HistoryEntry
    from account_escrow.domain.user import User

logger = get_logger(__name__)


class EscrowService:
    """Manages the escrow transaction lifecycle."""

    def __init__(
        self,
        repository: Repository,
        notifier: Notifier,
        *,
        clock: Clock | None = None,
        limits: EscrowLimits | None = None,
        timeouts: TimeoutRegistry | None = None,
        code_verifier: CodeVerifier | None = None,
        admin_ids: Sequence[str] = (),
        registry: HandlerRegistry | None = None,
    ) -> None:
        self._repo = repository
        self._clock = clock or SystemClock()
        self._limits = limits or EscrowLimits()
        self._registry = registry or default_registry
        self._code_verifier = code_verifier or ManualReviewCodeVerifier()

        self.users = UserDirectory(repository, self._clock)
        self.engine = TransitionEngine(
            repository, self._clock, self.users, self._limits.max_retry_attempts
        )
        self.timeouts = timeouts or TimeoutRegistry()
        self.gateway = NotificationGateway(notifier, admin_ids)
        self._authorizer = DirectoryAuthorizer(self.users, admin_ids)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repository: Repository,
        notifier: Notifier,
        code_verifier: CodeVerifier | None = None,
    ) -> EscrowService:
        from account_escrow.verifiers import CodeVerifierFactory

        if code_verifier is None:
            config: dict[str, Any] = {}
            if settings.code_verifier == CodeVerifierType.FORMAT:
                config["limits"] = settings.limits
            code_verifier = CodeVerifierFactory.create(settings.code_verifier, **config)
        return cls(
            repository,
            notifier,
            limits=settings.limits,
            timeouts=TimeoutRegistry(
                settings.timeouts,
                default=settings.timeouts[TransactionState.INITIATED],
            ),
            code_verifier=code_verifier,
            admin_ids=settings.admin_id_list,
        )

    def sweeper(self) -> TimeoutSweeper:
        return TimeoutSweeper(self.engine, self.timeouts, self.gateway)

    @property
    def limits(self) -> EscrowLimits:
        return self._limits

    @property
    def code_verifier(self) -> CodeVerifier:
        return self._code_verifier

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_transaction(
        self,
        seller_id: str,
        account_type: str,
        amount: int,
        description: str,
    ) -> Transaction:
        """Open a new trade in INITIATED state for ``seller_id``."""
        tx = Transaction.new(seller_id, account_type, amount, description, self._clock.now())
        result = tx.validate(self._limits)
        if not result.is_valid:
            logger.warning("transaction.invalid", seller_id=seller_id, errors=result.errors)
            raise ValidationError(result.errors)

        async with self.engine.locked(f"seller:{seller_id}"):
            seller = await self.users.get(seller_id)
            reason = None
            if seller is None or not seller.is_registered:
                reason = "registration required"
            elif seller.is_blocked:
                reason = "account is blocked"
            if reason is not None:
                logger.warning("authorization.denied", actor_id=seller_id, reason=reason)
                raise UnauthorizedError(seller_id, "create_transaction", reason)

            active = await self._repo.query(
                EntityKind.TRANSACTION,
                lambda t: t.seller_id == seller_id and t.is_active,
            )
            if len(active) >= self._limits.max_active_per_seller:
                raise ValidationError(
                    f"seller already has {len(active)} active transactions "
                    f"(limit {self._limits.max_active_per_seller})"
                )
            await self._repo.save(tx)

        logger.info(
            "transaction.created",
            transaction_id=tx.id,
            short_id=tx.short_id,
            seller_id=seller_id,
            amount=tx.amount,
        )
        summary = tx.summary()
        await self.gateway.deliver(
            [
                Notification(seller_id, NotificationKind.TRANSACTION_CREATED, summary),
                *self.gateway.for_admins(NotificationKind.TRANSACTION_CREATED, summary),
            ]
        )
        return tx

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        transaction_id: str,
        action: str,
        actor_id: str,
        payload: dict[str, Any] | None = None,
    ) -> Transaction:
        """Run a registered action on a transaction and return the updated entity."""
        spec = self._registry.get(action)
        if spec is None:
            raise ValidationError(f"unknown action '{action}'")

        outbox: list[Notification] = []
        timed_out_in: TransactionState | None = None
        with bind_transaction(transaction_id):
            try:
                async with self.engine.locked(transaction_id):
                    tx = await self.engine.load(transaction_id)
                    await authorize(self._authorizer, tx, actor_id, spec.role, action)

                    if self._registry.lookup(tx.state, action) is None:
                        logger.warning(
                            "transaction.action_rejected",
                            transaction_id=tx.id,
                            action=action,
                            state=tx.state.value,
                        )
                        raise InvalidStateTransitionError(tx.state.value, action)

                    now = self._clock.now()
                    if (
                        not spec.is_admin_action
                        and not tx.has_open_issue
                        and self.timeouts.is_expired(tx, now)
                    ):
                        timed_out_in = tx.state
                        outbox = await expire_transaction(self.engine, self.gateway, tx)
                    else:
                        previous = tx.state
                        ctx = ActionContext(
                            transaction=tx,
                            action=action,
                            actor_id=actor_id,
                            payload=dict(payload or {}),
                            now=now,
                            engine=self.engine,
                            gateway=self.gateway,
                            limits=self._limits,
                            code_verifier=self._code_verifier,
                        )
                        await spec.handler(ctx)
                        await self.engine.commit(tx, previous)
                        outbox = ctx.outbox
            except RetryExhaustedError as exc:
                await self.gateway.deliver(
                    self.gateway.for_admins(
                        NotificationKind.RETRY_EXHAUSTED,
                        {"id": exc.transaction_id, "phase": exc.phase, "attempts": exc.attempts},
                    )
                )
                raise

            await self.gateway.deliver(outbox)

        if timed_out_in is not None:
            raise TimeoutExpiredError(tx.id, timed_out_in.value)

        logger.info(
            "transaction.action_applied",
            transaction_id=tx.id,
            action=action,
            actor_id=actor_id,
            state=tx.state.value,
        )
        return tx

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    async def start_eligibility_check(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "start_eligibility_check", actor_id)

    async def confirm_eligibility(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "confirm_eligibility", actor_id)

    async def reject_eligibility(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "reject_eligibility", actor_id)

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    async def submit_payment_details(
        self, transaction_id: str, actor_id: str, card_details: str
    ) -> Transaction:
        return await self.dispatch(
            transaction_id, "submit_payment_details", actor_id, {"card_details": card_details}
        )

    async def upload_payment_receipt(
        self,
        transaction_id: str,
        actor_id: str,
        file_ref: str,
        media: str = "photo",
        size: int | None = None,
    ) -> Transaction:
        return await self.dispatch(
            transaction_id,
            "upload_payment_receipt",
            actor_id,
            {"file_ref": file_ref, "media": media, "size": size},
        )

    async def approve_payment(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "approve_payment", actor_id)

    async def reject_payment(
        self, transaction_id: str, actor_id: str, reason: str = ""
    ) -> Transaction:
        return await self.dispatch(transaction_id, "reject_payment", actor_id, {"reason": reason})

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def claim_listing(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "claim_listing", actor_id)

    async def cancel_transaction(
        self, transaction_id: str, actor_id: str, reason: str = ""
    ) -> Transaction:
        return await self.dispatch(
            transaction_id, "cancel_transaction", actor_id, {"reason": reason}
        )

    # ------------------------------------------------------------------
    # Account transfer
    # ------------------------------------------------------------------

    async def start_transfer(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "start_transfer", actor_id)

    async def submit_new_email(
        self, transaction_id: str, actor_id: str, email: str
    ) -> Transaction:
        return await self.dispatch(transaction_id, "submit_new_email", actor_id, {"email": email})

    async def request_transfer_code(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "request_transfer_code", actor_id)

    async def submit_transfer_code(
        self, transaction_id: str, actor_id: str, code: str
    ) -> Transaction:
        return await self.dispatch(transaction_id, "submit_transfer_code", actor_id, {"code": code})

    async def retry_transfer(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "retry_transfer", actor_id)

    async def confirm_transfer_code(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "confirm_transfer_code", actor_id)

    async def reject_transfer_code(
        self, transaction_id: str, actor_id: str, reason: str = ""
    ) -> Transaction:
        return await self.dispatch(
            transaction_id, "reject_transfer_code", actor_id, {"reason": reason}
        )

    # ------------------------------------------------------------------
    # Buyer verification
    # ------------------------------------------------------------------

    async def accept_account(
        self, transaction_id: str, actor_id: str, feedback: str = ""
    ) -> Transaction:
        return await self.dispatch(
            transaction_id, "accept_account", actor_id, {"feedback": feedback}
        )

    async def report_issue(self, transaction_id: str, actor_id: str, issue: str) -> Transaction:
        return await self.dispatch(transaction_id, "report_issue", actor_id, {"issue": issue})

    async def resolve_issue(
        self, transaction_id: str, actor_id: str, resolution: str = ""
    ) -> Transaction:
        return await self.dispatch(
            transaction_id, "resolve_issue", actor_id, {"resolution": resolution}
        )

    # ------------------------------------------------------------------
    # Final verification
    # ------------------------------------------------------------------

    async def upload_logout_video(
        self,
        transaction_id: str,
        actor_id: str,
        file_ref: str,
        duration: int,
        size: int | None = None,
    ) -> Transaction:
        return await self.dispatch(
            transaction_id,
            "upload_logout_video",
            actor_id,
            {"file_ref": file_ref, "duration": duration, "size": size},
        )

    async def approve_video(self, transaction_id: str, actor_id: str) -> Transaction:
        return await self.dispatch(transaction_id, "approve_video", actor_id)

    async def reject_video(
        self, transaction_id: str, actor_id: str, reason: str = ""
    ) -> Transaction:
        return await self.dispatch(transaction_id, "reject_video", actor_id, {"reason": reason})

    # ------------------------------------------------------------------
    # Admin arbitration
    # ------------------------------------------------------------------

    async def force_cancel(self, transaction_id: str, actor_id: str, reason: str) -> Transaction:
        return await self.dispatch(transaction_id, "force_cancel", actor_id, {"reason": reason})

    async def abort_transaction(
        self, transaction_id: str, actor_id: str, reason: str
    ) -> Transaction:
        return await self.dispatch(
            transaction_id, "abort_transaction", actor_id, {"reason": reason}
        )

    async def add_admin_note(self, transaction_id: str, actor_id: str, note: str) -> Transaction:
        return await self.dispatch(transaction_id, "add_admin_note", actor_id, {"note": note})

    async def block_user(self, actor_id: str, user_id: str, reason: str) -> User:
        await self._require_admin(actor_id, "block_user")
        if user_id == actor_id:
            raise ValidationError("admins cannot block themselves")
        await self.users.ensure(user_id)
        return await self.users.block(user_id, reason)

    async def unblock_user(self, actor_id: str, user_id: str) -> User:
        await self._require_admin(actor_id, "unblock_user")
        return await self.users.unblock(user_id)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_transaction(self, transaction_id: str, actor_id: str) -> Transaction:
        """Return the full transaction to a party or an admin."""
        tx = await self.engine.load(transaction_id)
        if not tx.is_participant(actor_id) and not await self._authorizer.is_admin(actor_id):
            raise UnauthorizedError(actor_id, "view_transaction", "participants and admins only")
        return tx

    async def get_history(self, transaction_id: str, actor_id: str) -> list[HistoryEntry]:
        tx = await self.get_transaction(transaction_id, actor_id)
        return list(tx.history)

    async def available_actions(self, tx: Transaction, actor_id: str) -> list[str]:
        """Action names ``actor_id`` could currently invoke on ``tx``."""
        if await self._authorizer.is_blocked(actor_id):
            return []
        role = self._authorizer.resolve_role(tx, actor_id)
        roles: set[ActorRole] = set()
        if role is PartyRole.SELLER:
            roles |= {ActorRole.SELLER, ActorRole.PARTY}
        elif role is PartyRole.BUYER:
            roles |= {ActorRole.BUYER, ActorRole.PARTY}
        else:
            if await self._authorizer.is_registered(actor_id):
                roles.add(ActorRole.PROSPECT)
            if await self._authorizer.is_admin(actor_id):
                roles.add(ActorRole.ADMIN)
        return self._registry.available(tx.state, roles)

    async def list_available_listings(self, actor_id: str) -> list[Transaction]:
        """Verified listings nobody has claimed yet, excluding the caller's own."""
        return await self._repo.query(
            EntityKind.TRANSACTION,
            lambda t: t.state is TransactionState.PAYMENT_VERIFIED
            and t.buyer_id is None
            and t.seller_id != actor_id,
        )

    async def list_user_transactions(self, user_id: str) -> list[Transaction]:
        txs = await self._repo.query(EntityKind.TRANSACTION, lambda t: t.is_participant(user_id))
        return sorted(txs, key=lambda t: t.created_at, reverse=True)

    async def list_pending_reviews(self, actor_id: str) -> list[dict[str, Any]]:
        """Everything waiting on an admin, oldest first."""
        await self._require_admin(actor_id, "list_pending_reviews")
        active = await self._repo.query(EntityKind.TRANSACTION, lambda t: t.is_active)

        pending = []
        for tx in sorted(active, key=lambda t: t.updated_at):
            reason = _review_reason(tx)
            if reason is not None:
                pending.append({"transaction": tx, "reason": reason})
        return pending

    async def system_stats(self, actor_id: str) -> dict[str, Any]:
        await self._require_admin(actor_id, "system_stats")
        txs = await self._repo.query(EntityKind.TRANSACTION, lambda _: True)
        users = await self.users.all()

        by_state = {state.value: 0 for state in TransactionState}
        for tx in txs:
            by_state[tx.state.value] += 1
        completed = [t for t in txs if t.state is TransactionState.COMPLETED]
        finished = sum(1 for t in txs if t.is_terminal)
        durations = [
            (t.completed_at - t.created_at).total_seconds() / 3600
            for t in completed
            if t.completed_at is not None
        ]
        return {
            "users": {
                "total": len(users),
                "registered": sum(1 for u in users if u.is_registered),
                "blocked": sum(1 for u in users if u.is_blocked),
            },
            "transactions": {
                "total": len(txs),
                "active": sum(1 for t in txs if t.is_active),
                "byState": by_state,
            },
            "volume": sum(t.amount for t in completed),
            "successRate": round(len(completed) / finished, 4) if finished else 0.0,
            "averageCompletionHours": (
                round(sum(durations) / len(durations), 2) if durations else 0.0
            ),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _require_admin(self, actor_id: str, action: str) -> None:
        if not await self._authorizer.is_admin(actor_id):
            logger.warning("authorization.denied", actor_id=actor_id, action=action)
            raise UnauthorizedError(actor_id, action, "admin only")


def _review_reason(tx: Transaction) -> str | None:
    data = tx.data
    if (
        tx.state is TransactionState.PAYMENT_PENDING
        and data.payment is not None
        and data.payment.status == ReviewStatus.PENDING_ADMIN_APPROVAL
    ):
        return "payment_approval"
    if (
        tx.state is TransactionState.ACCOUNT_TRANSFER
        and data.transfer is not None
        and data.transfer.status == ReviewStatus.PENDING_ADMIN_REVIEW
    ):
        return "transfer_code_review"
    if tx.has_open_issue:
        return "buyer_issue"
    if (
        tx.state is TransactionState.FINAL_VERIFICATION
        and data.final_verification is not None
        and data.final_verification.status == ReviewStatus.PENDING_ADMIN_REVIEW
    ):
        return "video_review"
    return None

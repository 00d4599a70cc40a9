"""Transaction State Machine Guard.

Uses python-statemachine to enforce legal state transitions at the domain level.
No matter what a handler or the API asks for, an illegal transition
(e.g., initiated -> completed) is rejected before anything is persisted.

The machine is instantiated per check at the transaction's current state.
The derived TRANSITION_TABLE is what Transaction.set_state validates against.

Transition table:
    initiated           -> eligibility_check    (start_eligibility_check)
    eligibility_check   -> payment_pending      (confirm_eligibility)
    eligibility_check   -> cancelled            (reject_eligibility)
    payment_pending     -> payment_verified     (approve_payment)
    payment_pending     -> cancelled            (reject_payment)
    payment_verified    -> account_transfer     (start_transfer)
    account_transfer    -> buyer_verification   (verify_transfer)
    buyer_verification  -> final_verification   (accept_account)
    buyer_verification  -> buyer_verification   (report_issue)
    final_verification  -> completed            (approve_video)
    final_verification  -> final_verification   (reject_video)
    any non-terminal    -> failed               (mark_failed)
    any non-terminal    -> cancelled            (cancel_transaction)
"""

from __future__ import annotations

from functools import lru_cache

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from account_escrow.domain.enums import TransactionState
from account_escrow.domain.exceptions import InvalidStateTransitionError


class TransactionStateMachine(StateMachine):
    """State machine that guards the escrow transaction lifecycle.

    Usage:
        sm = TransactionStateMachine("payment_pending")
        sm.approve_payment()  # transitions to payment_verified
        sm.status             # "payment_verified"
    """

    # --- States ---
    INITIATED = State("Initiated", value="initiated", initial=True)
    ELIGIBILITY_CHECK = State("Eligibility check", value="eligibility_check")
    PAYMENT_PENDING = State("Payment pending", value="payment_pending")
    PAYMENT_VERIFIED = State("Payment verified", value="payment_verified")
    ACCOUNT_TRANSFER = State("Account transfer", value="account_transfer")
    BUYER_VERIFICATION = State("Buyer verification", value="buyer_verification")
    FINAL_VERIFICATION = State("Final verification", value="final_verification")
    COMPLETED = State("Completed", value="completed", final=True)
    CANCELLED = State("Cancelled", value="cancelled", final=True)
    FAILED = State("Failed", value="failed", final=True)

    # --- Events / Transitions ---

    # Eligibility
    start_eligibility_check = INITIATED.to(ELIGIBILITY_CHECK)
    confirm_eligibility = ELIGIBILITY_CHECK.to(PAYMENT_PENDING)
    reject_eligibility = ELIGIBILITY_CHECK.to(CANCELLED)

    # Payment
    approve_payment = PAYMENT_PENDING.to(PAYMENT_VERIFIED)
    reject_payment = PAYMENT_PENDING.to(CANCELLED)

    # Account transfer
    start_transfer = PAYMENT_VERIFIED.to(ACCOUNT_TRANSFER)
    verify_transfer = ACCOUNT_TRANSFER.to(BUYER_VERIFICATION)

    # Buyer verification (an issue keeps the trade in place for arbitration)
    accept_account = BUYER_VERIFICATION.to(FINAL_VERIFICATION)
    report_issue = BUYER_VERIFICATION.to.itself()

    # Final verification (a rejected video is re-uploaded in place)
    approve_video = FINAL_VERIFICATION.to(COMPLETED)
    reject_video = FINAL_VERIFICATION.to.itself()

    # Timeout / system abort
    mark_failed = (
        INITIATED.to(FAILED)
        | ELIGIBILITY_CHECK.to(FAILED)
        | PAYMENT_PENDING.to(FAILED)
        | PAYMENT_VERIFIED.to(FAILED)
        | ACCOUNT_TRANSFER.to(FAILED)
        | BUYER_VERIFICATION.to(FAILED)
        | FINAL_VERIFICATION.to(FAILED)
    )

    # Explicit cancellation by a user or an admin
    cancel_transaction = (
        INITIATED.to(CANCELLED)
        | ELIGIBILITY_CHECK.to(CANCELLED)
        | PAYMENT_PENDING.to(CANCELLED)
        | PAYMENT_VERIFIED.to(CANCELLED)
        | ACCOUNT_TRANSFER.to(CANCELLED)
        | BUYER_VERIFICATION.to(CANCELLED)
        | FINAL_VERIFICATION.to(CANCELLED)
    )

    def __init__(self, current_state: str = "initiated") -> None:
        """Initialize the state machine at a given state.

        Args:
            current_state: A TransactionState value (e.g., "payment_pending").
        """
        valid_values = {s.value for s in self.states}
        if current_state not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(f"Unknown state '{current_state}'. Valid states: {valid}")
        # start_value expects the string value, not the State object
        super().__init__(start_value=str(current_state))

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches TransactionState)."""
        return str(self.current_state.value)


# Every event declared above, in lifecycle order.
EVENTS: tuple[str, ...] = (
    "start_eligibility_check",
    "confirm_eligibility",
    "reject_eligibility",
    "approve_payment",
    "reject_payment",
    "start_transfer",
    "verify_transfer",
    "accept_account",
    "report_issue",
    "approve_video",
    "reject_video",
    "mark_failed",
    "cancel_transaction",
)


def _probe(current_state: str, event_name: str) -> TransactionState | None:
    """Fire an event on a throwaway machine; None if it is not allowed."""
    sm = TransactionStateMachine(current_state)
    try:
        getattr(sm, event_name)()
    except TransitionNotAllowed:
        return None
    return TransactionState(sm.status)


@lru_cache(maxsize=None)
def allowed_events(state: TransactionState) -> tuple[str, ...]:
    """Return the event names that can fire from ``state``."""
    return tuple(e for e in EVENTS if _probe(state.value, e) is not None)


@lru_cache(maxsize=None)
def allowed_targets(state: TransactionState) -> frozenset[TransactionState]:
    """Return every state reachable from ``state`` in one legal transition."""
    targets = (_probe(state.value, e) for e in EVENTS)
    return frozenset(t for t in targets if t is not None)


TRANSITION_TABLE: dict[TransactionState, frozenset[TransactionState]] = {
    state: allowed_targets(state) for state in TransactionState
}


def is_legal(current_state: TransactionState, new_state: TransactionState) -> bool:
    return new_state in TRANSITION_TABLE[current_state]


def validate_transition(current_state: str, event_name: str) -> TransactionState:
    """Validate a named transition and return the resulting state.

    Args:
        current_state: Current TransactionState value.
        event_name: The event to fire (e.g., "approve_payment").

    Returns:
        The state the transaction would move to.

    Raises:
        InvalidStateTransitionError: If the event is unknown or illegal here.
    """
    if event_name not in EVENTS:
        raise InvalidStateTransitionError(str(current_state), event_name)
    new_state = _probe(str(current_state), event_name)
    if new_state is None:
        raise InvalidStateTransitionError(str(current_state), event_name)
    return new_state

"""Domain enumerations for the account escrow service.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports). Values are
the exact strings written to persisted records.
"""

import enum


class TransactionState(enum.StrEnum):
    """Lifecycle states of an escrow transaction.

    Transitions are enforced by the TransactionStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    INITIATED = "initiated"
    ELIGIBILITY_CHECK = "eligibility_check"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_VERIFIED = "payment_verified"
    ACCOUNT_TRANSFER = "account_transfer"
    BUYER_VERIFICATION = "buyer_verification"
    FINAL_VERIFICATION = "final_verification"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {TransactionState.COMPLETED, TransactionState.CANCELLED, TransactionState.FAILED}
)

# States in which the seller may still walk away without arbitration.
SELLER_CANCELLABLE_STATES = frozenset(
    {
        TransactionState.INITIATED,
        TransactionState.ELIGIBILITY_CHECK,
        TransactionState.PAYMENT_PENDING,
        TransactionState.PAYMENT_VERIFIED,
    }
)


class AccountType(enum.StrEnum):
    """Kinds of game accounts that can be traded."""

    GMAIL = "gmail"
    SUPERCELL_ID = "supercell_id"


class Phase(enum.StrEnum):
    """Keys of the per-phase payload mapping stored on a transaction."""

    ELIGIBILITY = "eligibility"
    PAYMENT = "payment"
    TRANSFER = "transfer"
    BUYER_VERIFICATION = "buyerVerification"
    FINAL_VERIFICATION = "finalVerification"


class FileType(enum.StrEnum):
    """Evidence attached to a transaction."""

    PAYMENT_RECEIPT = "payment_receipt"
    ACCOUNT_SCREENSHOT = "account_screenshot"
    LOGOUT_VIDEO = "logout_video"


class UserRole(enum.StrEnum):
    USER = "user"
    ADMIN = "admin"


class PartyRole(enum.StrEnum):
    """Relationship between an actor and a specific transaction."""

    SELLER = "seller"
    BUYER = "buyer"
    NONE = "none"


class ActorRole(enum.StrEnum):
    """Role an action requires of its caller.

    PARTY accepts either seller or buyer. PROSPECT is any registered,
    unblocked user who is not the seller (used to claim a listing).
    """

    SELLER = "seller"
    BUYER = "buyer"
    PARTY = "party"
    PROSPECT = "prospect"
    ADMIN = "admin"


class ReviewStatus(enum.StrEnum):
    """Admin review status stored in payment, transfer and video payloads."""

    AWAITING_CODE = "awaiting_code"
    PENDING_ADMIN_APPROVAL = "pending_admin_approval"
    PENDING_ADMIN_REVIEW = "pending_admin_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    VERIFIED = "verified"


class CodeVerdict(enum.StrEnum):
    """Outcome reported by a CodeVerifier for an account transfer code."""

    VERIFIED = "verified"
    REJECTED = "rejected"
    PENDING = "pending"


class CodeVerifierType(enum.StrEnum):
    MANUAL = "manual"
    FORMAT = "format"
    MOCK = "mock"


class NotificationKind(enum.StrEnum):
    """Message template kinds handed to the Notifier."""

    TRANSACTION_CREATED = "transaction_created"
    ELIGIBILITY_CONFIRMED = "eligibility_confirmed"
    ELIGIBILITY_REJECTED = "eligibility_rejected"
    PAYMENT_SUBMITTED = "payment_submitted"
    RECEIPT_UPLOADED = "receipt_uploaded"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_REJECTED = "payment_rejected"
    LISTING_CLAIMED = "listing_claimed"
    TRANSFER_STARTED = "transfer_started"
    TRANSFER_CODE_REQUESTED = "transfer_code_requested"
    TRANSFER_PENDING_REVIEW = "transfer_pending_review"
    TRANSFER_VERIFIED = "transfer_verified"
    TRANSFER_REJECTED = "transfer_rejected"
    BUYER_SATISFIED = "buyer_satisfied"
    ISSUE_REPORTED = "issue_reported"
    ISSUE_RESOLVED = "issue_resolved"
    VIDEO_UPLOADED = "video_uploaded"
    VIDEO_REJECTED = "video_rejected"
    TRANSACTION_COMPLETED = "transaction_completed"
    TRANSACTION_CANCELLED = "transaction_cancelled"
    TRANSACTION_FAILED = "transaction_failed"
    TRANSACTION_TIMED_OUT = "transaction_timed_out"
    RETRY_EXHAUSTED = "retry_exhausted"
    ADMIN_NOTE_ADDED = "admin_note_added"


class EntityKind(enum.StrEnum):
    """Record kinds understood by a Repository."""

    TRANSACTION = "transaction"
    USER = "user"

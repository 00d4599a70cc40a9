"""Domain layer — pure business logic with zero framework dependencies."""

from account_escrow.domain.enums import (
    AccountType,
    ActorRole,
    CodeVerdict,
    EntityKind,
    FileType,
    NotificationKind,
    PartyRole,
    Phase,
    TransactionState,
    UserRole,
)
from account_escrow.domain.exceptions import (
    EscrowError,
    InvalidStateTransitionError,
    NotFoundError,
    RetryExhaustedError,
    TimeoutExpiredError,
    TransactionNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from account_escrow.domain.phase_data import PhaseData
from account_escrow.domain.state_machine import (
    TRANSITION_TABLE,
    TransactionStateMachine,
    validate_transition,
)
from account_escrow.domain.transaction import Transaction
from account_escrow.domain.user import User
from account_escrow.domain.validation import EscrowLimits, ValidationResult

__all__ = [
    "AccountType",
    "ActorRole",
    "CodeVerdict",
    "EntityKind",
    "FileType",
    "NotificationKind",
    "PartyRole",
    "Phase",
    "TransactionState",
    "UserRole",
    "EscrowError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "RetryExhaustedError",
    "TimeoutExpiredError",
    "TransactionNotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "PhaseData",
    "TRANSITION_TABLE",
    "TransactionStateMachine",
    "validate_transition",
    "Transaction",
    "User",
    "EscrowLimits",
    "ValidationResult",
]

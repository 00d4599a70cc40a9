"""Domain exceptions for the account escrow service.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""


class EscrowError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Lookup Errors ---


class NotFoundError(EscrowError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(
            message=f"{kind.capitalize()} not found: {entity_id}",
            code="NOT_FOUND",
        )
        self.kind = kind
        self.entity_id = entity_id


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__("transaction", transaction_id)
        self.code = "TRANSACTION_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__("user", user_id)
        self.code = "USER_NOT_FOUND"


# --- Authorization Errors ---


class UnauthorizedError(EscrowError):
    """Raised when the actor is not the expected party for an action."""

    def __init__(self, actor_id: str, action: str, reason: str = "") -> None:
        message = f"Actor {actor_id} may not perform '{action}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message=message, code="UNAUTHORIZED")
        self.actor_id = actor_id
        self.action = action
        self.reason = reason


# --- State Machine Errors ---


class InvalidStateTransitionError(EscrowError):
    """Raised when an attempted transition or action is not legal in the current state.

    Example: initiated -> completed (must pass through every phase).
    """

    def __init__(self, current_state: str, attempted: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {current_state} -> {attempted}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted = attempted


# --- Payload Errors ---


class ValidationError(EscrowError):
    """Raised when a payload fails bounds or format checks.

    Carries every human-readable reason so callers can show them all at once.
    """

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        super().__init__(message="; ".join(errors), code="VALIDATION_ERROR")
        self.errors = list(errors)


# --- Recovery Errors ---


class RetryExhaustedError(EscrowError):
    """Raised when a phase's retry ceiling is reached. Escalate to support."""

    def __init__(self, transaction_id: str, phase: str, attempts: int) -> None:
        super().__init__(
            message=(
                f"Retry limit reached for {phase} on transaction {transaction_id} "
                f"after {attempts} attempts; contact support"
            ),
            code="RETRY_EXHAUSTED",
        )
        self.transaction_id = transaction_id
        self.phase = phase
        self.attempts = attempts


class TimeoutExpiredError(EscrowError):
    """Raised when an action arrives after its phase's dwell ceiling.

    The transaction has already been moved to FAILED when this is raised.
    """

    def __init__(self, transaction_id: str, state: str) -> None:
        super().__init__(
            message=f"Transaction {transaction_id} timed out in step {state}",
            code="TIMEOUT_EXPIRED",
        )
        self.transaction_id = transaction_id
        self.state = state


# --- Side Channel Errors ---


class NotificationFailureError(EscrowError):
    """Raised by notifier adapters. Never escapes the notification gateway."""

    def __init__(self, recipient_id: str, kind: str, reason: str = "") -> None:
        super().__init__(
            message=f"Failed to notify {recipient_id} ({kind}): {reason}",
            code="NOTIFICATION_FAILURE",
        )
        self.recipient_id = recipient_id
        self.kind = kind


# --- Edge Errors ---


class RateLimitExceededError(EscrowError):
    def __init__(self, key: str, retry_after: float) -> None:
        super().__init__(
            message=f"Too many requests for {key}; retry in {retry_after:.0f}s",
            code="RATE_LIMITED",
        )
        self.key = key
        self.retry_after = retry_after


class DuplicateOperationError(EscrowError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )

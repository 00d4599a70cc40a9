"""Transaction aggregate.

A Transaction is one escrow-mediated sale of an account. Its mutators are the
only sanctioned writers: each one stamps ``updated_at`` with the caller's
``now`` so the entity never reads a clock on its own.

Invariants kept here:
    - ``state`` changes only through ``set_state``, which validates against
      the state machine's transition table before touching any field.
    - ``history``, ``files`` and ``admin_notes`` are append-only.
    - ``buyer_id`` is set at most once, and only in payment_verified.
    - ``completed_at`` is set iff state is completed; ``cancelled_at`` iff
      state is cancelled or failed. Both equal the final history timestamp.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from account_escrow.domain.enums import (
    AccountType,
    FileType,
    PartyRole,
    Phase,
    TransactionState,
)
from account_escrow.domain.exceptions import InvalidStateTransitionError, ValidationError
from account_escrow.domain.phase_data import PhaseData
from account_escrow.domain.state_machine import is_legal
from account_escrow.domain.validation import EscrowLimits, ValidationResult

_SHORT_ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
SHORT_ID_LENGTH = 8


def new_short_id() -> str:
    return "".join(secrets.choice(_SHORT_ID_ALPHABET) for _ in range(SHORT_ID_LENGTH))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _account_type(value: Any) -> AccountType | str:
    """Coerce to AccountType, keeping unknown values so validate() can report them."""
    try:
        return AccountType(value)
    except ValueError:
        return value


# ---------------------------------------------------------------------------
# Append-only records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HistoryEntry:
    """One applied state transition."""

    from_state: TransactionState
    to_state: TransactionState
    timestamp: datetime
    note: str
    actor_id: str

    def to_record(self) -> dict[str, Any]:
        return {
            "from": self.from_state.value,
            "to": self.to_state.value,
            "timestamp": self.timestamp.isoformat(),
            "note": self.note,
            "actorId": self.actor_id,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> HistoryEntry:
        return cls(
            from_state=TransactionState(record["from"]),
            to_state=TransactionState(record["to"]),
            timestamp=datetime.fromisoformat(record["timestamp"]),
            note=record.get("note", ""),
            actor_id=record["actorId"],
        )


@dataclass(frozen=True)
class EvidenceFile:
    """An attached piece of evidence. ``file_ref`` is an opaque storage handle."""

    id: str
    file_type: FileType
    file_ref: str
    uploaded_by: str
    uploaded_at: datetime
    size: int | None = None
    duration: int | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.file_type.value,
            "fileRef": self.file_ref,
            "uploadedBy": self.uploaded_by,
            "uploadedAt": self.uploaded_at.isoformat(),
            "size": self.size,
            "duration": self.duration,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> EvidenceFile:
        return cls(
            id=record["id"],
            file_type=FileType(record["type"]),
            file_ref=record["fileRef"],
            uploaded_by=record["uploadedBy"],
            uploaded_at=datetime.fromisoformat(record["uploadedAt"]),
            size=record.get("size"),
            duration=record.get("duration"),
        )


@dataclass(frozen=True)
class AdminNote:
    id: str
    note: str
    admin_id: str
    timestamp: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "note": self.note,
            "adminId": self.admin_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> AdminNote:
        return cls(
            id=record["id"],
            note=record["note"],
            admin_id=record["adminId"],
            timestamp=datetime.fromisoformat(record["timestamp"]),
        )


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------


@dataclass
class Transaction:
    seller_id: str
    account_type: AccountType | str
    amount: int
    description: str
    created_at: datetime
    updated_at: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    short_id: str = field(default_factory=new_short_id)
    buyer_id: str | None = None
    state: TransactionState = TransactionState.INITIATED
    data: PhaseData = field(default_factory=PhaseData)
    files: list[EvidenceFile] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    retry_attempts: dict[str, int] = field(default_factory=dict)
    admin_notes: list[AdminNote] = field(default_factory=list)
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def new(
        cls,
        seller_id: str,
        account_type: str,
        amount: int,
        description: str,
        now: datetime,
    ) -> Transaction:
        """Build a fresh INITIATED transaction. Call ``validate`` before saving."""
        return cls(
            seller_id=seller_id,
            account_type=_account_type(account_type),
            amount=amount,
            description=(description or "").strip(),
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, limits: EscrowLimits | None = None) -> ValidationResult:
        limits = limits or EscrowLimits()
        errors: list[str] = []
        if not self.seller_id:
            errors.append("seller id is required")
        if not isinstance(self.account_type, AccountType):
            valid = ", ".join(t.value for t in AccountType)
            errors.append(f"account type must be one of: {valid}")
        if (
            not isinstance(self.amount, int)
            or isinstance(self.amount, bool)
            or not limits.min_amount <= self.amount <= limits.max_amount
        ):
            errors.append(
                f"amount must be between {limits.min_amount:,} and {limits.max_amount:,}"
            )
        length = len(self.description or "")
        if not limits.description_min_length <= length <= limits.description_max_length:
            errors.append(
                f"description must be {limits.description_min_length}-"
                f"{limits.description_max_length} characters"
            )
        return ValidationResult(is_valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_state(
        self,
        new_state: TransactionState,
        note: str,
        actor_id: str,
        now: datetime,
    ) -> HistoryEntry:
        """Apply a transition and record it.

        Raises:
            InvalidStateTransitionError: If ``new_state`` is not reachable from
                the current state. Nothing is modified in that case.
        """
        new_state = TransactionState(new_state)
        if not is_legal(self.state, new_state):
            raise InvalidStateTransitionError(self.state.value, new_state.value)

        entry = HistoryEntry(
            from_state=self.state,
            to_state=new_state,
            timestamp=now,
            note=note,
            actor_id=actor_id,
        )
        self.history.append(entry)
        self.state = new_state
        self.updated_at = now
        if new_state is TransactionState.COMPLETED:
            self.completed_at = now
        elif new_state in (TransactionState.CANCELLED, TransactionState.FAILED):
            self.cancelled_at = now
        return entry

    def update_data(self, phase: Phase, now: datetime, **fields: Any) -> None:
        self.data = self.data.merge(phase, **fields)
        self.updated_at = now

    def add_file(
        self,
        file_type: FileType,
        file_ref: str,
        uploaded_by: str,
        now: datetime,
        size: int | None = None,
        duration: int | None = None,
    ) -> EvidenceFile:
        evidence = EvidenceFile(
            id=uuid.uuid4().hex,
            file_type=FileType(file_type),
            file_ref=file_ref,
            uploaded_by=uploaded_by,
            uploaded_at=now,
            size=size,
            duration=duration,
        )
        self.files.append(evidence)
        self.updated_at = now
        return evidence

    def add_admin_note(self, note: str, admin_id: str, now: datetime) -> AdminNote:
        entry = AdminNote(id=uuid.uuid4().hex, note=note, admin_id=admin_id, timestamp=now)
        self.admin_notes.append(entry)
        self.updated_at = now
        return entry

    def increment_retry(self, phase: Phase, now: datetime) -> int:
        key = Phase(phase).value
        self.retry_attempts[key] = self.retry_attempts.get(key, 0) + 1
        self.updated_at = now
        return self.retry_attempts[key]

    def assign_buyer(self, buyer_id: str, now: datetime) -> None:
        """Claim the listing for ``buyer_id``.

        Raises:
            InvalidStateTransitionError: If the listing is not open for claims.
            ValidationError: If a buyer is already set or the seller claims.
        """
        if self.state is not TransactionState.PAYMENT_VERIFIED:
            raise InvalidStateTransitionError(self.state.value, "claim_listing")
        if self.buyer_id is not None:
            raise ValidationError("listing has already been claimed")
        if buyer_id == self.seller_id:
            raise ValidationError("seller cannot buy their own listing")
        self.buyer_id = buyer_id
        self.updated_at = now

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_active(self) -> bool:
        return not self.state.is_terminal

    @property
    def participants(self) -> list[str]:
        return [uid for uid in (self.seller_id, self.buyer_id) if uid]

    def is_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def role_of(self, user_id: str) -> PartyRole:
        if user_id == self.seller_id:
            return PartyRole.SELLER
        if self.buyer_id is not None and user_id == self.buyer_id:
            return PartyRole.BUYER
        return PartyRole.NONE

    def retry_count(self, phase: Phase) -> int:
        return self.retry_attempts.get(Phase(phase).value, 0)

    @property
    def current_step_started_at(self) -> datetime:
        """When the current state was entered (creation time before any transition)."""
        return self.history[-1].timestamp if self.history else self.created_at

    @property
    def has_open_issue(self) -> bool:
        """A buyer-reported problem is waiting for arbitration."""
        verdict = self.data.buyer_verification
        return (
            self.state is TransactionState.BUYER_VERIFICATION
            and verdict is not None
            and verdict.satisfied is False
            and not verdict.issue_resolved
        )

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shortId": self.short_id,
            "state": self.state.value,
            "accountType": str(self.account_type),
            "amount": self.amount,
            "sellerId": self.seller_id,
            "buyerId": self.buyer_id,
        }

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shortId": self.short_id,
            "sellerId": self.seller_id,
            "buyerId": self.buyer_id,
            "accountType": str(self.account_type),
            "amount": self.amount,
            "description": self.description,
            "state": self.state.value,
            "data": self.data.to_record(),
            "files": [f.to_record() for f in self.files],
            "history": [h.to_record() for h in self.history],
            "retryAttempts": dict(self.retry_attempts),
            "adminNotes": [n.to_record() for n in self.admin_notes],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "completedAt": _iso(self.completed_at),
            "cancelledAt": _iso(self.cancelled_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Transaction:
        return cls(
            id=record["id"],
            short_id=record["shortId"],
            seller_id=record["sellerId"],
            buyer_id=record.get("buyerId"),
            account_type=_account_type(record["accountType"]),
            amount=record["amount"],
            description=record["description"],
            state=TransactionState(record["state"]),
            data=PhaseData.from_record(record.get("data")),
            files=[EvidenceFile.from_record(f) for f in record.get("files", [])],
            history=[HistoryEntry.from_record(h) for h in record.get("history", [])],
            retry_attempts=dict(record.get("retryAttempts", {})),
            admin_notes=[AdminNote.from_record(n) for n in record.get("adminNotes", [])],
            created_at=datetime.fromisoformat(record["createdAt"]),
            updated_at=datetime.fromisoformat(record["updatedAt"]),
            completed_at=_parse(record.get("completedAt")),
            cancelled_at=_parse(record.get("cancelledAt")),
        )

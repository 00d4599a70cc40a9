"""Per-phase payloads attached to a transaction.

Each phase owns one frozen dataclass. PhaseData groups them and is only ever
changed through ``merge``, which returns a new PhaseData where the named
fields of a single phase are updated and everything else is carried over.

Records use camelCase keys (``hasCapability``) and ISO-8601 strings for every
``*_at`` field.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

from account_escrow.domain.enums import Phase


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_encode(item) for item in value]
    if isinstance(value, _PhasePayload):
        return value.to_record()
    return value


def _decode(name: str, value: Any) -> Any:
    if value is not None and name.endswith("_at"):
        return datetime.fromisoformat(value)
    return value


class _PhasePayload:
    """Record helpers shared by every phase payload.

    ``nested`` maps a tuple field to the payload type of its items.
    """

    phase: ClassVar[Phase]
    nested: ClassVar[dict[str, type[_PhasePayload]]] = {}

    def to_record(self) -> dict[str, Any]:
        return {
            _camel(f.name): _encode(getattr(self, f.name))
            for f in dataclasses.fields(self)  # type: ignore[arg-type]
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]):
        kwargs = {}
        for f in dataclasses.fields(cls):  # type: ignore[arg-type]
            key = _camel(f.name)
            if key not in record:
                continue
            item_type = cls.nested.get(f.name)
            if item_type is not None:
                kwargs[f.name] = tuple(item_type.from_record(item) for item in record[key] or ())
            else:
                kwargs[f.name] = _decode(f.name, record[key])
        return cls(**kwargs)


@dataclass(frozen=True)
class EligibilityData(_PhasePayload):
    phase: ClassVar[Phase] = Phase.ELIGIBILITY

    has_capability: bool | None = None
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None


@dataclass(frozen=True)
class PaymentData(_PhasePayload):
    phase: ClassVar[Phase] = Phase.PAYMENT

    card_details: str | None = None
    status: str | None = None
    submitted_at: datetime | None = None
    receipt_file_id: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class CodeAttempt(_PhasePayload):
    """A closed round of the transfer code exchange, kept when a new round starts."""

    code: str | None = None
    requested_at: datetime | None = None
    submitted_at: datetime | None = None
    status: str | None = None
    reviewed_by: str | None = None
    rejection_reason: str | None = None
    closed_at: datetime | None = None


@dataclass(frozen=True)
class TransferData(_PhasePayload):
    phase: ClassVar[Phase] = Phase.TRANSFER
    nested: ClassVar[dict[str, type[_PhasePayload]]] = {"attempts": CodeAttempt}

    new_email: str | None = None
    email_submitted_at: datetime | None = None
    code_requested_at: datetime | None = None
    code: str | None = None
    code_submitted_at: datetime | None = None
    status: str | None = None
    reviewed_by: str | None = None
    verified_at: datetime | None = None
    rejection_reason: str | None = None
    attempts: tuple[CodeAttempt, ...] = ()


@dataclass(frozen=True)
class BuyerVerificationData(_PhasePayload):
    phase: ClassVar[Phase] = Phase.BUYER_VERIFICATION

    satisfied: bool | None = None
    feedback: str | None = None
    issue: str | None = None
    reported_at: datetime | None = None
    issue_resolved: bool | None = None
    verified_at: datetime | None = None


@dataclass(frozen=True)
class FinalVerificationData(_PhasePayload):
    phase: ClassVar[Phase] = Phase.FINAL_VERIFICATION

    video_file_id: str | None = None
    video_duration: int | None = None
    status: str | None = None
    uploaded_at: datetime | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    rejections: int = 0


PAYLOAD_TYPES: dict[Phase, type[_PhasePayload]] = {
    Phase.ELIGIBILITY: EligibilityData,
    Phase.PAYMENT: PaymentData,
    Phase.TRANSFER: TransferData,
    Phase.BUYER_VERIFICATION: BuyerVerificationData,
    Phase.FINAL_VERIFICATION: FinalVerificationData,
}

_ATTRIBUTES: dict[Phase, str] = {
    Phase.ELIGIBILITY: "eligibility",
    Phase.PAYMENT: "payment",
    Phase.TRANSFER: "transfer",
    Phase.BUYER_VERIFICATION: "buyer_verification",
    Phase.FINAL_VERIFICATION: "final_verification",
}


@dataclass(frozen=True)
class PhaseData:
    """The payloads of every phase a transaction has reached.

    A phase is None until something is first merged into it.
    """

    eligibility: EligibilityData | None = None
    payment: PaymentData | None = None
    transfer: TransferData | None = None
    buyer_verification: BuyerVerificationData | None = None
    final_verification: FinalVerificationData | None = None

    def get(self, phase: Phase) -> Any:
        return getattr(self, _ATTRIBUTES[Phase(phase)])

    def merge(self, phase: Phase, **fields: Any) -> PhaseData:
        """Return a copy with ``fields`` merged into one phase's payload.

        Raises:
            TypeError: If a field does not belong to that phase.
        """
        phase = Phase(phase)
        current = self.get(phase) or PAYLOAD_TYPES[phase]()
        updated = dataclasses.replace(current, **fields)
        return dataclasses.replace(self, **{_ATTRIBUTES[phase]: updated})

    def phases(self) -> list[Phase]:
        """Phases that carry a payload, in lifecycle order."""
        return [phase for phase in Phase if self.get(phase) is not None]

    def to_record(self) -> dict[str, dict[str, Any]]:
        return {phase.value: self.get(phase).to_record() for phase in self.phases()}

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> PhaseData:
        record = record or {}
        kwargs = {
            _ATTRIBUTES[phase]: PAYLOAD_TYPES[phase].from_record(record[phase.value])
            for phase in Phase
            if record.get(phase.value) is not None
        }
        return cls(**kwargs)

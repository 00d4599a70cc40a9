"""Payload bounds and format checks.

Validators return a list of human-readable problems (empty when the input is
fine). Handlers pass that list to ``require`` which raises ValidationError
carrying every reason at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from account_escrow.domain.exceptions import ValidationError

_CODE_RE = re.compile(r"^[A-Za-z0-9]+$")
_CARD_NUMBER_RE = re.compile(r"\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MEGABYTE = 1024 * 1024


@dataclass(frozen=True)
class EscrowLimits:
    """Commercial and evidence bounds applied to every transaction."""

    min_amount: int = 50_000
    max_amount: int = 10_000_000
    description_min_length: int = 10
    description_max_length: int = 500
    max_active_per_seller: int = 3
    max_file_size: int = 50 * MEGABYTE
    video_min_seconds: int = 10
    video_max_seconds: int = 300
    card_details_min_length: int = 20
    issue_min_length: int = 10
    code_min_length: int = 4
    code_max_length: int = 10
    max_retry_attempts: int = 3


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def require(errors: list[str]) -> None:
    """Raise ValidationError if ``errors`` is not empty."""
    if errors:
        raise ValidationError(errors)


def validate_card_details(card_details: str | None, limits: EscrowLimits) -> list[str]:
    text = (card_details or "").strip()
    if len(text) < limits.card_details_min_length:
        return [f"card details must be at least {limits.card_details_min_length} characters"]
    if not _CARD_NUMBER_RE.search(text):
        return ["card details must include a 16-digit card number"]
    return []


def validate_email(email: str | None) -> list[str]:
    if not email or not _EMAIL_RE.match(email.strip()):
        return ["email address is not valid"]
    return []


def validate_transfer_code(code: str | None, limits: EscrowLimits) -> list[str]:
    clean = (code or "").strip()
    if not limits.code_min_length <= len(clean) <= limits.code_max_length:
        return [
            f"verification code must be {limits.code_min_length}-"
            f"{limits.code_max_length} characters"
        ]
    if not _CODE_RE.match(clean):
        return ["verification code may only contain letters and digits"]
    return []


def validate_file_size(size: int | None, limits: EscrowLimits) -> list[str]:
    if size is not None and size > limits.max_file_size:
        return [f"file must not exceed {limits.max_file_size // MEGABYTE} MB"]
    return []


def validate_video(duration: int | None, size: int | None, limits: EscrowLimits) -> list[str]:
    errors = []
    if duration is None:
        errors.append("video duration is required")
    elif duration < limits.video_min_seconds:
        errors.append(f"video must be at least {limits.video_min_seconds} seconds long")
    elif duration > limits.video_max_seconds:
        errors.append(f"video must not exceed {limits.video_max_seconds} seconds")
    errors.extend(validate_file_size(size, limits))
    return errors


def validate_issue(text: str | None, limits: EscrowLimits) -> list[str]:
    if len((text or "").strip()) < limits.issue_min_length:
        return [f"issue description must be at least {limits.issue_min_length} characters"]
    return []

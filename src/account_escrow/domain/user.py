"""User entity.

A user owns its own running statistics. They change only when a transaction
the user took part in reaches a terminal state (see ``record_outcome``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from account_escrow.domain.enums import TransactionState, UserRole
from account_escrow.domain.exceptions import ValidationError


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


@dataclass
class UserStats:
    total_transactions: int = 0
    completed_transactions: int = 0
    cancelled_transactions: int = 0
    total_volume: int = 0

    @property
    def success_rate(self) -> float:
        if not self.total_transactions:
            return 0.0
        return self.completed_transactions / self.total_transactions

    def to_record(self) -> dict[str, Any]:
        return {
            "totalTransactions": self.total_transactions,
            "completedTransactions": self.completed_transactions,
            "cancelledTransactions": self.cancelled_transactions,
            "totalVolume": self.total_volume,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> UserStats:
        record = record or {}
        return cls(
            total_transactions=record.get("totalTransactions", 0),
            completed_transactions=record.get("completedTransactions", 0),
            cancelled_transactions=record.get("cancelledTransactions", 0),
            total_volume=record.get("totalVolume", 0),
        )


@dataclass
class User:
    id: str
    created_at: datetime
    updated_at: datetime
    name: str | None = None
    username: str | None = None
    role: UserRole = UserRole.USER
    is_registered: bool = False
    is_blocked: bool = False
    block_reason: str | None = None
    blocked_at: datetime | None = None
    stats: UserStats = field(default_factory=UserStats)
    last_activity: datetime | None = None

    @classmethod
    def new(cls, user_id: str, now: datetime, **fields: Any) -> User:
        return cls(id=str(user_id), created_at=now, updated_at=now, last_activity=now, **fields)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def display_name(self) -> str:
        if self.username:
            return f"@{self.username}"
        return self.name or self.id

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def complete_registration(self, name: str, now: datetime) -> None:
        if not name or not name.strip():
            raise ValidationError("name is required")
        self.name = name.strip()
        self.is_registered = True
        self.updated_at = now

    def block(self, reason: str, now: datetime) -> None:
        self.is_blocked = True
        self.block_reason = reason
        self.blocked_at = now
        self.updated_at = now

    def unblock(self, now: datetime) -> None:
        self.is_blocked = False
        self.block_reason = None
        self.blocked_at = None
        self.updated_at = now

    def touch(self, now: datetime) -> None:
        self.last_activity = now
        self.updated_at = now

    def record_outcome(self, state: TransactionState, amount: int, now: datetime) -> None:
        """Fold a finished transaction into the running statistics.

        Raises:
            ValueError: If ``state`` is not terminal.
        """
        if not state.is_terminal:
            raise ValueError(f"Cannot record outcome for non-terminal state {state}")
        self.stats.total_transactions += 1
        if state is TransactionState.COMPLETED:
            self.stats.completed_transactions += 1
            self.stats.total_volume += amount
        else:
            self.stats.cancelled_transactions += 1
        self.updated_at = now

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "role": UserRole(self.role).value,
            "isRegistered": self.is_registered,
            "isBlocked": self.is_blocked,
            "blockReason": self.block_reason,
            "blockedAt": _iso(self.blocked_at),
            "stats": self.stats.to_record(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "lastActivity": _iso(self.last_activity),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> User:
        return cls(
            id=record["id"],
            name=record.get("name"),
            username=record.get("username"),
            role=UserRole(record.get("role", UserRole.USER.value)),
            is_registered=record.get("isRegistered", False),
            is_blocked=record.get("isBlocked", False),
            block_reason=record.get("blockReason"),
            blocked_at=_parse(record.get("blockedAt")),
            stats=UserStats.from_record(record.get("stats")),
            created_at=datetime.fromisoformat(record["createdAt"]),
            updated_at=datetime.fromisoformat(record["updatedAt"]),
            last_activity=_parse(record.get("lastActivity")),
        )

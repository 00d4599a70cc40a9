"""Test doubles and constants shared across the suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from account_escrow.domain.exceptions import NotificationFailureError

SELLER = "seller-1"
BUYER = "buyer-1"
ADMIN = "admin-1"
OUTSIDER = "outsider-1"

REGISTERED = {SELLER: "Ali", BUYER: "Sara", OUTSIDER: "Reza"}

CARD_DETAILS = "Bank Melli 6037-9975-1234-5678 Ali Rezaei"
DESCRIPTION = "Level 14 account, 6000 trophies"


class ManualClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that keeps every message; fails for ids in ``unreachable``."""

    def __init__(self, unreachable: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self.unreachable = unreachable or set()

    async def send(self, user_id: str, kind: str, context: dict[str, Any]) -> bool:
        if user_id in self.unreachable:
            raise NotificationFailureError(user_id, kind, "chat not reachable")
        self.sent.append((user_id, kind, context))
        return True

    def kinds_for(self, user_id: str) -> list[str]:
        return [kind for recipient, kind, _ in self.sent if recipient == user_id]

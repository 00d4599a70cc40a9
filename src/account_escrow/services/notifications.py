"""Notification gateway — best-effort delivery to parties and admins.

Transitions are durable before anything is sent. A failed send is logged as
``notification.failed`` and reported as False; it never raises and never
rolls anything back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from account_escrow.domain.exceptions import NotificationFailureError
from account_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from account_escrow.domain.enums import NotificationKind
    from account_escrow.domain.ports import Notifier
    from account_escrow.domain.transaction import Transaction

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    recipient_id: str
    kind: NotificationKind
    context: dict[str, Any] = field(default_factory=dict)


class NotificationGateway:
    def __init__(self, notifier: Notifier, admin_ids: Sequence[str] = ()) -> None:
        self._notifier = notifier
        self._admin_ids = tuple(dict.fromkeys(str(a) for a in admin_ids))

    @property
    def admin_ids(self) -> tuple[str, ...]:
        return self._admin_ids

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def for_admins(
        self,
        kind: NotificationKind,
        context: dict[str, Any],
        exclude: Iterable[str] = (),
    ) -> list[Notification]:
        skip = set(exclude)
        return [Notification(a, kind, context) for a in self._admin_ids if a not in skip]

    def for_parties(
        self, tx: Transaction, kind: NotificationKind, context: dict[str, Any]
    ) -> list[Notification]:
        return [Notification(uid, kind, context) for uid in tx.participants]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def notify(
        self, recipient_id: str, kind: NotificationKind, context: dict[str, Any]
    ) -> bool:
        try:
            ok = await self._notifier.send(recipient_id, kind.value, context)
        except NotificationFailureError as exc:
            logger.warning(
                "notification.failed",
                recipient_id=recipient_id,
                kind=kind.value,
                error=exc.message,
            )
            return False
        except Exception as exc:
            logger.exception(
                "notification.failed",
                recipient_id=recipient_id,
                kind=kind.value,
                error=str(exc),
            )
            return False

        if not ok:
            logger.warning("notification.failed", recipient_id=recipient_id, kind=kind.value)
            return False
        logger.debug("notification.sent", recipient_id=recipient_id, kind=kind.value)
        return True

    async def deliver(self, notifications: Iterable[Notification]) -> int:
        """Send every notification in order; return how many succeeded."""
        delivered = 0
        for n in notifications:
            if await self.notify(n.recipient_id, n.kind, n.context):
                delivered += 1
        return delivered

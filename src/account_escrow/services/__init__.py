"""Application services — use case orchestration."""

from account_escrow.services.escrow_service import EscrowService
from account_escrow.services.notifications import Notification, NotificationGateway
from account_escrow.services.timeouts import TimeoutRegistry, TimeoutSweeper
from account_escrow.services.users import UserDirectory

__all__ = [
    "EscrowService",
    "Notification",
    "NotificationGateway",
    "TimeoutRegistry",
    "TimeoutSweeper",
    "UserDirectory",
]

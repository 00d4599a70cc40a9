"""Database infrastructure — engine, ORM models, and repositories."""

from account_escrow.infrastructure.database.engine import (
    close_db,
    get_session_factory,
    init_db,
)
from account_escrow.infrastructure.database.orm_models import (
    Base,
    TransactionRow,
    UserRow,
)
from account_escrow.infrastructure.database.repositories import SqlRepository

__all__ = [
    "Base",
    "TransactionRow",
    "UserRow",
    "SqlRepository",
    "get_session_factory",
    "init_db",
    "close_db",
]

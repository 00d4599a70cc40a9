"""Step handlers, one module per transaction phase.

Importing this package registers every action on ``registry``.
"""

from account_escrow.services.handlers import (  # noqa: F401
    admin,
    buyer_verification,
    eligibility,
    final_verification,
    listing,
    payment,
    transfer,
)
from account_escrow.services.handlers.registry import (
    ActionContext,
    ActionSpec,
    HandlerRegistry,
    registry,
)

__all__ = ["ActionContext", "ActionSpec", "HandlerRegistry", "registry"]

"""Handler registry keyed by (state, action).

Each phase module registers its actions with the role they require and the
states they are legal in. The escrow service looks an action up, checks the
caller's role and the transaction's state centrally, then runs the handler.
Handlers never re-check either.

Usage:
    @registry.action("confirm_eligibility", ActorRole.SELLER, TransactionState.ELIGIBILITY_CHECK)
    async def confirm_eligibility(ctx: ActionContext) -> None:
        ctx.update(Phase.ELIGIBILITY, has_capability=True)
        ctx.transition("confirm_eligibility", "Seller confirmed eligibility")
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from account_escrow.domain.enums import ActorRole, TransactionState
from account_escrow.services.notifications import Notification

if TYPE_CHECKING:
    from datetime import datetime

    from account_escrow.domain.enums import NotificationKind, Phase
    from account_escrow.domain.ports import CodeVerifier
    from account_escrow.domain.transaction import HistoryEntry, Transaction
    from account_escrow.domain.validation import EscrowLimits
    from account_escrow.services.engine import TransitionEngine
    from account_escrow.services.notifications import NotificationGateway

Handler = Callable[["ActionContext"], Awaitable[None]]

NON_TERMINAL_STATES = frozenset(s for s in TransactionState if not s.is_terminal)
ALL_STATES = frozenset(TransactionState)


@dataclass
class ActionContext:
    """Everything a handler may touch while the transaction lock is held."""

    transaction: Transaction
    action: str
    actor_id: str
    payload: dict[str, Any]
    now: datetime
    engine: TransitionEngine
    gateway: NotificationGateway
    limits: EscrowLimits
    code_verifier: CodeVerifier
    outbox: list[Notification] = field(default_factory=list)

    # --- Mutation ---

    def transition(self, event_name: str, note: str) -> HistoryEntry:
        return self.engine.fire(self.transaction, event_name, note, self.actor_id)

    def update(self, phase: Phase, **fields: Any) -> None:
        self.transaction.update_data(phase, self.now, **fields)

    # --- Payload access ---

    def text(self, key: str) -> str:
        value = self.payload.get(key)
        return str(value).strip() if value is not None else ""

    def integer(self, key: str) -> int | None:
        value = self.payload.get(key)
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    # --- Notifications (delivered after commit) ---

    def _context(self, extra: dict[str, Any]) -> dict[str, Any]:
        return {**self.transaction.summary(), **extra}

    def notify(self, recipient_id: str | None, kind: NotificationKind, **extra: Any) -> None:
        if recipient_id:
            self.outbox.append(Notification(recipient_id, kind, self._context(extra)))

    def notify_admins(
        self, kind: NotificationKind, exclude: Iterable[str] = (), **extra: Any
    ) -> None:
        self.outbox.extend(self.gateway.for_admins(kind, self._context(extra), exclude))

    def notify_parties(self, kind: NotificationKind, **extra: Any) -> None:
        self.outbox.extend(self.gateway.for_parties(self.transaction, kind, self._context(extra)))


@dataclass(frozen=True)
class ActionSpec:
    name: str
    role: ActorRole
    states: frozenset[TransactionState]
    handler: Handler

    @property
    def is_admin_action(self) -> bool:
        return self.role is ActorRole.ADMIN


class HandlerRegistry:
    def __init__(self) -> None:
        self._by_name: dict[str, ActionSpec] = {}
        self._by_key: dict[tuple[TransactionState, str], ActionSpec] = {}

    def register(
        self,
        name: str,
        role: ActorRole,
        states: Iterable[TransactionState],
        handler: Handler,
    ) -> ActionSpec:
        if name in self._by_name:
            raise ValueError(f"Action '{name}' is already registered")
        spec = ActionSpec(name=name, role=role, states=frozenset(states), handler=handler)
        self._by_name[name] = spec
        for state in spec.states:
            self._by_key[(state, name)] = spec
        return spec

    def action(
        self, name: str, role: ActorRole, *states: TransactionState
    ) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""

        def decorator(handler: Handler) -> Handler:
            self.register(name, role, states, handler)
            return handler

        return decorator

    def get(self, name: str) -> ActionSpec | None:
        return self._by_name.get(name)

    def lookup(self, state: TransactionState, name: str) -> ActionSpec | None:
        return self._by_key.get((state, name))

    def names(self) -> list[str]:
        return list(self._by_name)

    def available(self, state: TransactionState, roles: Iterable[ActorRole]) -> list[str]:
        """Actions legal in ``state`` for a caller holding any of ``roles``."""
        wanted = set(roles)
        return [
            name
            for (s, name), spec in self._by_key.items()
            if s is state and spec.role in wanted
        ]


registry = HandlerRegistry()

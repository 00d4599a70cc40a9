"""Transfer code verifier implementations and factory.

Three strategies:
    - ManualReviewCodeVerifier: Defers every code to an admin (PENDING). Default.
    - FormatCodeVerifier:       Accepts any well-formed code, rejects the rest.
    - MockCodeVerifier:         Instant configurable verdict for dry runs and tests.

None of them talks to a mail or account provider. A real integration only
needs to satisfy the CodeVerifier protocol in domain/ports.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from account_escrow.domain.enums import CodeVerdict, CodeVerifierType
from account_escrow.domain.validation import EscrowLimits, validate_transfer_code
from account_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from account_escrow.domain.ports import CodeVerifier
    from account_escrow.domain.transaction import Transaction

logger = get_logger(__name__)


class ManualReviewCodeVerifier:
    """Every code goes to an admin, who confirms or rejects it."""

    async def verify(self, transaction: Transaction, code: str) -> CodeVerdict:
        logger.info("verifier.manual.queued", transaction_id=transaction.id)
        return CodeVerdict.PENDING


class FormatCodeVerifier:
    """Accepts a code if it is well formed. Only as strong as the format rule."""

    def __init__(self, limits: EscrowLimits | None = None) -> None:
        self._limits = limits or EscrowLimits()

    async def verify(self, transaction: Transaction, code: str) -> CodeVerdict:
        errors = validate_transfer_code(code, self._limits)
        verdict = CodeVerdict.REJECTED if errors else CodeVerdict.VERIFIED
        logger.info("verifier.format.checked", transaction_id=transaction.id, verdict=verdict.value)
        return verdict


class MockCodeVerifier:
    """Instant mock verifier.

    Controlled via config keys:
        - should_pass (bool): VERIFIED when True, REJECTED when False. Default True.
        - verdict (str): Explicit verdict, overrides should_pass.
    Records every code it was asked about in ``calls``.
    """

    def __init__(self, should_pass: bool = True, verdict: str | None = None) -> None:
        if verdict is not None:
            self._verdict = CodeVerdict(verdict)
        else:
            self._verdict = CodeVerdict.VERIFIED if should_pass else CodeVerdict.REJECTED
        self.calls: list[tuple[str, str]] = []

    async def verify(self, transaction: Transaction, code: str) -> CodeVerdict:
        self.calls.append((transaction.id, code))
        return self._verdict


class CodeVerifierFactory:
    """Creates the configured code verifier.

    Usage:
        verifier = CodeVerifierFactory.create("manual")
        verifier = CodeVerifierFactory.create("mock", should_pass=False)
    """

    _registry: dict[str, type] = {
        CodeVerifierType.MANUAL.value: ManualReviewCodeVerifier,
        CodeVerifierType.FORMAT.value: FormatCodeVerifier,
        CodeVerifierType.MOCK.value: MockCodeVerifier,
    }

    @classmethod
    def create(cls, verifier_type: str, **config: Any) -> CodeVerifier:
        """Create a verifier instance.

        Raises:
            ValueError: If the type is unknown or missing.
        """
        if not verifier_type:
            raise ValueError(
                f"A code verifier type is required. Valid types: {cls.get_supported_types()}"
            )
        verifier_class = cls._registry.get(str(verifier_type))
        if verifier_class is None:
            raise ValueError(
                f"Unknown code verifier type: '{verifier_type}'. "
                f"Valid types: {cls.get_supported_types()}"
            )
        return verifier_class(**config)

    @classmethod
    def get_supported_types(cls) -> list[str]:
        return list(cls._registry.keys())


__all__ = [
    "CodeVerifierFactory",
    "FormatCodeVerifier",
    "ManualReviewCodeVerifier",
    "MockCodeVerifier",
]

"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup — if a setting is malformed, the app fails fast with a clear
error message.

Usage:
    from account_escrow.config import get_settings
    settings = get_settings()
    print(settings.database_url)
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from account_escrow.domain.enums import CodeVerifierType, TransactionState
from account_escrow.domain.validation import EscrowLimits


class Settings(BaseSettings):
    """Central configuration for the account escrow service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Database ---
    database_url: str = "sqlite+aiosqlite:///./account_escrow.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours

    # --- Administration ---
    # Comma-separated user ids with arbitration rights
    admin_user_ids: str = ""

    # --- Transaction limits ---
    min_transaction_amount: int = 50_000
    max_transaction_amount: int = 10_000_000
    description_min_length: int = 10
    description_max_length: int = 500
    max_active_transactions_per_seller: int = 3
    max_file_size_mb: int = 50
    video_min_seconds: int = 10
    video_max_seconds: int = 300
    card_details_min_length: int = 20
    issue_min_length: int = 10
    transfer_code_min_length: int = 4
    transfer_code_max_length: int = 10
    max_retry_attempts: int = 3

    # --- Timeouts (minutes) ---
    transaction_timeout_minutes: int = 30
    payment_verification_timeout_minutes: int = 24 * 60
    listing_timeout_minutes: int = 72 * 60
    transfer_timeout_minutes: int = 15
    buyer_verification_timeout_minutes: int = 24 * 60
    final_verification_timeout_minutes: int = 2 * 60
    timeout_sweep_interval_seconds: int = 300

    # --- Transfer code verification ---
    code_verifier: CodeVerifierType = CodeVerifierType.MANUAL

    # --- Notifications ---
    notifier: Literal["log", "webhook"] = "log"
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 10.0
    notification_max_attempts: int = 3

    # --- Rate limiting ---
    rate_limit_requests: int = 10
    rate_limit_window_seconds: int = 60
    rate_limit_max_keys: int = 10_000

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def admin_id_list(self) -> list[str]:
        """Parse comma-separated admin ids into a list."""
        if not self.admin_user_ids:
            return []
        return [a.strip() for a in self.admin_user_ids.split(",") if a.strip()]

    @property
    def limits(self) -> EscrowLimits:
        return EscrowLimits(
            min_amount=self.min_transaction_amount,
            max_amount=self.max_transaction_amount,
            description_min_length=self.description_min_length,
            description_max_length=self.description_max_length,
            max_active_per_seller=self.max_active_transactions_per_seller,
            max_file_size=self.max_file_size_mb * 1024 * 1024,
            video_min_seconds=self.video_min_seconds,
            video_max_seconds=self.video_max_seconds,
            card_details_min_length=self.card_details_min_length,
            issue_min_length=self.issue_min_length,
            code_min_length=self.transfer_code_min_length,
            code_max_length=self.transfer_code_max_length,
            max_retry_attempts=self.max_retry_attempts,
        )

    @property
    def timeouts(self) -> dict[TransactionState, timedelta]:
        """Maximum dwell time per non-terminal state."""
        default = timedelta(minutes=self.transaction_timeout_minutes)
        return {
            TransactionState.INITIATED: default,
            TransactionState.ELIGIBILITY_CHECK: default,
            TransactionState.PAYMENT_PENDING: timedelta(
                minutes=self.payment_verification_timeout_minutes
            ),
            TransactionState.PAYMENT_VERIFIED: timedelta(minutes=self.listing_timeout_minutes),
            TransactionState.ACCOUNT_TRANSFER: timedelta(minutes=self.transfer_timeout_minutes),
            TransactionState.BUYER_VERIFICATION: timedelta(
                minutes=self.buyer_verification_timeout_minutes
            ),
            TransactionState.FINAL_VERIFICATION: timedelta(
                minutes=self.final_verification_timeout_minutes
            ),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()

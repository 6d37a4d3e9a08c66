# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Set

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_CURRENCY,
    INSTANT_PAYOUT_FEE_MAX,
    INSTANT_PAYOUT_FEE_MIN,
    INSTANT_PAYOUT_FEE_RATE,
    MINIMUM_PAYOUT_AMOUNT,
    PAYOUT_HISTORY_LIMIT,
    RECENT_SESSIONS_LIMIT,
    TRANSFER_LOOKUP_LIMIT,
)


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


NON_PROD_SITE_MODES: Set[str] = {
    "local",
    "dev",
    "development",
    "int",
    "stg",
    "stage",
    "staging",
    "preview",
}
PROD_SITE_MODES: Set[str] = {"prod", "production", "live"}


def _classify_site_mode(raw_site_mode: str | None) -> tuple[str, bool, bool]:
    """Return normalized site mode with production/non-prod classification."""

    normalized = (raw_site_mode or "").strip().lower()
    is_prod = normalized in PROD_SITE_MODES
    is_non_prod = normalized in NON_PROD_SITE_MODES
    return normalized, is_prod, is_non_prod


class Settings(BaseSettings):
    site_mode: str = Field(default="local", description="Deployment mode (local|stg|prod)")
    log_level: str = Field(default="INFO", description="Root log level")

    # Environment (derived from SITE_MODE)
    environment: str = (
        "production" if _classify_site_mode(os.getenv("SITE_MODE", "local"))[1] else "development"
    )

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls (empty = in-memory fake client)",
    )
    stripe_currency: str = Field(
        default=DEFAULT_CURRENCY, description="Default currency for refunds and payouts"
    )
    stripe_timeout_seconds: float = Field(
        default=8.0, gt=0, description="Network timeout for every Stripe API call"
    )
    stripe_max_network_retries: int = Field(
        default=0,
        ge=0,
        description="SDK-level retries for transient network failures (0 = never retry)",
    )
    stripe_no_show_refund_reason: Literal["fraudulent", "requested_by_customer"] = Field(
        default="fraudulent",
        description="Stripe refund reason code used for no-show cancellations",
    )

    # Cancellation policy
    cancellation_notice_hours: float = Field(
        default=24, gt=0, description="Hours of notice required for a refundable cancellation"
    )
    transfer_lookup_limit: int = Field(
        default=TRANSFER_LOOKUP_LIMIT,
        gt=0,
        le=100,
        description="Most recent transfers scanned when correlating a payment to a transfer",
    )

    # Earnings / payouts
    payout_history_limit: int = Field(default=PAYOUT_HISTORY_LIMIT, gt=0, le=100)
    recent_sessions_limit: int = Field(default=RECENT_SESSIONS_LIMIT, gt=0)
    minimum_payout_amount: float = Field(
        default=MINIMUM_PAYOUT_AMOUNT, ge=0, description="Minimum payout amount (major units)"
    )
    instant_payout_fee_rate: float = Field(default=INSTANT_PAYOUT_FEE_RATE, ge=0)
    instant_payout_fee_min: float = Field(default=INSTANT_PAYOUT_FEE_MIN, ge=0)
    instant_payout_fee_max: float = Field(default=INSTANT_PAYOUT_FEE_MAX, ge=0)

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        cleaned = (value or "").strip().lower()
        if len(cleaned) != 3:
            raise ValueError("stripe_currency must be a three-letter ISO currency code")
        return cleaned

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        cleaned = (value or "INFO").strip().upper()
        if cleaned not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return cleaned

    @property
    def is_production(self) -> bool:
        return _classify_site_mode(self.site_mode)[1]

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value().strip())


settings = Settings()
logger.info(
    "[CONFIG] Payments configuration: site_mode=%s currency=%s stripe_configured=%s",
    settings.site_mode,
    settings.stripe_currency,
    settings.stripe_configured,
)

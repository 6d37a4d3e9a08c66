# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends

from ...core.config import settings
from ...integrations import FakeStripePaymentClient, PaymentProcessor, StripePaymentClient
from ...services.cancellation_service import CancellationService
from ...services.earnings_service import TherapistEarningsService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_payment_processor() -> PaymentProcessor:
    """
    Provide the process-wide payment processor client.

    Uses the Stripe SDK when a secret key is configured. Outside production a
    missing key falls back to the in-memory fake client so local runs work
    without credentials; in production it is a startup error.
    """
    logger.info(
        "Payment processor selection",
        extra={
            "site_mode": settings.site_mode,
            "stripe_configured": settings.stripe_configured,
        },
    )

    try:
        return StripePaymentClient(
            api_key=settings.stripe_secret_key,
            timeout=settings.stripe_timeout_seconds,
            max_network_retries=settings.stripe_max_network_retries,
        )
    except ValueError as exc:  # Missing API key
        if settings.is_production:
            raise
        logger.warning(
            "Falling back to FakeStripePaymentClient due to configuration error",
            extra={"site_mode": settings.site_mode, "error": str(exc)},
        )
        return FakeStripePaymentClient()


def get_cancellation_service(
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> CancellationService:
    """Get CancellationService wired to the payment processor."""
    return CancellationService(
        processor,
        notice_hours=settings.cancellation_notice_hours,
        transfer_lookup_limit=settings.transfer_lookup_limit,
        no_show_refund_reason=settings.stripe_no_show_refund_reason,
    )


def get_earnings_service(
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> TherapistEarningsService:
    """Get TherapistEarningsService wired to the payment processor."""
    return TherapistEarningsService(processor, currency=settings.stripe_currency)

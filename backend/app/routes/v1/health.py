# backend/app/routes/v1/health.py
"""
Health check endpoints for monitoring and load balancer probes.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os

from fastapi import APIRouter, Depends, Response

from ...api.dependencies.services import get_payment_processor
from ...core.config import settings
from ...core.constants import API_VERSION, BRAND_NAME
from ...integrations import FakeStripePaymentClient, PaymentProcessor
from ...schemas.main_responses import HealthLiteResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _apply_health_headers(response: Response) -> None:
    """Apply standard health check headers."""
    response.headers["X-Site-Mode"] = (settings.site_mode or "").lower().strip() or "unset"
    response.headers["X-Commit-Sha"] = _resolve_git_sha()


def _resolve_git_sha() -> str:
    candidates = [
        os.getenv("RENDER_GIT_COMMIT"),
        os.getenv("GIT_SHA"),
        os.getenv("COMMIT_SHA"),
    ]
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return "unknown"


@router.get("", response_model=HealthResponse)
def health_check(
    response: Response,
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> HealthResponse:
    """
    Health check endpoint.

    Returns basic health status including service info, environment and
    whether the real Stripe client or the in-memory fake is active.
    """
    _apply_health_headers(response)
    return HealthResponse(
        status="healthy",
        service=f"{BRAND_NAME.lower().replace(' ', '-')}-payments",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        payment_processor="fake" if isinstance(processor, FakeStripePaymentClient) else "stripe",
    )


@router.get("/lite", response_model=HealthLiteResponse)
def health_check_lite() -> HealthLiteResponse:
    """
    Lightweight health check that doesn't touch the payment processor.

    Use this for high-frequency health probes.
    """
    return HealthLiteResponse(status="ok")

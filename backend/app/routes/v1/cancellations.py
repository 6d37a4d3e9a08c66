# backend/app/routes/v1/cancellations.py
"""
Cancellation API Routes - API v1

Versioned cancellation endpoints under /api/v1/cancellations.

Endpoints:
    POST /sessions                       → Cancel a paid session (refund / reversal)
    POST /policy                         → Preview timing, policy and amounts
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies.services import get_cancellation_service
from ...schemas.cancellation import (
    CancellationOutcome,
    CancellationPolicyRequest,
    CancellationPolicyResponse,
    SessionCancellationRequest,
)
from ...services.cancellation_service import CancellationService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["cancellations-v1"])


@router.post("/sessions", response_model=CancellationOutcome)
async def cancel_session(
    payload: SessionCancellationRequest,
    service: CancellationService = Depends(get_cancellation_service),
) -> CancellationOutcome:
    """
    Cancel a paid therapy session.

    Refunds the client and/or reverses the therapist transfer according to the
    cancellation policy. Domain errors are rendered by the app-level handlers:
    422 when the payment never completed, 502 when Stripe calls fail.
    """
    logger.info(
        "Cancellation requested",
        extra={
            "payment_intent_id": payload.payment_intent_id,
            "cancellation_reason": payload.cancellation_reason.value,
            "cancellation_time": payload.cancellation_time.value,
        },
    )
    return await asyncio.to_thread(service.handle_session_cancellation, payload)


@router.post("/policy", response_model=CancellationPolicyResponse)
def preview_cancellation_policy(
    payload: CancellationPolicyRequest,
    service: CancellationService = Depends(get_cancellation_service),
) -> CancellationPolicyResponse:
    """Return the cancellation timing, advisory policy and amounts without moving money."""
    return service.preview_cancellation(
        cancellation_reason=payload.cancellation_reason,
        session_fee=payload.session_fee,
        hours_before=payload.hours_until_session,
        session_start=payload.session_start,
    )

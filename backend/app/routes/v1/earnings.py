# backend/app/routes/v1/earnings.py
"""
Earnings API Routes - API v1

Versioned therapist earnings endpoints under /api/v1/earnings.

Endpoints:
    GET /therapists/{account_id}          → Earnings summary for a connected account
    GET /therapists/{account_id}/balance  → Available and pending balance
    POST /payouts                         → Initiate a standard or instant payout
    GET /instant-payout-fee               → Quote the instant payout fee for an amount
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies.services import get_earnings_service
from ...schemas.earnings import (
    AvailableBalanceResponse,
    InstantPayoutFeeResponse,
    PayoutRequest,
    PayoutResponse,
    TherapistEarningsResponse,
)
from ...services.earnings_service import TherapistEarningsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["earnings-v1"])

ACCOUNT_ID_PATH = Path(..., min_length=1, description="Stripe connected account id")


@router.get("/therapists/{account_id}", response_model=TherapistEarningsResponse)
async def get_therapist_earnings(
    account_id: str = ACCOUNT_ID_PATH,
    service: TherapistEarningsService = Depends(get_earnings_service),
) -> TherapistEarningsResponse:
    """Summarise transfers, balance and payout history for a therapist."""
    return await asyncio.to_thread(service.get_therapist_earnings, account_id)


@router.get("/therapists/{account_id}/balance", response_model=AvailableBalanceResponse)
async def get_available_balance(
    account_id: str = ACCOUNT_ID_PATH,
    service: TherapistEarningsService = Depends(get_earnings_service),
) -> AvailableBalanceResponse:
    return await asyncio.to_thread(service.get_available_balance, account_id)


@router.post("/payouts", response_model=PayoutResponse)
async def initiate_payout(
    payload: PayoutRequest,
    service: TherapistEarningsService = Depends(get_earnings_service),
) -> PayoutResponse:
    """
    Create a payout on the therapist's connected account.

    Amounts below the minimum payout are rejected with 422 before Stripe is called.
    """
    logger.info(
        "Payout requested",
        extra={
            "account_id": payload.therapist_stripe_account_id,
            "method": payload.method.value,
        },
    )
    return await asyncio.to_thread(service.initiate_payout, payload)


@router.get("/instant-payout-fee", response_model=InstantPayoutFeeResponse)
def get_instant_payout_fee(
    amount: float = Query(..., gt=0, description="Payout amount in major units"),
    service: TherapistEarningsService = Depends(get_earnings_service),
) -> InstantPayoutFeeResponse:
    return service.quote_instant_payout_fee(amount)

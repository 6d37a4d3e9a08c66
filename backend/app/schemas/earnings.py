"""Schemas for therapist earnings, balances and payouts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class PayoutMethod(str, Enum):
    INSTANT = "instant"
    STANDARD = "standard"


class PayoutRecord(StrictModel):
    id: str
    amount: float
    status: str
    arrival_date: datetime | None = None
    method: str
    currency: str
    fee: float


class SessionEarning(StrictModel):
    id: str
    client_name: str
    date: datetime
    amount: float
    status: str = "completed"
    type: str = "therapy_session"


class TherapistEarningsResponse(StrictModel):
    total_earnings: float
    pending_earnings: float
    available_for_payout: float
    this_month_earnings: float
    this_week_earnings: float
    today_earnings: float
    sessions_this_month: int
    average_session_rate: float
    next_payout_date: datetime
    stripe_connect_status: str
    bank_account_connected: bool
    payout_schedule: str
    minimum_payout_amount: float
    payout_history: List[PayoutRecord] = Field(default_factory=list)
    recent_sessions: List[SessionEarning] = Field(default_factory=list)


class AvailableBalanceResponse(StrictModel):
    available: float
    pending: float
    currency: str


class PayoutRequest(StrictRequestModel):
    amount: float = Field(gt=0)
    method: PayoutMethod = PayoutMethod.STANDARD
    therapist_stripe_account_id: str = Field(min_length=1)
    idempotency_key: str | None = Field(default=None, min_length=8, max_length=200)


class PayoutResponse(StrictModel):
    payout_id: str
    amount: float
    fee: float
    arrival_date: datetime | None = None
    method: str


class InstantPayoutFeeResponse(StrictModel):
    amount: float
    fee: float
    net_amount: float

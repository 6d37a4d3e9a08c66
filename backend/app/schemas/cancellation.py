"""Schemas for session cancellation, refund evaluation and execution."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field, model_validator

from ._strict_base import StrictModel, StrictRequestModel


class CancellationReason(str, Enum):
    CLIENT_CANCELLED = "client_cancelled"
    THERAPIST_CANCELLED = "therapist_cancelled"
    MUTUAL_CANCELLATION = "mutual_cancellation"
    NO_SHOW = "no_show"


class CancellationTiming(str, Enum):
    BEFORE_24H = "before_24h"
    WITHIN_24H = "within_24h"
    AFTER_START = "after_start"


class RefundPolicy(str, Enum):
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"
    NO_REFUND = "no_refund"


class SessionCancellationRequest(StrictRequestModel):
    payment_intent_id: str = Field(min_length=1)
    therapist_stripe_account_id: str = Field(min_length=1)
    session_fee: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    cancellation_reason: CancellationReason
    cancellation_time: CancellationTiming
    # Informational only; amounts are recomputed from reason and timing.
    refund_policy: RefundPolicy | None = None
    idempotency_key: str | None = Field(default=None, min_length=8, max_length=200)


class CancellationOutcome(StrictModel):
    refund_id: str | None = None
    refund_status: str | None = None
    transfer_reversal_id: str | None = None
    client_refund_amount: Decimal
    therapist_deduction: Decimal
    platform_fee: Decimal
    cancellation_fee: Decimal
    deduction_applied: bool = True
    policy_basis: str = ""


class CancellationPolicyRequest(StrictRequestModel):
    cancellation_reason: CancellationReason
    session_fee: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    hours_until_session: float | None = None
    session_start: datetime | None = None

    @model_validator(mode="after")
    def _require_timing_source(self) -> "CancellationPolicyRequest":
        if self.hours_until_session is None and self.session_start is None:
            raise ValueError("Provide hours_until_session or session_start")
        return self


class CancellationPolicyResponse(StrictModel):
    cancellation_time: CancellationTiming
    refund_policy: RefundPolicy
    hours_until_session: float
    client_refund_amount: Decimal
    therapist_deduction: Decimal
    platform_fee: Decimal
    cancellation_fee: Decimal
    stripe_refund_reason: str
    policy_basis: str

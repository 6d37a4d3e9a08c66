# backend/app/schemas/__init__.py
"""
Pydantic schemas for the Hive Wellness payments backend.
"""

from .cancellation import (
    CancellationOutcome,
    CancellationPolicyRequest,
    CancellationPolicyResponse,
    CancellationReason,
    CancellationTiming,
    RefundPolicy,
    SessionCancellationRequest,
)
from .earnings import (
    AvailableBalanceResponse,
    InstantPayoutFeeResponse,
    PayoutMethod,
    PayoutRecord,
    PayoutRequest,
    PayoutResponse,
    SessionEarning,
    TherapistEarningsResponse,
)

__all__ = [
    # Cancellation
    "CancellationReason",
    "CancellationTiming",
    "RefundPolicy",
    "SessionCancellationRequest",
    "CancellationOutcome",
    "CancellationPolicyRequest",
    "CancellationPolicyResponse",
    # Earnings
    "PayoutMethod",
    "PayoutRecord",
    "SessionEarning",
    "TherapistEarningsResponse",
    "AvailableBalanceResponse",
    "PayoutRequest",
    "PayoutResponse",
    "InstantPayoutFeeResponse",
]

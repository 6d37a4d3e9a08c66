"""Cancellation refund policy evaluation.

Pure functions only: no processor calls, no clock reads except where a caller
omits ``now``. The effectful side lives in ``cancellation_service``.

Policy, in precedence order:

1. Therapist cancels: full refund to the client, regardless of timing.
   Funds have not been transferred to the therapist yet, so nothing is deducted.
2. Client/mutual/no-show cancellation inside the notice window (or after the
   session started): no refund; the whole fee becomes the cancellation fee and
   the platform retains it.
3. Otherwise (more than the notice window before start): full refund.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import assert_never

from ..schemas.cancellation import CancellationReason, CancellationTiming, RefundPolicy
from ..utils.money import Number, quantize_money

DEFAULT_NOTICE_HOURS = 24.0

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CancellationAmounts:
    client_refund_amount: Decimal
    therapist_deduction: Decimal
    cancellation_fee: Decimal
    platform_fee: Decimal
    policy_basis: str = ""


@dataclass(frozen=True)
class CancellationPolicyDecision:
    cancellation_time: CancellationTiming
    refund_policy: RefundPolicy


def compute_cancellation_amounts(
    session_fee: Number,
    cancellation_reason: CancellationReason,
    cancellation_time: CancellationTiming,
) -> CancellationAmounts:
    """Map (fee, reason, timing) to refund, deduction and fee amounts."""
    fee = quantize_money(session_fee)
    if fee <= 0:
        raise ValueError("session_fee must be positive")

    if cancellation_reason == CancellationReason.THERAPIST_CANCELLED:
        return CancellationAmounts(
            client_refund_amount=fee,
            therapist_deduction=ZERO,
            cancellation_fee=ZERO,
            platform_fee=ZERO,
            policy_basis="Therapist cancelled: full refund regardless of timing",
        )

    match cancellation_time:
        case CancellationTiming.WITHIN_24H | CancellationTiming.AFTER_START:
            return CancellationAmounts(
                client_refund_amount=ZERO,
                therapist_deduction=ZERO,
                cancellation_fee=fee,
                platform_fee=fee,
                policy_basis="Cancelled inside the notice window: no refund, fee retained",
            )
        case CancellationTiming.BEFORE_24H:
            return CancellationAmounts(
                client_refund_amount=fee,
                therapist_deduction=ZERO,
                cancellation_fee=ZERO,
                platform_fee=ZERO,
                policy_basis="Cancelled before the notice window: full refund",
            )
        case _:
            assert_never(cancellation_time)


def classify_cancellation_time(
    hours_until_session: float, *, notice_hours: float = DEFAULT_NOTICE_HOURS
) -> CancellationTiming:
    if hours_until_session > notice_hours:
        return CancellationTiming.BEFORE_24H
    if hours_until_session > 0:
        return CancellationTiming.WITHIN_24H
    return CancellationTiming.AFTER_START


def advisory_refund_policy(cancellation_reason: CancellationReason) -> RefundPolicy:
    """Descriptive label only; ``compute_cancellation_amounts`` decides the amounts."""
    match cancellation_reason:
        case CancellationReason.THERAPIST_CANCELLED:
            return RefundPolicy.FULL_REFUND
        case CancellationReason.NO_SHOW:
            return RefundPolicy.NO_REFUND
        case CancellationReason.CLIENT_CANCELLED | CancellationReason.MUTUAL_CANCELLATION:
            return RefundPolicy.PARTIAL_REFUND
        case _:
            assert_never(cancellation_reason)


def get_cancellation_policy(
    hours_until_session: float,
    cancellation_reason: CancellationReason,
    *,
    notice_hours: float = DEFAULT_NOTICE_HOURS,
) -> CancellationPolicyDecision:
    return CancellationPolicyDecision(
        cancellation_time=classify_cancellation_time(
            hours_until_session, notice_hours=notice_hours
        ),
        refund_policy=advisory_refund_policy(cancellation_reason),
    )


def hours_until_session(session_start: datetime, now: datetime | None = None) -> float:
    """Hours from ``now`` until ``session_start``; naive datetimes are treated as UTC."""
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    scheduled_start = session_start
    if scheduled_start.tzinfo is None:
        scheduled_start = scheduled_start.replace(tzinfo=timezone.utc)
    return (scheduled_start - current).total_seconds() / 3600


def map_refund_reason(
    cancellation_reason: CancellationReason, *, no_show_reason: str = "fraudulent"
) -> str:
    """Stripe refund reason code for a cancellation reason."""
    match cancellation_reason:
        case (
            CancellationReason.CLIENT_CANCELLED
            | CancellationReason.THERAPIST_CANCELLED
            | CancellationReason.MUTUAL_CANCELLATION
        ):
            return "requested_by_customer"
        case CancellationReason.NO_SHOW:
            return no_show_reason
        case _:
            assert_never(cancellation_reason)

"""
Session cancellation workflow.

Validates that the session payment was captured, evaluates the cancellation
policy and carries out the resulting refund and/or transfer reversal with the
payment processor. Booking status updates are left to the caller.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from ..core.config import settings
from ..core.exceptions import (
    CancellationProcessingException,
    DomainException,
    PaymentNotCompletedException,
)
from ..integrations.stripe_client import PaymentProcessor, describe_error
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.cancellation import (
    CancellationOutcome,
    CancellationPolicyResponse,
    CancellationReason,
    SessionCancellationRequest,
)
from ..utils.money import Number, quantize_money, to_minor_units
from .base import BaseService
from .cancellation_policy import (
    CancellationAmounts,
    advisory_refund_policy,
    compute_cancellation_amounts,
    get_cancellation_policy,
    hours_until_session,
    map_refund_reason,
)

REFUNDABLE_PAYMENT_STATUS = "succeeded"
DEDUCTION_TYPE = "cancellation_fee"


def _charge_id_for(payment_intent: dict[str, Any]) -> Optional[str]:
    """Return the charge backing a payment intent (expanded, id-only or legacy list)."""
    latest = payment_intent.get("latest_charge")
    if isinstance(latest, str) and latest:
        return latest
    if isinstance(latest, dict) and latest.get("id"):
        return str(latest["id"])
    charges = payment_intent.get("charges") or {}
    data = charges.get("data") if isinstance(charges, dict) else None
    if data:
        first = data[0]
        if isinstance(first, dict) and first.get("id"):
            return str(first["id"])
    return None


def _transfer_matches(
    transfer: dict[str, Any], *, payment_intent_id: str, charge_id: Optional[str]
) -> bool:
    metadata = transfer.get("metadata") or {}
    tagged = metadata.get("payment_intent_id") or metadata.get("paymentIntentId")
    if tagged and tagged == payment_intent_id:
        return True
    return charge_id is not None and transfer.get("source_transaction") == charge_id


class CancellationService(BaseService):
    """Evaluates cancellation policy and executes refunds/reversals."""

    def __init__(
        self,
        processor: PaymentProcessor,
        *,
        notice_hours: Optional[float] = None,
        transfer_lookup_limit: Optional[int] = None,
        no_show_refund_reason: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.processor = processor
        self.notice_hours = (
            notice_hours if notice_hours is not None else settings.cancellation_notice_hours
        )
        self.transfer_lookup_limit = transfer_lookup_limit or settings.transfer_lookup_limit
        self.no_show_refund_reason = (
            no_show_refund_reason or settings.stripe_no_show_refund_reason
        )

    @BaseService.measure_operation("preview_cancellation")
    def preview_cancellation(
        self,
        *,
        cancellation_reason: CancellationReason,
        session_fee: Number,
        hours_before: Optional[float] = None,
        session_start: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> CancellationPolicyResponse:
        """Classify timing and compute amounts without touching the processor."""
        if hours_before is None:
            if session_start is None:
                raise ValueError("hours_before or session_start is required")
            hours_before = hours_until_session(session_start, now)

        decision = get_cancellation_policy(
            hours_before, cancellation_reason, notice_hours=self.notice_hours
        )
        amounts = compute_cancellation_amounts(
            session_fee, cancellation_reason, decision.cancellation_time
        )
        return CancellationPolicyResponse(
            cancellation_time=decision.cancellation_time,
            refund_policy=decision.refund_policy,
            hours_until_session=round(hours_before, 4),
            client_refund_amount=amounts.client_refund_amount,
            therapist_deduction=amounts.therapist_deduction,
            platform_fee=amounts.platform_fee,
            cancellation_fee=amounts.cancellation_fee,
            stripe_refund_reason=map_refund_reason(
                cancellation_reason, no_show_reason=self.no_show_refund_reason
            ),
            policy_basis=amounts.policy_basis,
        )

    @BaseService.measure_operation("handle_session_cancellation")
    def handle_session_cancellation(
        self, request: SessionCancellationRequest
    ) -> CancellationOutcome:
        """
        Cancel a paid session: refund the client and/or claw back a therapist transfer.

        Raises:
            PaymentNotCompletedException: the payment intent has not succeeded
            CancellationProcessingException: any payment processor failure
        """
        reason = request.cancellation_reason.value
        timing = request.cancellation_time.value

        try:
            payment_intent = self.processor.retrieve_payment_intent(request.payment_intent_id)
        except Exception as exc:
            prometheus_metrics.inc_cancellation(reason, timing, "error")
            self.logger.error(
                "Error retrieving payment intent %s for cancellation: %s",
                request.payment_intent_id,
                exc,
            )
            raise CancellationProcessingException(
                describe_error(exc),
                details={"stage": "retrieve_payment_intent"},
            ) from exc

        payment_status = payment_intent.get("status")
        if payment_status != REFUNDABLE_PAYMENT_STATUS:
            prometheus_metrics.inc_cancellation(reason, timing, "rejected")
            raise PaymentNotCompletedException(request.payment_intent_id, payment_status)

        advisory = advisory_refund_policy(request.cancellation_reason)
        if request.refund_policy is not None and request.refund_policy != advisory:
            self.logger.info(
                "Ignoring caller refund policy %s for %s; policy table decides amounts",
                request.refund_policy.value,
                request.payment_intent_id,
            )

        amounts = compute_cancellation_amounts(
            request.session_fee, request.cancellation_reason, request.cancellation_time
        )

        try:
            outcome = self.execute_outcome(request, amounts, payment_intent=payment_intent)
        except CancellationProcessingException:
            prometheus_metrics.inc_cancellation(reason, timing, "error")
            raise

        prometheus_metrics.inc_cancellation(
            reason,
            timing,
            "refunded" if outcome.client_refund_amount > 0 else "fee_retained",
        )
        self.log_operation(
            "session_cancelled",
            payment_intent_id=request.payment_intent_id,
            cancellation_reason=reason,
            cancellation_time=timing,
            refund_id=outcome.refund_id,
        )
        return outcome

    def execute_outcome(
        self,
        request: SessionCancellationRequest,
        amounts: CancellationAmounts,
        *,
        payment_intent: dict[str, Any],
    ) -> CancellationOutcome:
        """Issue the refund and/or transfer reversal that ``amounts`` call for."""
        key_prefix = request.idempotency_key or f"cancel-{request.payment_intent_id}"
        refund_id: Optional[str] = None
        refund_status: Optional[str] = None
        reversal_id: Optional[str] = None
        deduction_applied = True

        if amounts.client_refund_amount > 0:
            amount_minor = to_minor_units(amounts.client_refund_amount)
            try:
                refund = self.processor.create_refund(
                    payment_intent_id=request.payment_intent_id,
                    amount_minor=amount_minor,
                    reason=map_refund_reason(
                        request.cancellation_reason, no_show_reason=self.no_show_refund_reason
                    ),
                    metadata={
                        "cancellation_reason": request.cancellation_reason.value,
                        "cancellation_time": request.cancellation_time.value,
                        "original_session_fee": str(quantize_money(request.session_fee)),
                    },
                    idempotency_key=f"{key_prefix}:refund:{amount_minor}",
                )
            except DomainException:
                raise
            except Exception as exc:
                self.logger.error(
                    "Refund failed for payment intent %s: %s", request.payment_intent_id, exc
                )
                raise CancellationProcessingException(
                    describe_error(exc),
                    details={"stage": "refund", "payment_intent_id": request.payment_intent_id},
                ) from exc
            refund_id = refund.get("id")
            refund_status = refund.get("status")
            prometheus_metrics.add_refund_amount(amount_minor)

        if amounts.therapist_deduction > 0:
            try:
                reversal_id = self._reverse_therapist_transfer(
                    request,
                    amounts.therapist_deduction,
                    payment_intent=payment_intent,
                    key_prefix=key_prefix,
                )
            except DomainException:
                raise
            except Exception as exc:
                if refund_id:
                    self.logger.error(
                        "Refund %s issued but transfer reversal failed for %s; "
                        "manual reconciliation required",
                        refund_id,
                        request.payment_intent_id,
                    )
                raise CancellationProcessingException(
                    describe_error(exc),
                    details={
                        "stage": "transfer_reversal",
                        "payment_intent_id": request.payment_intent_id,
                        "refund_id": refund_id,
                    },
                ) from exc
            deduction_applied = reversal_id is not None

        return CancellationOutcome(
            refund_id=refund_id,
            refund_status=refund_status,
            transfer_reversal_id=reversal_id,
            client_refund_amount=amounts.client_refund_amount,
            therapist_deduction=amounts.therapist_deduction,
            platform_fee=amounts.platform_fee,
            cancellation_fee=amounts.cancellation_fee,
            deduction_applied=deduction_applied,
            policy_basis=amounts.policy_basis,
        )

    def _reverse_therapist_transfer(
        self,
        request: SessionCancellationRequest,
        deduction: Decimal,
        *,
        payment_intent: dict[str, Any],
        key_prefix: str,
    ) -> Optional[str]:
        transfers = self.processor.list_transfers(
            destination=request.therapist_stripe_account_id,
            limit=self.transfer_lookup_limit,
        )
        charge_id = _charge_id_for(payment_intent)
        related = next(
            (
                transfer
                for transfer in transfers
                if _transfer_matches(
                    transfer, payment_intent_id=request.payment_intent_id, charge_id=charge_id
                )
            ),
            None,
        )
        if related is None:
            self.logger.warning(
                "No transfer to %s found for payment intent %s; deduction of %s not applied",
                request.therapist_stripe_account_id,
                request.payment_intent_id,
                deduction,
            )
            return None

        amount_minor = to_minor_units(deduction)
        reversal = self.processor.create_transfer_reversal(
            transfer_id=related["id"],
            amount_minor=amount_minor,
            metadata={
                "cancellation_reason": request.cancellation_reason.value,
                "deduction_type": DEDUCTION_TYPE,
            },
            idempotency_key=f"{key_prefix}:reversal:{related['id']}:{amount_minor}",
        )
        return reversal.get("id")


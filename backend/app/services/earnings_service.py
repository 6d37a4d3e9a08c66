"""
Therapist earnings, balance and payout operations over Stripe Connect.

Earnings are derived from the transfers the platform made to the therapist's
connected account; balances and payouts are read from and created on that
account directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from ..core.config import settings
from ..core.constants import BRAND_NAME, PAYOUT_SOURCE_TAG
from ..core.exceptions import (
    DomainException,
    EarningsRetrievalException,
    PayoutBelowMinimumException,
    PayoutFailedException,
)
from ..integrations.stripe_client import PaymentProcessor, describe_error
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.earnings import (
    AvailableBalanceResponse,
    InstantPayoutFeeResponse,
    PayoutMethod,
    PayoutRecord,
    PayoutRequest,
    PayoutResponse,
    SessionEarning,
    TherapistEarningsResponse,
)
from ..utils.money import from_minor_units, minor_to_float, quantize_money, to_minor_units
from .base import BaseService

CLIENT_MARKER = "Client:"
DEFAULT_SESSION_LABEL = "Session Payment"
PAYOUT_DESCRIPTION = "Manual payout requested via {brand} portal"


def calculate_instant_payout_fee(
    amount: float,
    *,
    rate: Optional[float] = None,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> float:
    """Instant payout fee: ``amount * rate`` clamped to [minimum, maximum], 2 dp."""
    rate = settings.instant_payout_fee_rate if rate is None else rate
    minimum = settings.instant_payout_fee_min if minimum is None else minimum
    maximum = settings.instant_payout_fee_max if maximum is None else maximum

    raw = Decimal(str(amount)) * Decimal(str(rate))
    clamped = max(Decimal(str(minimum)), min(Decimal(str(maximum)), raw))
    return float(clamped.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _sum_balance(entries: Iterable[dict[str, Any]] | None) -> int:
    return sum(int(entry.get("amount") or 0) for entry in entries or [])


def _client_name(description: Optional[str]) -> str:
    if description and CLIENT_MARKER in description:
        name = description.split(CLIENT_MARKER, 1)[1].strip()
        if name:
            return name
    return DEFAULT_SESSION_LABEL


def _from_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _payout_interval(account: dict[str, Any]) -> str:
    schedule = ((account.get("settings") or {}).get("payouts") or {}).get("schedule") or {}
    return str(schedule.get("interval") or "daily")


def next_payout_date(interval: str, now: datetime) -> datetime:
    """Weekly schedules pay out on the coming Sunday; everything else tomorrow."""
    if interval == "weekly":
        # Sunday -> 7 days ahead, Monday -> 6, ..., Saturday -> 1
        return now + timedelta(days=6 - now.weekday() or 7)
    return now + timedelta(days=1)


class TherapistEarningsService(BaseService):
    """Read-side earnings summary plus payout initiation for connected accounts."""

    def __init__(
        self,
        processor: PaymentProcessor,
        *,
        currency: Optional[str] = None,
        transfer_lookup_limit: Optional[int] = None,
        payout_history_limit: Optional[int] = None,
        recent_sessions_limit: Optional[int] = None,
        minimum_payout_amount: Optional[float] = None,
    ) -> None:
        super().__init__()
        self.processor = processor
        self.currency = (currency or settings.stripe_currency).lower()
        self.transfer_lookup_limit = transfer_lookup_limit or settings.transfer_lookup_limit
        self.payout_history_limit = payout_history_limit or settings.payout_history_limit
        self.recent_sessions_limit = recent_sessions_limit or settings.recent_sessions_limit
        self.minimum_payout_amount = (
            settings.minimum_payout_amount
            if minimum_payout_amount is None
            else minimum_payout_amount
        )

    @BaseService.measure_operation("get_therapist_earnings")
    def get_therapist_earnings(
        self, account_id: str, now: Optional[datetime] = None
    ) -> TherapistEarningsResponse:
        """
        Summarise a therapist's earnings from their connected account.

        Args:
            account_id: Stripe connected account id (``acct_...``)
            now: Reference time for the month/week/day windows (defaults to UTC now)

        Raises:
            EarningsRetrievalException: any processor call failed
        """
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)

        try:
            account = self.processor.retrieve_account(account_id)
            balance = self.processor.retrieve_balance(account_id)
            payouts = self.processor.list_payouts(account_id, limit=self.payout_history_limit)
            transfers = self.processor.list_transfers(
                destination=account_id, limit=self.transfer_lookup_limit
            )
        except Exception as exc:
            self.logger.error("Error fetching therapist earnings for %s: %s", account_id, exc)
            raise EarningsRetrievalException(describe_error(exc), account_id=account_id) from exc

        start_of_day = current.replace(hour=0, minute=0, second=0, microsecond=0)
        # Weeks start on Sunday
        start_of_week = start_of_day - timedelta(days=(current.weekday() + 1) % 7)
        start_of_month = start_of_day.replace(day=1)

        total = this_month = this_week = today = Decimal("0.00")
        sessions_this_month = 0
        recent_sessions: list[SessionEarning] = []

        for transfer in transfers:
            created = _from_timestamp(transfer.get("created")) or current
            amount = from_minor_units(transfer.get("amount"))
            total += amount
            if created >= start_of_month:
                this_month += amount
                sessions_this_month += 1
            if created >= start_of_week:
                this_week += amount
            if created >= start_of_day:
                today += amount
            if len(recent_sessions) < self.recent_sessions_limit:
                recent_sessions.append(
                    SessionEarning(
                        id=transfer["id"],
                        client_name=_client_name(transfer.get("description")),
                        date=created,
                        amount=float(amount),
                    )
                )

        average_rate = (
            quantize_money(this_month / sessions_this_month) if sessions_this_month else Decimal("0")
        )
        interval = _payout_interval(account)
        external_accounts = account.get("external_accounts") or {}

        return TherapistEarningsResponse(
            total_earnings=float(total),
            pending_earnings=minor_to_float(_sum_balance(balance.get("pending"))),
            available_for_payout=minor_to_float(_sum_balance(balance.get("available"))),
            this_month_earnings=float(this_month),
            this_week_earnings=float(this_week),
            today_earnings=float(today),
            sessions_this_month=sessions_this_month,
            average_session_rate=float(average_rate),
            next_payout_date=next_payout_date(interval, current),
            stripe_connect_status="active" if account.get("charges_enabled") else "setup_required",
            bank_account_connected=int(external_accounts.get("total_count") or 0) > 0,
            payout_schedule=interval,
            minimum_payout_amount=float(self.minimum_payout_amount),
            payout_history=[self._payout_record(payout) for payout in payouts],
            recent_sessions=recent_sessions,
        )

    @BaseService.measure_operation("get_available_balance")
    def get_available_balance(self, account_id: str) -> AvailableBalanceResponse:
        try:
            balance = self.processor.retrieve_balance(account_id)
        except Exception as exc:
            self.logger.error("Error fetching balance for %s: %s", account_id, exc)
            raise EarningsRetrievalException(
                describe_error(exc), account_id=account_id, subject="balance"
            ) from exc

        return AvailableBalanceResponse(
            available=minor_to_float(_sum_balance(balance.get("available"))),
            pending=minor_to_float(_sum_balance(balance.get("pending"))),
            currency=self.currency.upper(),
        )

    @BaseService.measure_operation("initiate_payout")
    def initiate_payout(self, request: PayoutRequest) -> PayoutResponse:
        """
        Create a payout on the therapist's connected account.

        Raises:
            PayoutBelowMinimumException: amount is under the minimum payout
            PayoutFailedException: the processor rejected the payout
        """
        method = request.method.value
        account_id = request.therapist_stripe_account_id

        if Decimal(str(request.amount)) < Decimal(str(self.minimum_payout_amount)):
            prometheus_metrics.inc_payout_request(method, "rejected")
            raise PayoutBelowMinimumException(request.amount, float(self.minimum_payout_amount))

        amount_minor = to_minor_units(request.amount)
        try:
            payout = self.processor.create_payout(
                account_id=account_id,
                amount_minor=amount_minor,
                currency=self.currency,
                method=method,
                description=PAYOUT_DESCRIPTION.format(brand=BRAND_NAME),
                metadata={"source": PAYOUT_SOURCE_TAG, "request_method": method},
                idempotency_key=request.idempotency_key,
            )
        except DomainException:
            raise
        except Exception as exc:
            prometheus_metrics.inc_payout_request(method, "error")
            self.logger.error("Error initiating payout for %s: %s", account_id, exc)
            raise PayoutFailedException(describe_error(exc), account_id=account_id) from exc

        prometheus_metrics.inc_payout_request(method, "success")
        self.log_operation(
            "payout_initiated", account_id=account_id, payout_id=payout.get("id"), method=method
        )
        return PayoutResponse(
            payout_id=payout["id"],
            amount=minor_to_float(payout.get("amount")),
            fee=minor_to_float(payout.get("fee")),
            arrival_date=_from_timestamp(payout.get("arrival_date")),
            method=str(payout.get("method") or method),
        )

    def quote_instant_payout_fee(self, amount: float) -> InstantPayoutFeeResponse:
        fee = calculate_instant_payout_fee(amount)
        net = max(quantize_money(Decimal(str(amount)) - Decimal(str(fee))), Decimal("0.00"))
        return InstantPayoutFeeResponse(amount=amount, fee=fee, net_amount=float(net))

    @staticmethod
    def _payout_record(payout: dict[str, Any]) -> PayoutRecord:
        return PayoutRecord(
            id=payout["id"],
            amount=minor_to_float(payout.get("amount")),
            status=str(payout.get("status") or "unknown"),
            arrival_date=_from_timestamp(payout.get("arrival_date")),
            method=str(payout.get("method") or PayoutMethod.STANDARD.value),
            currency=str(payout.get("currency") or "").upper(),
            fee=minor_to_float(payout.get("fee")),
        )


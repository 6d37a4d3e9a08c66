"""Stripe payment processor client.

Thin wrapper over the Stripe SDK exposing only the calls the cancellation and
earnings services need. Every call passes the API key, the connected account
(when acting on a therapist's account) and an idempotency key explicitly, so
no module-level Stripe state is required beyond the shared HTTP client.

Amounts crossing this boundary are always in minor currency units (pence).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable
import uuid

from pydantic import SecretStr
import stripe

logger = logging.getLogger(__name__)


class StripeGatewayError(RuntimeError):
    """Raised when the Stripe API responds with an error or is unreachable."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status


def describe_error(exc: BaseException) -> str:
    """Upstream-facing message for a processor failure."""
    if isinstance(exc, StripeGatewayError):
        return exc.message
    return str(exc) or "Unknown error"


@runtime_checkable
class PaymentProcessor(Protocol):
    """Payment processor calls consumed by the payments services."""

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        ...

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_minor: int,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        ...

    def list_transfers(self, *, destination: str, limit: int) -> list[dict[str, Any]]:
        ...

    def create_transfer_reversal(
        self,
        *,
        transfer_id: str,
        amount_minor: int,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        ...

    def retrieve_balance(self, account_id: str) -> dict[str, Any]:
        ...

    def retrieve_account(self, account_id: str) -> dict[str, Any]:
        ...

    def list_payouts(self, account_id: str, *, limit: int) -> list[dict[str, Any]]:
        ...

    def create_payout(
        self,
        *,
        account_id: str,
        amount_minor: int,
        currency: str,
        method: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        ...


def _to_plain(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or plain mapping) into a plain dict."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return dict(to_dict())
    if isinstance(obj, dict):
        return dict(obj)
    return dict(vars(obj))


def _list_data(listing: Any) -> list[dict[str, Any]]:
    data = listing.get("data") if isinstance(listing, dict) else getattr(listing, "data", None)
    return [_to_plain(item) for item in (data or [])]


class StripePaymentClient:
    """Stripe SDK-backed implementation of :class:`PaymentProcessor`."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr,
        timeout: float = 8.0,
        max_network_retries: int = 0,
    ) -> None:
        self._api_key = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not self._api_key:
            raise ValueError("Stripe API key is required for StripePaymentClient")
        # The HTTP client is process-wide in the SDK; every call still passes its own key.
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        stripe.max_network_retries = max_network_retries

    def _call(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, api_key=self._api_key, **kwargs)
        except stripe.StripeError as exc:
            message = getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__
            logger.error("Stripe %s failed: %s", operation, message)
            raise StripeGatewayError(
                message,
                code=getattr(exc, "code", None),
                http_status=getattr(exc, "http_status", None),
            ) from exc

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        intent = self._call(
            "retrieve_payment_intent",
            stripe.PaymentIntent.retrieve,
            payment_intent_id,
            expand=["latest_charge"],
        )
        return _to_plain(intent)

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_minor: int,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        refund = self._call(
            "create_refund",
            stripe.Refund.create,
            payment_intent=payment_intent_id,
            amount=amount_minor,
            reason=reason,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        return _to_plain(refund)

    def list_transfers(self, *, destination: str, limit: int) -> list[dict[str, Any]]:
        listing = self._call(
            "list_transfers", stripe.Transfer.list, destination=destination, limit=limit
        )
        return _list_data(listing)

    def create_transfer_reversal(
        self,
        *,
        transfer_id: str,
        amount_minor: int,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        # stripe.Transfer.create_reversal expects transfer id as positional arg
        reversal = self._call(
            "create_transfer_reversal",
            stripe.Transfer.create_reversal,
            transfer_id,
            amount=amount_minor,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        return _to_plain(reversal)

    def retrieve_balance(self, account_id: str) -> dict[str, Any]:
        balance = self._call("retrieve_balance", stripe.Balance.retrieve, stripe_account=account_id)
        return _to_plain(balance)

    def retrieve_account(self, account_id: str) -> dict[str, Any]:
        account = self._call("retrieve_account", stripe.Account.retrieve, account_id)
        return _to_plain(account)

    def list_payouts(self, account_id: str, *, limit: int) -> list[dict[str, Any]]:
        listing = self._call(
            "list_payouts", stripe.Payout.list, limit=limit, stripe_account=account_id
        )
        return _list_data(listing)

    def create_payout(
        self,
        *,
        account_id: str,
        amount_minor: int,
        currency: str,
        method: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        payout = self._call(
            "create_payout",
            stripe.Payout.create,
            amount=amount_minor,
            currency=currency,
            method=method,
            description=description,
            metadata=metadata,
            stripe_account=account_id,
            idempotency_key=idempotency_key,
        )
        return _to_plain(payout)


class FakeStripePaymentClient:
    """In-memory stub for testing/non-production environments."""

    def __init__(self, **kwargs: Any) -> None:
        self.calls: list[dict[str, Any]] = []
        self._errors: dict[str, StripeGatewayError] = {}
        self.payment_intents: dict[str, dict[str, Any]] = {}
        self.transfers: dict[str, list[dict[str, Any]]] = {}
        self.balances: dict[str, dict[str, Any]] = {}
        self.accounts: dict[str, dict[str, Any]] = {}
        self.payouts: dict[str, list[dict[str, Any]]] = {}
        self._idempotent_results: dict[str, dict[str, Any]] = {}

    def set_error(self, method: str, error: StripeGatewayError) -> None:
        """Inject a method-specific error for deterministic failure testing."""
        self._errors[method] = error

    def clear_errors(self) -> None:
        """Reset all injected fake-client errors."""
        self._errors.clear()

    def calls_for(self, method: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["method"] == method]

    def _raise_if_injected(self, method: str) -> None:
        error = self._errors.get(method)
        if error is not None:
            raise error

    def _replay(self, idempotency_key: str | None, build: Any) -> dict[str, Any]:
        if idempotency_key and idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]
        result: dict[str, Any] = build()
        if idempotency_key:
            self._idempotent_results[idempotency_key] = result
        return result

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        self.calls.append({"method": "retrieve_payment_intent", "id": payment_intent_id})
        self._raise_if_injected("retrieve_payment_intent")
        intent = self.payment_intents.get(payment_intent_id)
        if intent is None:
            raise StripeGatewayError(
                f"No such payment_intent: '{payment_intent_id}'",
                code="resource_missing",
                http_status=404,
            )
        return intent

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_minor: int,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_intent_id": payment_intent_id,
                "amount_minor": amount_minor,
                "reason": reason,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        self._raise_if_injected("create_refund")
        return self._replay(
            idempotency_key,
            lambda: {
                "id": f"re_fake_{uuid.uuid4().hex[:12]}",
                "object": "refund",
                "amount": amount_minor,
                "payment_intent": payment_intent_id,
                "reason": reason,
                "metadata": metadata,
                "status": "succeeded",
            },
        )

    def list_transfers(self, *, destination: str, limit: int) -> list[dict[str, Any]]:
        self.calls.append({"method": "list_transfers", "destination": destination, "limit": limit})
        self._raise_if_injected("list_transfers")
        return list(self.transfers.get(destination, []))[:limit]

    def create_transfer_reversal(
        self,
        *,
        transfer_id: str,
        amount_minor: int,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "method": "create_transfer_reversal",
                "transfer_id": transfer_id,
                "amount_minor": amount_minor,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        self._raise_if_injected("create_transfer_reversal")
        return self._replay(
            idempotency_key,
            lambda: {
                "id": f"trr_fake_{uuid.uuid4().hex[:12]}",
                "object": "transfer_reversal",
                "amount": amount_minor,
                "transfer": transfer_id,
                "metadata": metadata,
            },
        )

    def retrieve_balance(self, account_id: str) -> dict[str, Any]:
        self.calls.append({"method": "retrieve_balance", "account_id": account_id})
        self._raise_if_injected("retrieve_balance")
        return self.balances.get(account_id, {"available": [], "pending": []})

    def retrieve_account(self, account_id: str) -> dict[str, Any]:
        self.calls.append({"method": "retrieve_account", "account_id": account_id})
        self._raise_if_injected("retrieve_account")
        return self.accounts.get(
            account_id,
            {
                "id": account_id,
                "charges_enabled": False,
                "external_accounts": {"total_count": 0},
                "settings": {"payouts": {"schedule": {"interval": "daily"}}},
            },
        )

    def list_payouts(self, account_id: str, *, limit: int) -> list[dict[str, Any]]:
        self.calls.append({"method": "list_payouts", "account_id": account_id, "limit": limit})
        self._raise_if_injected("list_payouts")
        return list(self.payouts.get(account_id, []))[:limit]

    def create_payout(
        self,
        *,
        account_id: str,
        amount_minor: int,
        currency: str,
        method: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "method": "create_payout",
                "account_id": account_id,
                "amount_minor": amount_minor,
                "currency": currency,
                "payout_method": method,
                "description": description,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        self._raise_if_injected("create_payout")
        return self._replay(
            idempotency_key,
            lambda: {
                "id": f"po_fake_{uuid.uuid4().hex[:12]}",
                "object": "payout",
                "amount": amount_minor,
                "currency": currency,
                "method": method,
                "fee": 0,
                "arrival_date": 1767225600,
                "status": "pending",
            },
        )

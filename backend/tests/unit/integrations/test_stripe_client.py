"""Tests for the Stripe payment processor client."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

from pydantic import SecretStr
import pytest
import stripe

from app.integrations.stripe_client import (
    FakeStripePaymentClient,
    PaymentProcessor,
    StripeGatewayError,
    StripePaymentClient,
    describe_error,
)

API_KEY = "sk_test_hive_123"


@pytest.fixture
def client() -> StripePaymentClient:
    return StripePaymentClient(api_key=API_KEY, timeout=5.0, max_network_retries=0)


# ── Construction ───────────────────────────────────────────────────────


class TestConstruction:
    def test_empty_key_is_rejected(self):
        with pytest.raises(ValueError):
            StripePaymentClient(api_key="")

    def test_secret_str_unwrapped(self):
        client = StripePaymentClient(api_key=SecretStr(API_KEY))

        with patch.object(stripe.Balance, "retrieve", return_value={"available": []}) as mock:
            client.retrieve_balance("acct_1")

        assert mock.call_args.kwargs["api_key"] == API_KEY

    def test_network_settings_applied(self):
        StripePaymentClient(api_key=API_KEY, timeout=3.5, max_network_retries=0)

        assert isinstance(stripe.default_http_client, stripe.RequestsClient)
        assert stripe.max_network_retries == 0

    def test_both_clients_satisfy_protocol(self, client):
        assert isinstance(client, PaymentProcessor)
        assert isinstance(FakeStripePaymentClient(), PaymentProcessor)


# ── SDK calls (mocked) ─────────────────────────────────────────────────


class TestSdkCalls:
    def test_retrieve_payment_intent_expands_latest_charge(self, client):
        intent = SimpleNamespace(to_dict=lambda: {"id": "pi_1", "status": "succeeded"})
        with patch.object(stripe.PaymentIntent, "retrieve", return_value=intent) as mock:
            result = client.retrieve_payment_intent("pi_1")

        assert result == {"id": "pi_1", "status": "succeeded"}
        assert mock.call_args.args == ("pi_1",)
        assert mock.call_args.kwargs == {"api_key": API_KEY, "expand": ["latest_charge"]}

    def test_create_refund_sends_minor_units_and_idempotency_key(self, client):
        with patch.object(
            stripe.Refund, "create", return_value={"id": "re_1", "status": "succeeded"}
        ) as mock:
            result = client.create_refund(
                payment_intent_id="pi_1",
                amount_minor=8000,
                reason="requested_by_customer",
                metadata={"cancellation_reason": "client_cancelled"},
                idempotency_key="cancel-pi_1:refund:8000",
            )

        assert result["id"] == "re_1"
        assert mock.call_args.kwargs == {
            "api_key": API_KEY,
            "payment_intent": "pi_1",
            "amount": 8000,
            "reason": "requested_by_customer",
            "metadata": {"cancellation_reason": "client_cancelled"},
            "idempotency_key": "cancel-pi_1:refund:8000",
        }

    def test_list_transfers_returns_plain_dicts(self, client):
        listing = {"data": [{"id": "tr_1"}, {"id": "tr_2"}], "has_more": False}
        with patch.object(stripe.Transfer, "list", return_value=listing) as mock:
            result = client.list_transfers(destination="acct_1", limit=100)

        assert [t["id"] for t in result] == ["tr_1", "tr_2"]
        assert mock.call_args.kwargs == {"api_key": API_KEY, "destination": "acct_1", "limit": 100}

    def test_create_transfer_reversal_passes_transfer_positionally(self, client):
        with patch.object(
            stripe.Transfer, "create_reversal", return_value={"id": "trr_1"}
        ) as mock:
            result = client.create_transfer_reversal(
                transfer_id="tr_1",
                amount_minor=2000,
                metadata={"deduction_type": "cancellation_fee"},
                idempotency_key="k-1",
            )

        assert result == {"id": "trr_1"}
        assert mock.call_args.args == ("tr_1",)
        assert mock.call_args.kwargs["amount"] == 2000
        assert mock.call_args.kwargs["idempotency_key"] == "k-1"

    def test_connected_account_calls_use_stripe_account(self, client):
        with patch.object(stripe.Payout, "list", return_value={"data": []}) as list_mock:
            client.list_payouts("acct_1", limit=10)
        with patch.object(stripe.Payout, "create", return_value={"id": "po_1"}) as create_mock:
            client.create_payout(
                account_id="acct_1",
                amount_minor=2500,
                currency="gbp",
                method="instant",
                description="Manual payout",
                metadata={"source": "hive_wellness_portal"},
                idempotency_key=None,
            )

        assert list_mock.call_args.kwargs["stripe_account"] == "acct_1"
        assert list_mock.call_args.kwargs["limit"] == 10
        assert create_mock.call_args.kwargs["stripe_account"] == "acct_1"
        assert create_mock.call_args.kwargs["method"] == "instant"
        assert create_mock.call_args.kwargs["amount"] == 2500

    def test_retrieve_account_passes_account_id(self, client):
        with patch.object(stripe.Account, "retrieve", return_value={"id": "acct_1"}) as mock:
            assert client.retrieve_account("acct_1") == {"id": "acct_1"}

        assert mock.call_args.args == ("acct_1",)


# ── Error mapping ──────────────────────────────────────────────────────


class TestErrorMapping:
    def test_stripe_error_becomes_gateway_error(self, client):
        error = stripe.InvalidRequestError(
            "No such payment_intent: 'pi_missing'",
            "id",
            code="resource_missing",
            http_status=404,
        )
        with patch.object(stripe.PaymentIntent, "retrieve", side_effect=error):
            with pytest.raises(StripeGatewayError) as exc_info:
                client.retrieve_payment_intent("pi_missing")

        assert "No such payment_intent" in exc_info.value.message
        assert exc_info.value.code == "resource_missing"
        assert exc_info.value.http_status == 404
        assert exc_info.value.__cause__ is error

    def test_connection_error_becomes_gateway_error(self, client):
        error = stripe.APIConnectionError("Request timed out")
        with patch.object(stripe.Refund, "create", side_effect=error):
            with pytest.raises(StripeGatewayError):
                client.create_refund(
                    payment_intent_id="pi_1", amount_minor=100, reason="fraudulent", metadata={}
                )

    def test_describe_error(self):
        assert describe_error(StripeGatewayError("card declined")) == "card declined"
        assert describe_error(RuntimeError("boom")) == "boom"
        assert describe_error(RuntimeError()) == "Unknown error"


# ── Fake client ────────────────────────────────────────────────────────


class TestFakeClient:
    def test_records_calls_and_replays_idempotent_requests(self):
        fake = FakeStripePaymentClient()

        first = fake.create_refund(
            payment_intent_id="pi_1", amount_minor=100, reason="fraudulent", metadata={}, idempotency_key="k"
        )
        second = fake.create_refund(
            payment_intent_id="pi_1", amount_minor=100, reason="fraudulent", metadata={}, idempotency_key="k"
        )

        assert first["id"] == second["id"]
        assert len(fake.calls_for("create_refund")) == 2

    def test_injected_errors_raise_until_cleared(self):
        fake = FakeStripePaymentClient()
        fake.set_error("list_transfers", StripeGatewayError("down"))

        with pytest.raises(StripeGatewayError):
            fake.list_transfers(destination="acct_1", limit=10)

        fake.clear_errors()
        assert fake.list_transfers(destination="acct_1", limit=10) == []

    def test_unknown_payment_intent_is_resource_missing(self):
        with pytest.raises(StripeGatewayError) as exc_info:
            FakeStripePaymentClient().retrieve_payment_intent("pi_nope")

        assert exc_info.value.code == "resource_missing"
        assert exc_info.value.http_status == 404

    def test_list_limit_is_honoured(self):
        fake = FakeStripePaymentClient()
        fake.transfers["acct_1"] = [{"id": f"tr_{i}"} for i in range(5)]

        assert len(fake.list_transfers(destination="acct_1", limit=3)) == 3

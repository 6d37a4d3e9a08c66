from __future__ import annotations

from app.integrations.stripe_client import StripeGatewayError
from tests.fixtures.payments import THERAPIST_ACCOUNT_ID


def test_get_earnings_for_new_account(client):
    response = client.get(f"/api/v1/earnings/therapists/{THERAPIST_ACCOUNT_ID}")

    assert response.status_code == 200
    body = response.json()
    assert body["total_earnings"] == 0.0
    assert body["stripe_connect_status"] == "setup_required"
    assert body["bank_account_connected"] is False
    assert body["payout_history"] == []
    assert body["recent_sessions"] == []


def test_get_earnings_failure_is_502(client, fake_processor):
    fake_processor.set_error("retrieve_account", StripeGatewayError("No such account"))

    response = client.get(f"/api/v1/earnings/therapists/{THERAPIST_ACCOUNT_ID}")

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "EARNINGS_UNAVAILABLE"
    assert body["detail"] == "Failed to fetch earnings data: No such account"


def test_get_balance(client, fake_processor):
    fake_processor.balances[THERAPIST_ACCOUNT_ID] = {
        "available": [{"amount": 4200}],
        "pending": [{"amount": 800}],
    }

    response = client.get(f"/api/v1/earnings/therapists/{THERAPIST_ACCOUNT_ID}/balance")

    assert response.status_code == 200
    assert response.json() == {"available": 42.0, "pending": 8.0, "currency": "GBP"}


def test_payout_success(client, fake_processor):
    response = client.post(
        "/api/v1/earnings/payouts",
        json={
            "amount": 40,
            "method": "standard",
            "therapist_stripe_account_id": THERAPIST_ACCOUNT_ID,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["payout_id"].startswith("po_fake_")
    assert body["amount"] == 40.0
    assert body["method"] == "standard"
    assert fake_processor.calls_for("create_payout")[0]["amount_minor"] == 4000


def test_payout_below_minimum_is_422(client, fake_processor):
    response = client.post(
        "/api/v1/earnings/payouts",
        json={"amount": 5, "therapist_stripe_account_id": THERAPIST_ACCOUNT_ID},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "PAYOUT_BELOW_MINIMUM"
    assert fake_processor.calls_for("create_payout") == []


def test_payout_processor_failure_is_502(client, fake_processor):
    fake_processor.set_error("create_payout", StripeGatewayError("Insufficient funds"))

    response = client.post(
        "/api/v1/earnings/payouts",
        json={"amount": 50, "therapist_stripe_account_id": THERAPIST_ACCOUNT_ID},
    )

    assert response.status_code == 502
    assert response.json()["code"] == "PAYOUT_FAILED"


def test_instant_payout_fee_quote(client):
    response = client.get("/api/v1/earnings/instant-payout-fee", params={"amount": 1000})

    assert response.status_code == 200
    assert response.json() == {"amount": 1000.0, "fee": 10.0, "net_amount": 990.0}


def test_instant_payout_fee_requires_positive_amount(client):
    response = client.get("/api/v1/earnings/instant-payout-fee", params={"amount": 0})

    assert response.status_code == 422

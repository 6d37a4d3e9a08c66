from __future__ import annotations

from decimal import Decimal

from app.integrations.stripe_client import StripeGatewayError
from tests.fixtures.payments import PAYMENT_INTENT_ID, THERAPIST_ACCOUNT_ID, succeeded_intent

CANCEL_URL = "/api/v1/cancellations/sessions"
POLICY_URL = "/api/v1/cancellations/policy"


def _payload(**overrides):
    body = {
        "payment_intent_id": PAYMENT_INTENT_ID,
        "therapist_stripe_account_id": THERAPIST_ACCOUNT_ID,
        "session_fee": "80.00",
        "cancellation_reason": "client_cancelled",
        "cancellation_time": "before_24h",
    }
    body.update(overrides)
    return body


def test_cancel_session_refunds_client(client, fake_processor):
    response = client.post(CANCEL_URL, json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["refund_id"].startswith("re_fake_")
    assert Decimal(body["client_refund_amount"]) == Decimal("80.00")
    assert Decimal(body["cancellation_fee"]) == Decimal("0")
    assert body["deduction_applied"] is True
    assert body["policy_basis"] == "Cancelled before the notice window: full refund"
    assert fake_processor.calls_for("create_refund")[0]["amount_minor"] == 8000


def test_cancel_session_within_notice_keeps_fee(client, fake_processor):
    response = client.post(CANCEL_URL, json=_payload(cancellation_time="within_24h"))

    assert response.status_code == 200
    body = response.json()
    assert body["refund_id"] is None
    assert Decimal(body["platform_fee"]) == Decimal("80.00")
    assert fake_processor.calls_for("create_refund") == []


def test_unpaid_session_returns_problem_422(client, fake_processor):
    fake_processor.payment_intents[PAYMENT_INTENT_ID] = succeeded_intent(
        status="requires_payment_method"
    )

    response = client.post(CANCEL_URL, json=_payload())

    assert response.status_code == 422
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    assert body["code"] == "PAYMENT_NOT_COMPLETED"
    assert body["detail"] == "Payment not completed, cannot process cancellation"
    assert body["errors"]["payment_status"] == "requires_payment_method"
    assert body["instance"] == CANCEL_URL


def test_processor_failure_returns_problem_502(client, fake_processor):
    fake_processor.set_error("create_refund", StripeGatewayError("Stripe is down"))

    response = client.post(CANCEL_URL, json=_payload())

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "CANCELLATION_PROCESSING_FAILED"
    assert body["detail"] == "Failed to process cancellation: Stripe is down"
    assert body["title"] == "Bad Gateway"


def test_unknown_reason_is_a_validation_error(client, fake_processor):
    response = client.post(CANCEL_URL, json=_payload(cancellation_reason="weather"))

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
    assert fake_processor.calls == []


def test_unexpected_fields_are_rejected(client):
    response = client.post(CANCEL_URL, json=_payload(refund_amount="80.00"))

    assert response.status_code == 422


def test_non_positive_fee_is_rejected(client):
    response = client.post(CANCEL_URL, json=_payload(session_fee="0"))

    assert response.status_code == 422


def test_policy_preview_from_hours(client, fake_processor):
    response = client.post(
        POLICY_URL,
        json={
            "cancellation_reason": "client_cancelled",
            "session_fee": "60.00",
            "hours_until_session": 2,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["cancellation_time"] == "within_24h"
    assert body["refund_policy"] == "partial_refund"
    assert Decimal(body["client_refund_amount"]) == Decimal("0")
    assert Decimal(body["cancellation_fee"]) == Decimal("60.00")
    assert body["stripe_refund_reason"] == "requested_by_customer"
    assert fake_processor.calls == []


def test_policy_preview_requires_timing(client):
    response = client.post(
        POLICY_URL, json={"cancellation_reason": "no_show", "session_fee": "60.00"}
    )

    assert response.status_code == 422

from __future__ import annotations

import pytest

from app.core.constants import API_VERSION
from app.middleware.prometheus_middleware import _endpoint_label
from tests.fixtures.payments import THERAPIST_ACCOUNT_ID


def test_health_reports_fake_processor(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == API_VERSION
    assert body["payment_processor"] == "fake"
    assert body["timestamp"].endswith("Z")
    assert "X-Site-Mode" in response.headers


def test_health_lite(client):
    response = client.get("/api/v1/health/lite")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["version"] == API_VERSION


def test_metrics_exposes_request_and_service_counters(client):
    client.post(
        "/api/v1/cancellations/policy",
        json={
            "cancellation_reason": "client_cancelled",
            "session_fee": "60.00",
            "hours_until_session": 30,
        },
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    text = response.text
    assert "hive_http_requests_total" in text
    assert 'endpoint="/api/v1/cancellations/policy"' in text
    assert "hive_service_operations_total" in text
    assert 'operation="preview_cancellation"' in text


def test_unknown_route_is_problem_404(client):
    response = client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == 404
    assert body["title"] == "Not Found"


def test_metrics_labels_keep_router_prefixes(client):
    client.get("/api/v1/health")
    client.get("/api/v1/health/lite")

    text = client.get("/metrics").text

    assert 'endpoint="/api/v1/health"' in text
    assert 'endpoint="/api/v1/health/lite"' in text
    assert 'endpoint="/lite"' not in text
    assert 'endpoint="unmatched"' not in text


def test_metrics_labels_collapse_account_ids(client):
    client.get(f"/api/v1/earnings/therapists/{THERAPIST_ACCOUNT_ID}/balance")

    text = client.get("/metrics").text

    assert 'endpoint="/api/v1/earnings/therapists/:id/balance"' in text
    assert THERAPIST_ACCOUNT_ID not in text


@pytest.mark.parametrize(
    ("path", "label"),
    [
        ("/api/v1/cancellations/policy", "/api/v1/cancellations/policy"),
        (
            "/api/v1/earnings/therapists/acct_1Nv0FG/balance",
            "/api/v1/earnings/therapists/:id/balance",
        ),
        ("/api/v1/earnings/instant-payout-fee", "/api/v1/earnings/instant-payout-fee"),
        ("/api/v1/items/42", "/api/v1/items/:id"),
        ("/", "/"),
    ],
)
def test_endpoint_label_normalizes_ids(path, label):
    assert _endpoint_label(path) == label

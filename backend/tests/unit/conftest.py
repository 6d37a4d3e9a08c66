from fastapi.testclient import TestClient
import pytest

from app.api.dependencies.services import get_payment_processor
from app.integrations.stripe_client import FakeStripePaymentClient
from app.main import app
from app.services.base import BaseService
from tests.fixtures.payments import PAYMENT_INTENT_ID, succeeded_intent


@pytest.fixture(autouse=True)
def _reset_service_metrics():
    BaseService._class_metrics.clear()
    yield
    BaseService._class_metrics.clear()


@pytest.fixture
def fake_processor() -> FakeStripePaymentClient:
    """Fake Stripe client holding one captured payment intent."""
    processor = FakeStripePaymentClient()
    processor.payment_intents[PAYMENT_INTENT_ID] = succeeded_intent()
    return processor


@pytest.fixture
def client(fake_processor):
    app.dependency_overrides[get_payment_processor] = lambda: fake_processor
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_payment_processor, None)

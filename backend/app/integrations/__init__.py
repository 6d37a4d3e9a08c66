"""External service integrations for the Hive Wellness payments backend."""

from .stripe_client import (
    FakeStripePaymentClient,
    PaymentProcessor,
    StripeGatewayError,
    StripePaymentClient,
)

__all__ = [
    "FakeStripePaymentClient",
    "PaymentProcessor",
    "StripeGatewayError",
    "StripePaymentClient",
]

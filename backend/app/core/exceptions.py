# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the Hive Wellness payments backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class UpstreamServiceException(ServiceException):
    """Raised when a third-party provider call fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": self.message or "Upstream provider error",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific payment exceptions


class PaymentNotCompletedException(BusinessRuleException):
    """Raised when a payment is not in a refundable state."""

    def __init__(self, payment_intent_id: str, payment_status: Optional[str]):
        super().__init__(
            message="Payment not completed, cannot process cancellation",
            code="PAYMENT_NOT_COMPLETED",
            details={
                "payment_intent_id": payment_intent_id,
                "payment_status": payment_status or "unknown",
            },
        )


class CancellationProcessingException(UpstreamServiceException):
    """Raised when a session cancellation could not be carried out with the processor."""

    def __init__(self, upstream_message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Failed to process cancellation: {upstream_message}",
            code="CANCELLATION_PROCESSING_FAILED",
            details=details or {},
        )


class EarningsRetrievalException(UpstreamServiceException):
    """Raised when earnings or balance data cannot be fetched."""

    def __init__(self, upstream_message: str, *, account_id: str, subject: str = "earnings data"):
        super().__init__(
            message=f"Failed to fetch {subject}: {upstream_message}",
            code="EARNINGS_UNAVAILABLE",
            details={"account_id": account_id},
        )


class PayoutFailedException(UpstreamServiceException):
    """Raised when a payout could not be created."""

    def __init__(self, upstream_message: str, *, account_id: str):
        super().__init__(
            message=f"Failed to initiate payout: {upstream_message}",
            code="PAYOUT_FAILED",
            details={"account_id": account_id},
        )


class PayoutBelowMinimumException(BusinessRuleException):
    """Raised when a payout request is smaller than the minimum payout amount."""

    def __init__(self, requested_amount: float, minimum_amount: float):
        super().__init__(
            message=f"Payouts must be at least {minimum_amount:.2f}",
            code="PAYOUT_BELOW_MINIMUM",
            details={
                "requested_amount": requested_amount,
                "minimum_amount": minimum_amount,
            },
        )

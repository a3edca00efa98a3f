"""Billing domain errors.

Every error carries a display-ready ``reason`` and the HTTP status the API
layer should answer with, so routers only have to translate, never decide.
"""

from fastapi import status


class BillingError(Exception):
    """Base class for rejections raised by the billing services."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code


class PlanNotAvailable(BillingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reason: str = "Plan not available") -> None:
        super().__init__(reason)


class UserNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reason: str = "User not found") -> None:
        super().__init__(reason)


class PaymentNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reason: str = "Payment not found") -> None:
        super().__init__(reason)


class CouponRejected(BillingError):
    """Coupon is unknown, inactive, expired, exhausted or already used."""


class OrderRejected(BillingError):
    """Order cannot be created (same plan, downgrade, amount too small)."""


class PaymentVerificationFailed(BillingError):
    def __init__(self, reason: str = "Payment verification failed") -> None:
        super().__init__(reason)


class GatewayError(BillingError):
    """The payment provider rejected or failed to answer a request."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, code: str, description: str) -> None:
        super().__init__(description or "Payment gateway error")
        self.code = code
        self.description = description


class InvalidPaymentTransition(BillingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move payment from {current} to {requested}")
        self.current = current
        self.requested = requested


class InvalidWebhookPayload(BillingError):
    """A correctly signed webhook body that is not a Razorpay event object."""

    def __init__(self, reason: str = "Invalid payload") -> None:
        super().__init__(reason)


class CouponNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reason: str = "Coupon not found") -> None:
        super().__init__(reason)

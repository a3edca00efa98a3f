"""Pydantic v2 request/response schemas for payment endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.billing import SubscriptionResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateOrderRequest(BaseModel):
    """Start checkout for a plan, optionally with a coupon."""

    plan: str = Field(..., min_length=1, max_length=50)
    coupon_code: str | None = Field(None, max_length=50)


class VerifyPaymentRequest(BaseModel):
    """Fields posted back by the Razorpay checkout widget."""

    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderResponse(BaseModel):
    """Everything the client needs to open the Razorpay checkout."""

    order_id: str
    amount: int
    currency: str
    key_id: str
    payment_id: uuid.UUID
    plan: str
    base_amount: int
    discount_percent: int
    discount_amount: int
    upgrade_from: str


class PaymentResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    user_email: str
    plan: str
    upgrade_from: str
    base_amount: int
    discount_percent: int
    discount_amount: int
    amount: int
    currency: str
    status: str
    order_id: str
    payment_id: str | None = None
    method: str
    error_code: str
    error_description: str
    coupon_code: str
    coupon_redeemed: bool
    subscription_activated: bool
    paid_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentListResponse(BaseModel):
    payments: list[PaymentResponse]


class VerifyPaymentResponse(BaseModel):
    ok: bool = True
    status: str
    subscription: SubscriptionResponse | None = None


class CancelPaymentResponse(BaseModel):
    ok: bool = True
    payment: PaymentResponse

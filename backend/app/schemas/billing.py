"""Pydantic v2 request/response schemas for plan, subscription and coupon endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# --- Request schemas ---


class CouponValidateRequest(BaseModel):
    """Preview a coupon, optionally priced against a plan."""

    code: str = Field(..., min_length=1, max_length=50)
    plan: str | None = Field(None, max_length=50)


class CouponCreateRequest(BaseModel):
    """New coupon. ``percent_off`` is checked against 1..100 by the service."""

    code: str = Field(..., min_length=3, max_length=50)
    percent_off: int
    description: str = Field("", max_length=255)
    is_active: bool = True
    max_uses_total: int = Field(0, ge=0)
    max_uses_per_user: int = Field(1, ge=1)
    expires_at: datetime | None = None


class CouponUpdateRequest(BaseModel):
    """Partial coupon update; only fields present in the body are applied."""

    code: str | None = Field(None, min_length=3, max_length=50)
    percent_off: int | None = None
    description: str | None = Field(None, max_length=255)
    is_active: bool | None = None
    max_uses_total: int | None = Field(None, ge=0)
    max_uses_per_user: int | None = Field(None, ge=1)
    expires_at: datetime | None = None


# --- Response schemas ---


class PlanResponse(BaseModel):
    """Plan details for display. ``price`` is in minor units."""

    plan_name: str
    display_name: str
    description: str
    price: int
    duration_value: int
    duration_unit: str
    is_lifetime: bool
    is_popular: bool
    is_active: bool
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class PlansListResponse(BaseModel):
    plans: list[PlanResponse]


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    plan: str
    status: str
    is_active: bool
    start_date: datetime
    end_date: datetime | None
    payment_id: uuid.UUID | None

    model_config = ConfigDict(from_attributes=True)


class CurrentSubscriptionResponse(BaseModel):
    """The user's plan mirror plus the active subscription row (if any)."""

    subscription_plan: str
    subscription_status: str
    subscription_start_date: datetime | None
    subscription_end_date: datetime | None
    subscription: SubscriptionResponse | None


class CouponValidateResponse(BaseModel):
    valid: bool = True
    code: str
    percent_off: int
    base_amount: int | None = None
    discount_amount: int | None = None
    final_amount: int | None = None


class CouponResponse(BaseModel):
    id: uuid.UUID
    code: str
    percent_off: int
    description: str
    is_active: bool
    max_uses_total: int
    max_uses_per_user: int
    uses_total: int
    expires_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CouponListResponse(BaseModel):
    coupons: list[CouponResponse]

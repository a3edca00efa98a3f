"""Coupon API endpoints: the student-facing preview plus admin management."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db, require_admin
from app.billing.coupons import (
    create_coupon,
    deactivate_coupon,
    list_coupons,
    update_coupon,
    validate_coupon,
)
from app.billing.exceptions import BillingError
from app.models.user import User
from app.schemas.billing import (
    CouponCreateRequest,
    CouponListResponse,
    CouponResponse,
    CouponUpdateRequest,
    CouponValidateRequest,
    CouponValidateResponse,
)

router = APIRouter(prefix="/api/v1/coupons", tags=["coupons"])


@router.post("/validate", response_model=CouponValidateResponse)
async def validate(
    body: CouponValidateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CouponValidateResponse:
    """Check whether the caller can use a coupon and what it would save them."""
    try:
        result = await validate_coupon(db, body.code, current_user.id, plan_name=body.plan)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e

    return CouponValidateResponse(
        code=result.code,
        percent_off=result.percent_off,
        base_amount=result.base_amount,
        discount_amount=result.discount_amount,
        final_amount=result.final_amount,
    )


@router.get("", response_model=CouponListResponse)
async def list_all(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> CouponListResponse:
    """List every coupon, newest first (admin only)."""
    coupons = await list_coupons(db)
    return CouponListResponse(coupons=[CouponResponse.model_validate(c) for c in coupons])


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create(
    body: CouponCreateRequest,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> CouponResponse:
    """Create a coupon (admin only)."""
    try:
        coupon = await create_coupon(db, **body.model_dump())
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    return CouponResponse.model_validate(coupon)


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update(
    coupon_id: uuid.UUID,
    body: CouponUpdateRequest,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> CouponResponse:
    """Update the fields sent in the body (admin only)."""
    try:
        coupon = await update_coupon(db, coupon_id, body.model_dump(exclude_unset=True))
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    return CouponResponse.model_validate(coupon)


@router.delete("/{coupon_id}", response_model=CouponResponse)
async def deactivate(
    coupon_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> CouponResponse:
    """Deactivate a coupon (admin only). The row is kept for redemption history."""
    try:
        coupon = await deactivate_coupon(db, coupon_id)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    return CouponResponse.model_validate(coupon)

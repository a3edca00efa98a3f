"""Payment API endpoints — Razorpay checkout orders, verification and history."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db, require_admin
from app.billing.exceptions import BillingError, GatewayError, PaymentVerificationFailed
from app.config import settings
from app.models.user import User
from app.schemas.billing import SubscriptionResponse
from app.schemas.payment import (
    CancelPaymentResponse,
    CreateOrderRequest,
    OrderResponse,
    PaymentListResponse,
    PaymentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.services.payment_service import (
    cancel_pending_order,
    create_order,
    list_payments,
    verify_payment,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("/order", response_model=OrderResponse)
async def create_payment_order(
    body: CreateOrderRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OrderResponse:
    """Create a Razorpay order for a plan purchase or upgrade."""
    if not settings.razorpay_configured:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Razorpay is not configured",
        )

    try:
        summary = await create_order(
            db,
            user_id=current_user.id,
            plan_name=body.plan,
            coupon_code=body.coupon_code,
        )
    except GatewayError as e:
        logger.error("Razorpay order error [%s]: %s", e.code, e.description)
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e

    return OrderResponse(
        order_id=summary.order_id,
        amount=summary.amount,
        currency=summary.currency,
        key_id=settings.razorpay_key_id,
        payment_id=summary.payment_record_id,
        plan=summary.plan,
        base_amount=summary.base_amount,
        discount_percent=summary.discount_percent,
        discount_amount=summary.discount_amount,
        upgrade_from=summary.upgrade_from,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify(
    body: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> VerifyPaymentResponse:
    """Verify the checkout signature and activate the purchased plan."""
    try:
        result = await verify_payment(
            db,
            order_id=body.razorpay_order_id,
            payment_id=body.razorpay_payment_id,
            signature=body.razorpay_signature,
            user_id=current_user.id,
        )
    except PaymentVerificationFailed as e:
        # Keep the "failed" mark even though the request errors
        await db.commit()
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e

    return VerifyPaymentResponse(
        status=result.payment.status,
        subscription=(
            SubscriptionResponse.model_validate(result.subscription)
            if result.subscription
            else None
        ),
    )


@router.get("", response_model=PaymentListResponse)
async def list_my_payments(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PaymentListResponse:
    """The caller's payments, newest first."""
    payments = await list_payments(db, user_id=current_user.id)
    return PaymentListResponse(payments=[PaymentResponse.model_validate(p) for p in payments])


@router.get("/all", response_model=PaymentListResponse)
async def list_all_payments(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> PaymentListResponse:
    """Every user's payments, newest first (admin only)."""
    payments = await list_payments(db, limit=limit)
    return PaymentListResponse(payments=[PaymentResponse.model_validate(p) for p in payments])


@router.patch("/{payment_id}/cancel", response_model=CancelPaymentResponse)
async def cancel(
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CancelPaymentResponse:
    """Cancel a checkout the user abandoned. No-op unless the payment is still pending."""
    try:
        payment = await cancel_pending_order(db, payment_id, current_user.id)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    return CancelPaymentResponse(payment=PaymentResponse.model_validate(payment))

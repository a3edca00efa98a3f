"""Payment service — order creation, client-side verification and cancellation."""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.coupons import check_coupon, percent_discount, reserve_coupon
from app.billing.exceptions import (
    InvalidPaymentTransition,
    OrderRejected,
    PaymentNotFound,
    PaymentVerificationFailed,
    PlanNotAvailable,
    UserNotFound,
)
from app.billing.plans import find_active_plan, get_plan_by_name
from app.billing.razorpay_client import (
    build_receipt,
    create_remote_order,
    fetch_payment,
    verify_payment_signature,
)
from app.config import settings
from app.database import utcnow
from app.models.payment import Payment, PaymentStatus
from app.models.subscription import Subscription
from app.models.user import User
from app.services.notification_service import notify_subscription_activated
from app.services.subscription_service import activate_subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderSummary:
    """What the checkout UI needs to open the Razorpay widget."""

    order_id: str
    amount: int
    currency: str
    payment_record_id: uuid.UUID
    plan: str
    base_amount: int
    discount_percent: int
    discount_amount: int
    upgrade_from: str


@dataclass(frozen=True)
class VerificationResult:
    payment: Payment
    subscription: Subscription | None
    already_paid: bool = False


async def get_payment_by_order_id(
    db: AsyncSession, order_id: str, for_update: bool = False
) -> Payment | None:
    query = select(Payment).where(Payment.order_id == order_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def create_order(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan_name: str,
    coupon_code: str | None = None,
) -> OrderSummary:
    """Price a plan purchase (upgrade credit, coupon), open a Razorpay order and record it.

    Raises a BillingError subclass with a display-ready reason on rejection,
    or GatewayError if Razorpay fails; no Payment row is written in either case.
    """
    plan = await find_active_plan(db, plan_name)
    if plan is None:
        raise PlanNotAvailable()

    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFound()

    current_plan = None
    if user.subscription_status == "active" and user.subscription_plan:
        current_plan = await get_plan_by_name(db, user.subscription_plan)

    base_amount = plan.price
    payable_amount = base_amount
    upgrade_from = ""
    if current_plan is not None:
        if current_plan.plan_name == plan.plan_name:
            raise OrderRejected("You already have this plan")
        if plan.price <= current_plan.price:
            raise OrderRejected("Only upgrades are allowed")
        # Flat price difference, not time-weighted
        payable_amount = plan.price - current_plan.price
        upgrade_from = current_plan.plan_name

    coupon = None
    discount_percent = 0
    discount_amount = 0
    if coupon_code:
        coupon = await check_coupon(db, coupon_code, user.id)
        discount_percent = coupon.percent_off
        discount_amount = percent_discount(payable_amount, discount_percent)

    final_amount = max(0, payable_amount - discount_amount)
    if final_amount < settings.min_order_amount:
        raise OrderRejected(
            f"Amount must be at least {settings.payment_currency} "
            f"{settings.min_order_amount / 100:.2f}"
        )

    order = await create_remote_order(
        amount=final_amount,
        currency=settings.payment_currency,
        receipt=build_receipt(plan.plan_name, user.id),
        notes={"plan": plan.plan_name, "user_email": user.email},
    )

    payment = Payment(
        user_id=user.id,
        user_email=user.email,
        user_name=user.full_name or "",
        plan=plan.plan_name,
        upgrade_from=upgrade_from,
        base_amount=base_amount,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        amount=final_amount,
        currency=settings.payment_currency,
        status=PaymentStatus.CREATED.value,
        order_id=order["id"],
        coupon_code=coupon.code if coupon else "",
    )
    db.add(payment)
    await db.flush()

    if coupon is not None:
        await reserve_coupon(db, coupon, user.id, payment.id)

    logger.info(
        "Created order %s for user %s: plan=%s amount=%d (base=%d, discount=%d, upgrade_from=%s)",
        payment.order_id,
        user.id,
        plan.plan_name,
        final_amount,
        base_amount,
        discount_amount,
        upgrade_from or "-",
    )
    return OrderSummary(
        order_id=payment.order_id,
        amount=int(order.get("amount", final_amount)),
        currency=order.get("currency", settings.payment_currency),
        payment_record_id=payment.id,
        plan=plan.plan_name,
        base_amount=base_amount,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        upgrade_from=upgrade_from,
    )


async def verify_payment(
    db: AsyncSession,
    order_id: str,
    payment_id: str,
    signature: str,
    user_id: uuid.UUID | None = None,
) -> VerificationResult:
    """Confirm a checkout from the client callback and activate the subscription.

    Idempotent: an order that is already paid (e.g. by the webhook) returns
    success without activating again. A bad signature marks the payment
    failed and raises PaymentVerificationFailed; the caller must commit
    before turning that into an error response.
    """
    payment = await get_payment_by_order_id(db, order_id, for_update=True)
    if payment is None or (user_id is not None and payment.user_id != user_id):
        raise PaymentNotFound()

    if payment.payment_status == PaymentStatus.PAID:
        logger.info("Order %s already paid; verification is a no-op", order_id)
        return VerificationResult(payment=payment, subscription=None, already_paid=True)

    if not payment.can_transition_to(PaymentStatus.PAID):
        raise InvalidPaymentTransition(payment.status, PaymentStatus.PAID.value)

    if not verify_payment_signature(order_id, payment_id, signature):
        if payment.payment_status != PaymentStatus.FAILED:
            payment.transition_to(PaymentStatus.FAILED)
        payment.payment_id = payment_id
        payment.error_description = "Signature verification failed"
        await db.flush()
        logger.warning("Signature verification failed for order %s", order_id)
        raise PaymentVerificationFailed()

    details = await fetch_payment(payment_id)

    now = utcnow()
    payment.transition_to(PaymentStatus.PAID)
    payment.payment_id = payment_id
    payment.paid_at = now
    payment.apply_provider_details(details)
    payment.error_code = ""
    payment.error_description = ""
    await db.flush()
    logger.info("Order %s paid (payment %s) via client verification", order_id, payment_id)

    subscription = await activate_subscription(db, payment, now=now)
    if subscription is not None:
        notify_subscription_activated(db, payment.user_email, payment.plan)
    return VerificationResult(payment=payment, subscription=subscription)


async def cancel_pending_order(
    db: AsyncSession, payment_record_id: uuid.UUID, user_id: uuid.UUID
) -> Payment:
    """Cancel the user's checkout if it is still ``created``; otherwise leave it as is."""
    result = await db.execute(
        select(Payment).where(Payment.id == payment_record_id, Payment.user_id == user_id)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFound()

    if payment.payment_status != PaymentStatus.CREATED:
        return payment

    payment.transition_to(PaymentStatus.CANCELLED)
    payment.error_description = "Checkout cancelled"
    await db.flush()
    logger.info("Order %s cancelled by user %s", payment.order_id, user_id)
    return payment


async def list_payments(
    db: AsyncSession,
    user_id: uuid.UUID | None = None,
    limit: int = 100,
) -> list[Payment]:
    """Newest-first payments, for one user or (``user_id=None``) everyone."""
    query = select(Payment).order_by(Payment.created_at.desc()).limit(limit)
    if user_id is not None:
        query = query.where(Payment.user_id == user_id)
    result = await db.execute(query)
    return list(result.scalars().all())

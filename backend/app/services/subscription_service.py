"""Subscription service — lookups and idempotent payment-driven activation."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.coupons import confirm_redemption
from app.billing.plans import compute_end_date, get_plan_by_name
from app.database import utcnow
from app.models.payment import Payment, PaymentStatus
from app.models.subscription import Subscription
from app.models.user import User

logger = logging.getLogger(__name__)


async def get_active_subscription(
    db: AsyncSession, user_id: uuid.UUID
) -> Subscription | None:
    """Return the user's current active subscription, if any."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == "active",
            Subscription.is_active.is_(True),
        )
        .order_by(Subscription.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def expire_active_subscriptions(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Mark every active subscription of ``user_id`` expired. Returns rows touched."""
    result = await db.execute(
        update(Subscription)
        .where(Subscription.user_id == user_id, Subscription.status == "active")
        .values(status="expired", is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


async def _lock_payment(db: AsyncSession, payment: Payment) -> Payment:
    """Re-read the payment row under FOR UPDATE so concurrent activations serialise."""
    result = await db.execute(
        select(Payment)
        .where(Payment.id == payment.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def activate_subscription(
    db: AsyncSession,
    payment: Payment,
    now: datetime | None = None,
) -> Subscription | None:
    """Turn a paid payment into the user's active subscription, exactly once.

    Safe to call any number of times for the same payment: the verify
    endpoint and every webhook delivery all end up here. Returns the new
    subscription, or None when the payment was already activated.

    All writes share the caller's transaction. If the transaction is lost
    before commit nothing is persisted and the next trigger starts over;
    the ``subscription_activated`` flag is the only guard against a second
    activation once a commit has happened.
    """
    payment = await _lock_payment(db, payment)
    if payment.subscription_activated:
        logger.info("Payment %s already activated; skipping", payment.id)
        return None
    if payment.payment_status != PaymentStatus.PAID:
        logger.warning(
            "Refusing to activate payment %s in status %s", payment.id, payment.status
        )
        return None

    start_date = now or utcnow()
    plan = await get_plan_by_name(db, payment.plan)
    if plan is None:
        logger.warning(
            "Plan %s for payment %s not found; using default duration",
            payment.plan,
            payment.id,
        )
    end_date = compute_end_date(plan, start_date)

    expired = await expire_active_subscriptions(db, payment.user_id)

    subscription = Subscription(
        user_id=payment.user_id,
        user_email=payment.user_email,
        user_name=payment.user_name or "",
        plan=payment.plan,
        status="active",
        is_active=True,
        start_date=start_date,
        end_date=end_date,
        payment_id=payment.id,
    )
    db.add(subscription)

    user = await db.get(User, payment.user_id)
    if user is None:
        logger.warning("User %s for payment %s not found; mirror not updated", payment.user_id, payment.id)
    else:
        user.subscription_plan = payment.plan
        user.subscription_status = "active"
        user.subscription_start_date = start_date
        user.subscription_end_date = end_date

    await confirm_redemption(db, payment)

    payment.subscription_activated = True
    await db.flush()

    logger.info(
        "Activated %s subscription %s for user %s (payment %s, expired %d prior)",
        payment.plan,
        subscription.id,
        payment.user_id,
        payment.id,
        expired,
    )
    return subscription

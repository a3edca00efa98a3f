"""Razorpay webhook event handlers — reconcile payment state from provider events."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.exceptions import InvalidWebhookPayload
from app.database import utcnow
from app.models.payment import Payment, PaymentStatus
from app.services.notification_service import notify_subscription_activated
from app.services.payment_service import get_payment_by_order_id
from app.services.subscription_service import activate_subscription

logger = logging.getLogger(__name__)


def _object_field(container: dict[str, Any], key: str) -> dict[str, Any]:
    value = container.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidWebhookPayload()
    return value


def _payment_entity(event: dict[str, Any]) -> dict[str, Any]:
    """Extract ``payload.payment.entity`` (present on payment.* and refund.* events).

    Missing levels give an empty entity; levels that are not objects raise
    InvalidWebhookPayload.
    """
    payload = _object_field(event, "payload")
    payment = _object_field(payload, "payment")
    return _object_field(payment, "entity")


async def handle_payment_failed(
    db: AsyncSession, payment: Payment, entity: dict[str, Any]
) -> None:
    """Handle payment.failed — record the failure and provider diagnostics."""
    if payment.payment_status == PaymentStatus.FAILED:
        logger.info("Order %s already failed; duplicate payment.failed ignored", payment.order_id)
        return
    if not payment.can_transition_to(PaymentStatus.FAILED):
        logger.warning(
            "Ignoring payment.failed for order %s in status %s", payment.order_id, payment.status
        )
        return

    payment.transition_to(PaymentStatus.FAILED)
    payment.payment_id = entity.get("id") or payment.payment_id
    payment.apply_provider_details(entity)
    payment.error_code = entity.get("error_code") or ""
    payment.error_description = entity.get("error_description") or ""
    await db.flush()
    logger.info("Order %s failed: %s", payment.order_id, payment.error_code or "unknown error")


async def handle_payment_captured(
    db: AsyncSession, payment: Payment, entity: dict[str, Any]
) -> None:
    """Handle payment.captured — mark paid (once) and always attempt activation."""
    now = utcnow()
    if payment.payment_status != PaymentStatus.PAID:
        if not payment.can_transition_to(PaymentStatus.PAID):
            logger.warning(
                "Ignoring payment.captured for order %s in status %s",
                payment.order_id,
                payment.status,
            )
            return
        payment.transition_to(PaymentStatus.PAID)
        payment.payment_id = entity.get("id") or payment.payment_id
        payment.apply_provider_details(entity)
        payment.error_code = ""
        payment.error_description = ""
        payment.paid_at = now
        await db.flush()
        logger.info("Order %s paid via webhook", payment.order_id)

    subscription = await activate_subscription(db, payment, now=payment.paid_at or now)
    if subscription is not None:
        notify_subscription_activated(db, payment.user_email, payment.plan)


async def handle_refund_processed(
    db: AsyncSession, payment: Payment, entity: dict[str, Any]
) -> None:
    """Handle refund.processed — mark the payment refunded.

    The subscription and the user's plan mirror are left untouched;
    reversing access after a refund is an operator decision.
    """
    if payment.payment_status == PaymentStatus.REFUNDED:
        return
    if not payment.can_transition_to(PaymentStatus.REFUNDED):
        logger.warning(
            "Ignoring refund.processed for order %s in status %s", payment.order_id, payment.status
        )
        return
    payment.transition_to(PaymentStatus.REFUNDED)
    await db.flush()
    logger.info("Order %s refunded", payment.order_id)


# Map event types to handler functions
EVENT_HANDLERS = {
    "payment.failed": handle_payment_failed,
    "payment.captured": handle_payment_captured,
    "refund.processed": handle_refund_processed,
}


async def process_webhook_event(db: AsyncSession, event: dict[str, Any]) -> str:
    """Dispatch a verified webhook event. Returns "processed", "ignored" or "unmatched".

    Raises InvalidWebhookPayload when the event type, payload or order id
    has the wrong shape.
    """
    event_type = event.get("event")
    if not isinstance(event_type, str):
        raise InvalidWebhookPayload()
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("Ignoring unhandled webhook event type: %s", event_type)
        return "ignored"

    entity = _payment_entity(event)
    order_id = entity.get("order_id")
    if order_id is not None and not isinstance(order_id, str):
        raise InvalidWebhookPayload()
    if not order_id:
        logger.info("Webhook %s carries no order id; ignoring", event_type)
        return "ignored"

    payment = await get_payment_by_order_id(db, order_id, for_update=True)
    if payment is None:
        logger.warning("No local payment for order %s (%s)", order_id, event_type)
        return "unmatched"

    logger.info("Processing webhook event %s for order %s", event_type, order_id)
    await handler(db, payment, entity)
    return "processed"

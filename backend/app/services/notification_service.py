"""Notification service — record in-app notifications for users."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification

logger = logging.getLogger(__name__)


def notify(
    db: AsyncSession,
    user_email: str,
    title: str,
    message: str,
    type: str = "general",
) -> Notification | None:
    """Queue a notification on the session; it is written with the caller's commit.

    Notifications without a recipient are logged and dropped.
    """
    if not user_email:
        logger.warning("Dropping notification %r without a recipient", title)
        return None
    notification = Notification(user_email=user_email, title=title, message=message, type=type)
    db.add(notification)
    logger.info("Queued %s notification for %s: %s", type, user_email, title)
    return notification


def notify_subscription_activated(db: AsyncSession, user_email: str, plan: str) -> Notification | None:
    return notify(
        db,
        user_email=user_email,
        title="Subscription activated",
        message=f"Your payment for the {plan} plan was successful. Your plan is now active.",
        type="subscription",
    )

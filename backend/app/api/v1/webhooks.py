"""Razorpay webhook endpoint — receives and processes payment events."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.billing.razorpay_client import verify_webhook_signature
from app.billing.exceptions import InvalidWebhookPayload
from app.billing.webhooks import process_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Receive and process Razorpay webhook events."""
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    signature = request.headers.get("x-razorpay-signature", "")

    # 2. Verify signature before looking at the contents
    if not verify_webhook_signature(payload, signature):
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e
    if not isinstance(event, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )

    # 3. Dispatch; anything we cannot match is acknowledged so Razorpay stops retrying
    try:
        outcome = await process_webhook_event(db, event)
        await db.commit()
    except InvalidWebhookPayload as e:
        await db.rollback()
        logger.warning("Malformed webhook event: %s", e.reason)
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    except Exception as e:
        await db.rollback()
        logger.exception("Error processing webhook event %s", event.get("event"))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from e

    return {"status": outcome}

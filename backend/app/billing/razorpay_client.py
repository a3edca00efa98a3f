"""Razorpay gateway wrapper — remote orders, signatures and payment lookups."""

import asyncio
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any

from app.billing.exceptions import GatewayError
from app.config import settings

logger = logging.getLogger(__name__)

RECEIPT_MAX_LENGTH = 40


def get_razorpay_client():
    """Create a Razorpay client from the configured API keys."""
    if not settings.razorpay_configured:
        raise GatewayError("NOT_CONFIGURED", "Razorpay is not configured")

    import razorpay

    return razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))


def build_receipt(plan_name: str, user_id: Any, now: datetime | None = None) -> str:
    """Receipt id from plan, the user id's last 8 chars and a ms timestamp (<= 40 chars)."""
    now = now or datetime.now(timezone.utc)
    suffix = str(user_id or "")[-8:]
    millis = int(now.timestamp() * 1000)
    return f"plan-{plan_name}-{suffix}-{millis}"[:RECEIPT_MAX_LENGTH]


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    secret: str | None = None,
) -> bool:
    """Check the checkout signature: HMAC-SHA256 of ``order_id|payment_id``.

    Fails closed when no key secret is configured.
    """
    secret = settings.razorpay_key_secret if secret is None else secret
    if not secret or not order_id or not payment_id or not signature:
        return False
    expected = _hmac_sha256(secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(
    raw_body: bytes,
    signature: str | None,
    secret: str | None = None,
) -> bool:
    """Check ``X-Razorpay-Signature``: HMAC-SHA256 of the raw request body."""
    secret = settings.razorpay_webhook_secret if secret is None else secret
    if not secret or not signature or not raw_body:
        return False
    expected = _hmac_sha256(secret, raw_body)
    return hmac.compare_digest(expected, signature)


async def create_remote_order(
    amount: int,
    currency: str,
    receipt: str,
    notes: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Create a Razorpay order for ``amount`` minor units.

    The SDK is blocking, so the call runs in a worker thread and is bounded by
    ``settings.gateway_timeout_seconds``. Any failure becomes a GatewayError.
    """
    client = get_razorpay_client()
    order_data = {
        "amount": amount,
        "currency": currency,
        "receipt": receipt,
        "notes": notes or {},
    }
    logger.info("Creating Razorpay order: receipt=%s amount=%s %s", receipt, amount, currency)
    try:
        order = await asyncio.wait_for(
            asyncio.to_thread(client.order.create, data=order_data),
            timeout=settings.gateway_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        logger.error("Razorpay order creation timed out (receipt %s)", receipt)
        raise GatewayError("GATEWAY_TIMEOUT", "Payment gateway timed out") from e
    except GatewayError:
        raise
    except Exception as e:
        logger.error("Razorpay order creation failed: %s", e)
        raise GatewayError(type(e).__name__, str(e)) from e

    logger.info("Razorpay order created: %s", order["id"])
    return order


async def fetch_payment(payment_id: str) -> dict[str, Any] | None:
    """Best-effort lookup of a Razorpay payment; returns None on any failure."""
    try:
        client = get_razorpay_client()
        return await asyncio.wait_for(
            asyncio.to_thread(client.payment.fetch, payment_id),
            timeout=settings.gateway_timeout_seconds,
        )
    except Exception:
        logger.warning("Could not fetch Razorpay payment %s", payment_id, exc_info=True)
        return None

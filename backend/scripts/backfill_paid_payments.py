"""Activate subscriptions for paid payments that never got activated.

Covers payments marked paid before a crash or deploy interrupted activation.
Each payment is activated in its own transaction, starting from its
``paid_at`` (or ``created_at``) timestamp.

Run inside Docker:
    docker compose exec backend python -m scripts.backfill_paid_payments
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import async_session_factory
from app.models.payment import Payment, PaymentStatus
from app.services.subscription_service import activate_subscription

logger = logging.getLogger("scripts.backfill_paid_payments")


async def backfill(session_factory: async_sessionmaker[AsyncSession] = async_session_factory) -> tuple[int, int]:
    """Activate every paid, unactivated payment, oldest first. Returns (updated, skipped)."""
    async with session_factory() as session:
        result = await session.execute(
            select(Payment.id)
            .where(
                Payment.status == PaymentStatus.PAID.value,
                Payment.subscription_activated.is_(False),
            )
            .order_by(Payment.paid_at, Payment.created_at)
        )
        payment_ids = list(result.scalars().all())

    if not payment_ids:
        print("No paid payments require backfill.")
        return 0, 0

    updated = 0
    skipped = 0
    for payment_id in payment_ids:
        async with session_factory() as session:
            try:
                payment = await session.get(Payment, payment_id)
                subscription = await activate_subscription(
                    session, payment, now=payment.paid_at or payment.created_at
                )
                await session.commit()
            except Exception:
                await session.rollback()
                skipped += 1
                logger.exception("Failed to backfill payment %s", payment_id)
                continue

        if subscription is None:
            skipped += 1
            print(f"Skipped payment {payment_id}: already activated")
        else:
            updated += 1
            print(f"Activated subscription {subscription.id} for payment {payment_id}")

    print(f"Backfill complete. Updated: {updated}. Skipped: {skipped}.")
    return updated, skipped


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(backfill())

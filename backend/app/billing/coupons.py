"""Coupon ledger: validation, per-user reservation, redemption counting and admin management."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.exceptions import CouponNotFound, CouponRejected, PlanNotAvailable
from app.billing.plans import find_active_plan
from app.database import utcnow
from app.models.coupon import Coupon, CouponRedemption
from app.models.payment import Payment

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class CouponQuote:
    """Outcome of a successful coupon check, optionally priced against an amount."""

    code: str
    percent_off: int
    base_amount: int | None = None
    discount_amount: int | None = None
    final_amount: int | None = None


def normalize_code(code: str) -> str:
    return str(code).strip().upper()


def percent_discount(amount: int, percent: int) -> int:
    """Discount for ``percent`` of ``amount``, rounded half-up, never above ``amount``."""
    discount = (Decimal(amount) * Decimal(percent) / Decimal(100)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return min(int(discount), amount)


def quote(coupon: Coupon, amount: int) -> CouponQuote:
    discount = percent_discount(amount, coupon.percent_off)
    return CouponQuote(
        code=coupon.code,
        percent_off=coupon.percent_off,
        base_amount=amount,
        discount_amount=discount,
        final_amount=max(0, amount - discount),
    )


async def get_coupon(db: AsyncSession, code: str) -> Coupon | None:
    result = await db.execute(select(Coupon).where(Coupon.code == normalize_code(code)))
    return result.scalar_one_or_none()


async def has_redeemed(db: AsyncSession, code: str, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(CouponRedemption.id).where(
            CouponRedemption.coupon_code == code,
            CouponRedemption.user_id == user_id,
        )
    )
    return result.first() is not None


async def check_coupon(
    db: AsyncSession,
    code: str,
    user_id: uuid.UUID,
    now: datetime | None = None,
) -> Coupon:
    """Return the coupon if ``user_id`` may use it right now, else raise CouponRejected.

    The usage-cap check is read-then-act: two concurrent checkouts near the
    cap can both pass and later both increment ``uses_total``.
    """
    now = now or utcnow()
    coupon = await get_coupon(db, code)
    if coupon is None or not coupon.is_active:
        raise CouponRejected("Invalid coupon code")
    if coupon.expires_at is not None and coupon.expires_at < now:
        raise CouponRejected("Coupon expired")
    if coupon.max_uses_total and coupon.uses_total >= coupon.max_uses_total:
        raise CouponRejected("Coupon usage limit reached")
    if await has_redeemed(db, coupon.code, user_id):
        raise CouponRejected("Coupon already used")
    if not 1 <= coupon.percent_off <= 100:
        raise CouponRejected("Invalid coupon discount")
    return coupon


async def validate_coupon(
    db: AsyncSession,
    code: str,
    user_id: uuid.UUID,
    plan_name: str | None = None,
) -> CouponQuote:
    """Preview a coupon for the "check my coupon" action. No side effects."""
    coupon = await check_coupon(db, code, user_id)
    if not plan_name:
        return CouponQuote(code=coupon.code, percent_off=coupon.percent_off)

    plan = await find_active_plan(db, plan_name.strip().lower())
    if plan is None:
        raise PlanNotAvailable()
    return quote(coupon, plan.price)


async def _insert_redemption_if_absent(
    db: AsyncSession,
    coupon: Coupon,
    user_id: uuid.UUID,
    payment_id: uuid.UUID | None,
) -> bool:
    """INSERT ... ON CONFLICT (coupon_code, user_id) DO NOTHING; True if a row was added."""
    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise RuntimeError(f"Coupon redemptions are not supported on {dialect!r}")

    now = utcnow()
    stmt = (
        insert(CouponRedemption)
        .values(
            id=uuid.uuid4(),
            coupon_code=coupon.code,
            coupon_id=coupon.id,
            user_id=user_id,
            payment_id=payment_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["coupon_code", "user_id"])
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def reserve_coupon(
    db: AsyncSession,
    coupon: Coupon,
    user_id: uuid.UUID,
    payment_id: uuid.UUID,
) -> bool:
    """Soft-claim ``coupon`` for ``user_id`` when an order referencing it is created.

    An existing claim (from an earlier order) is left untouched and is not an error.
    """
    inserted = await _insert_redemption_if_absent(db, coupon, user_id, payment_id)
    if inserted:
        logger.info("Reserved coupon %s for user %s (payment %s)", coupon.code, user_id, payment_id)
    else:
        logger.info("Coupon %s already claimed by user %s", coupon.code, user_id)
    return inserted


async def confirm_redemption(db: AsyncSession, payment: Payment) -> bool:
    """Count the payment's coupon as used, once. Returns True if it counted now."""
    if not payment.coupon_code or payment.coupon_redeemed:
        return False

    coupon = await get_coupon(db, payment.coupon_code)
    if coupon is None:
        logger.warning(
            "Coupon %s on payment %s no longer exists; skipping redemption",
            payment.coupon_code,
            payment.id,
        )
        return False

    await _insert_redemption_if_absent(db, coupon, payment.user_id, payment.id)
    await db.execute(
        update(Coupon)
        .where(Coupon.id == coupon.id)
        .values(uses_total=Coupon.uses_total + 1)
        .execution_options(synchronize_session=False)
    )
    payment.coupon_redeemed = True
    logger.info("Redeemed coupon %s for payment %s", coupon.code, payment.id)
    return True


# --- Admin management ---

def _check_percent(percent_off: int) -> None:
    if not 1 <= percent_off <= 100:
        raise CouponRejected("percent_off must be between 1 and 100")


def _as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def _ensure_code_free(db: AsyncSession, code: str, exclude_id: uuid.UUID | None = None) -> None:
    existing = await get_coupon(db, code)
    if existing is not None and existing.id != exclude_id:
        raise CouponRejected("Coupon code already exists", status_code=409)


async def list_coupons(db: AsyncSession) -> list[Coupon]:
    """Every coupon, newest first, active or not."""
    result = await db.execute(select(Coupon).order_by(Coupon.created_at.desc(), Coupon.code))
    return list(result.scalars().all())


async def get_coupon_by_id(db: AsyncSession, coupon_id: uuid.UUID) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if coupon is None:
        raise CouponNotFound()
    return coupon


async def create_coupon(db: AsyncSession, **fields) -> Coupon:
    """Add a coupon. The code is stored upper-cased and must be unique."""
    code = normalize_code(fields.pop("code"))
    _check_percent(fields["percent_off"])
    await _ensure_code_free(db, code)

    fields["expires_at"] = _as_naive_utc(fields.get("expires_at"))
    coupon = Coupon(code=code, **fields)
    db.add(coupon)
    await db.flush()
    logger.info("Created coupon %s (%d%% off)", coupon.code, coupon.percent_off)
    return coupon


async def update_coupon(db: AsyncSession, coupon_id: uuid.UUID, changes: dict) -> Coupon:
    """Apply a partial update. ``changes`` holds only the fields the caller sent."""
    coupon = await get_coupon_by_id(db, coupon_id)
    # Only expires_at may be cleared with null.
    changes = {k: v for k, v in changes.items() if v is not None or k == "expires_at"}
    if "code" in changes:
        changes["code"] = normalize_code(changes["code"])
        await _ensure_code_free(db, changes["code"], exclude_id=coupon.id)
    if "percent_off" in changes:
        _check_percent(changes["percent_off"])
    if "expires_at" in changes:
        changes["expires_at"] = _as_naive_utc(changes["expires_at"])

    for field, value in changes.items():
        setattr(coupon, field, value)
    await db.flush()
    logger.info("Updated coupon %s: %s", coupon.code, ", ".join(sorted(changes)))
    return coupon


async def deactivate_coupon(db: AsyncSession, coupon_id: uuid.UUID) -> Coupon:
    """Soft-delete: the row stays so existing redemptions keep their reference."""
    coupon = await get_coupon_by_id(db, coupon_id)
    coupon.is_active = False
    await db.flush()
    logger.info("Deactivated coupon %s", coupon.code)
    return coupon

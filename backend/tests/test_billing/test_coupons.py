"""Tests for the coupon ledger — discount math, eligibility reasons and redemption."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.coupons import (
    check_coupon,
    confirm_redemption,
    normalize_code,
    percent_discount,
    reserve_coupon,
    validate_coupon,
)
from app.billing.exceptions import CouponRejected, PlanNotAvailable
from app.database import utcnow
from app.models.coupon import Coupon, CouponRedemption


async def _redemption_count(db_session: AsyncSession, code: str) -> int:
    result = await db_session.execute(
        select(func.count()).select_from(CouponRedemption).where(CouponRedemption.coupon_code == code)
    )
    return result.scalar_one()


class TestPercentDiscount:
    def test_twenty_percent(self):
        assert percent_discount(1000, 20) == 200

    def test_rounds_half_up(self):
        # 12.5% of 1004 = 125.5
        assert percent_discount(1004, 12.5) == 126
        assert percent_discount(999, 50) == 500

    def test_never_exceeds_amount(self):
        assert percent_discount(1000, 100) == 1000
        assert percent_discount(1000, 150) == 1000

    def test_zero_amount(self):
        assert percent_discount(0, 20) == 0

    def test_normalize_code(self):
        assert normalize_code("  save20 ") == "SAVE20"


class TestCheckCoupon:
    """Each rejection carries its own display reason."""

    async def test_valid_coupon(self, db_session: AsyncSession, coupon: Coupon, test_user):
        result = await check_coupon(db_session, "save20", test_user.id)
        assert result.id == coupon.id

    async def test_unknown_code(self, db_session: AsyncSession, test_user):
        with pytest.raises(CouponRejected) as exc_info:
            await check_coupon(db_session, "NOPE", test_user.id)
        assert exc_info.value.reason == "Invalid coupon code"

    async def test_inactive_coupon(self, db_session: AsyncSession, coupon: Coupon, test_user):
        coupon.is_active = False
        await db_session.flush()
        with pytest.raises(CouponRejected) as exc_info:
            await check_coupon(db_session, "SAVE20", test_user.id)
        assert exc_info.value.reason == "Invalid coupon code"

    async def test_expired_coupon(self, db_session: AsyncSession, coupon: Coupon, test_user):
        coupon.expires_at = utcnow() - timedelta(days=1)
        await db_session.flush()
        with pytest.raises(CouponRejected) as exc_info:
            await check_coupon(db_session, "SAVE20", test_user.id)
        assert exc_info.value.reason == "Coupon expired"

    async def test_usage_limit_reached(self, db_session: AsyncSession, coupon: Coupon, test_user):
        coupon.max_uses_total = 5
        coupon.uses_total = 5
        await db_session.flush()
        with pytest.raises(CouponRejected) as exc_info:
            await check_coupon(db_session, "SAVE20", test_user.id)
        assert exc_info.value.reason == "Coupon usage limit reached"

    async def test_zero_cap_is_unlimited(self, db_session: AsyncSession, coupon: Coupon, test_user):
        coupon.max_uses_total = 0
        coupon.uses_total = 10_000
        await db_session.flush()
        assert (await check_coupon(db_session, "SAVE20", test_user.id)).code == "SAVE20"

    async def test_already_used_by_this_user(
        self, db_session: AsyncSession, coupon: Coupon, test_user, make_payment
    ):
        payment = await make_payment(test_user)
        await reserve_coupon(db_session, coupon, test_user.id, payment.id)
        with pytest.raises(CouponRejected) as exc_info:
            await check_coupon(db_session, "SAVE20", test_user.id)
        assert exc_info.value.reason == "Coupon already used"

    async def test_other_users_claim_does_not_block(
        self, db_session: AsyncSession, coupon: Coupon, test_user, make_user, make_payment
    ):
        other = await make_user()
        payment = await make_payment(other)
        await reserve_coupon(db_session, coupon, other.id, payment.id)
        assert (await check_coupon(db_session, "SAVE20", test_user.id)).code == "SAVE20"

    async def test_out_of_range_percent(self, db_session: AsyncSession, test_user):
        db_session.add(Coupon(code="BROKEN", percent_off=0))
        await db_session.flush()
        with pytest.raises(CouponRejected) as exc_info:
            await check_coupon(db_session, "BROKEN", test_user.id)
        assert exc_info.value.reason == "Invalid coupon discount"


class TestValidateCoupon:
    async def test_without_plan(self, db_session: AsyncSession, coupon: Coupon, test_user):
        result = await validate_coupon(db_session, "SAVE20", test_user.id)
        assert result.percent_off == 20
        assert result.final_amount is None

    async def test_priced_against_plan(self, db_session: AsyncSession, coupon: Coupon, test_user, plans):
        result = await validate_coupon(db_session, "SAVE20", test_user.id, plan_name="Premium")
        assert result.base_amount == 2000
        assert result.discount_amount == 400
        assert result.final_amount == 1600

    async def test_unknown_plan(self, db_session: AsyncSession, coupon: Coupon, test_user, plans):
        with pytest.raises(PlanNotAvailable):
            await validate_coupon(db_session, "SAVE20", test_user.id, plan_name="legacy")

    async def test_preview_has_no_side_effects(self, db_session: AsyncSession, coupon: Coupon, test_user):
        await validate_coupon(db_session, "SAVE20", test_user.id)
        await validate_coupon(db_session, "SAVE20", test_user.id)
        assert await _redemption_count(db_session, "SAVE20") == 0


class TestReserveCoupon:
    async def test_reserve_is_insert_if_absent(
        self, db_session: AsyncSession, coupon: Coupon, test_user, make_payment
    ):
        first = await make_payment(test_user)
        second = await make_payment(test_user)

        assert await reserve_coupon(db_session, coupon, test_user.id, first.id) is True
        assert await reserve_coupon(db_session, coupon, test_user.id, second.id) is False
        assert await _redemption_count(db_session, "SAVE20") == 1

    async def test_reserve_does_not_count_usage(
        self, db_session: AsyncSession, coupon: Coupon, test_user, make_payment
    ):
        payment = await make_payment(test_user)
        await reserve_coupon(db_session, coupon, test_user.id, payment.id)
        await db_session.refresh(coupon)
        assert coupon.uses_total == 0


class TestConfirmRedemption:
    async def test_counts_once(self, db_session: AsyncSession, coupon: Coupon, test_user, make_payment):
        payment = await make_payment(test_user, coupon_code="SAVE20")
        await reserve_coupon(db_session, coupon, test_user.id, payment.id)

        assert await confirm_redemption(db_session, payment) is True
        assert await confirm_redemption(db_session, payment) is False

        await db_session.refresh(coupon)
        assert coupon.uses_total == 1
        assert payment.coupon_redeemed is True
        assert await _redemption_count(db_session, "SAVE20") == 1

    async def test_records_redemption_when_never_reserved(
        self, db_session: AsyncSession, coupon: Coupon, test_user, make_payment
    ):
        payment = await make_payment(test_user, coupon_code="SAVE20")
        assert await confirm_redemption(db_session, payment) is True
        assert await _redemption_count(db_session, "SAVE20") == 1

    async def test_no_coupon_is_noop(self, db_session: AsyncSession, test_user, make_payment):
        payment = await make_payment(test_user)
        assert await confirm_redemption(db_session, payment) is False
        assert payment.coupon_redeemed is False

    async def test_deleted_coupon_skipped(self, db_session: AsyncSession, test_user, make_payment):
        payment = await make_payment(test_user, coupon_code="GONE")
        assert await confirm_redemption(db_session, payment) is False

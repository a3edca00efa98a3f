"""Coupon and CouponRedemption models."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Coupon(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Percent-off discount code with optional usage cap and expiry."""

    __tablename__ = "coupons"

    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    percent_off: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    max_uses_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 = unlimited
    max_uses_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    uses_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Coupon {self.code!r} {self.percent_off}% uses={self.uses_total}/{self.max_uses_total}>"


class CouponRedemption(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One row per (coupon, user): the authoritative "already used" marker."""

    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        UniqueConstraint("coupon_code", "user_id", name="uq_coupon_redemptions_code_user"),
    )

    coupon_code: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    coupon_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    payment_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("payments.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<CouponRedemption {self.coupon_code!r} user={self.user_id}>"

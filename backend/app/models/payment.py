"""Payment model — one checkout attempt and its settlement lifecycle."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.billing.exceptions import InvalidPaymentTransition
from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class PaymentStatus(str, enum.Enum):
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# cancelled and refunded are terminal. A failed order can still be paid by a
# later attempt on the same provider order.
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.CREATED: frozenset(
        {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition(current: PaymentStatus, requested: PaymentStatus) -> bool:
    """Return True if ``current -> requested`` is a legal payment transition."""
    return requested in ALLOWED_TRANSITIONS[current]


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Local record of a Razorpay order and what happened to it.

    ``amount``, ``base_amount`` and ``discount_amount`` are in minor units.
    """

    __tablename__ = "payments"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    plan: Mapped[str] = mapped_column(String(50), nullable=False)
    upgrade_from: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    base_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.CREATED.value, index=True
    )
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="razorpay")
    order_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    payment_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)

    # Provider diagnostics
    method: Mapped[str] = mapped_column(String(30), nullable=False, default="")
    bank: Mapped[str] = mapped_column(String(60), nullable=False, default="")
    wallet: Mapped[str] = mapped_column(String(60), nullable=False, default="")
    vpa: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    error_code: Mapped[str] = mapped_column(String(60), nullable=False, default="")
    error_description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    coupon_code: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    coupon_redeemed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    subscription_activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus(self.status)

    def can_transition_to(self, requested: PaymentStatus) -> bool:
        return can_transition(self.payment_status, requested)

    def transition_to(self, requested: PaymentStatus) -> None:
        """Move to ``requested`` or raise InvalidPaymentTransition."""
        if not self.can_transition_to(requested):
            raise InvalidPaymentTransition(self.status, requested.value)
        self.status = requested.value

    def apply_provider_details(self, details: dict | None) -> None:
        """Copy method/bank/wallet/vpa from a Razorpay payment entity."""
        details = details or {}
        self.method = details.get("method") or ""
        self.bank = details.get("bank") or ""
        self.wallet = details.get("wallet") or ""
        self.vpa = details.get("vpa") or ""

    def __repr__(self) -> str:
        return f"<Payment id={self.id} order={self.order_id} plan={self.plan} status={self.status}>"

"""Plan model — subscription tiers offered for purchase."""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Plan(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A named plan with a price (minor units) and a duration."""

    __tablename__ = "subscription_plans"

    plan_name: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # paise
    duration_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    duration_unit: Mapped[str] = mapped_column(String(10), nullable=False, default="months")
    is_lifetime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_popular: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Plan {self.plan_name!r} price={self.price} active={self.is_active}>"

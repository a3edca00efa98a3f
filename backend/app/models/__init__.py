"""SQLAlchemy models for StudyHub Billing.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from app.models.coupon import Coupon, CouponRedemption
from app.models.notification import Notification
from app.models.payment import Payment, PaymentStatus
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.user import User

__all__ = [
    "Coupon",
    "CouponRedemption",
    "Notification",
    "Payment",
    "PaymentStatus",
    "Plan",
    "Subscription",
    "User",
]

"""Seed the database with sample plans, coupons and users.

Prices are in paise: 99900 = INR 999.00.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select

from app.auth.jwt import create_access_token
from app.database import async_session_factory
from app.models.coupon import Coupon
from app.models.plan import Plan
from app.models.user import User

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

PLANS = [
    {
        "plan_name": "free",
        "display_name": "Free",
        "description": "Sample videos and a weekly practice quiz.",
        "price": 0,
        "is_lifetime": True,
        "sort_order": 0,
    },
    {
        "plan_name": "basic",
        "display_name": "Basic",
        "description": "Full video library, notes and 4 live classes a month.",
        "price": 99900,
        "duration_value": 1,
        "duration_unit": "months",
        "sort_order": 1,
    },
    {
        "plan_name": "premium",
        "display_name": "Premium",
        "description": "Everything in Basic plus unlimited live classes, mock tests and doubt support.",
        "price": 249900,
        "duration_value": 1,
        "duration_unit": "months",
        "is_popular": True,
        "sort_order": 2,
    },
    {
        "plan_name": "premium_yearly",
        "display_name": "Premium (Yearly)",
        "description": "Premium billed once a year.",
        "price": 2499000,
        "duration_value": 1,
        "duration_unit": "years",
        "sort_order": 3,
    },
]

COUPONS = [
    {"code": "SAVE20", "percent_off": 20, "description": "20% off any plan", "max_uses_total": 500},
    {"code": "WELCOME10", "percent_off": 10, "description": "New student discount"},
]

USERS = [
    {"email": "demo@studyhub.test", "full_name": "Demo Student", "role": "student"},
    {"email": "admin@studyhub.test", "full_name": "Billing Admin", "role": "admin"},
]


async def seed() -> None:
    """Insert plans, coupons and demo users that do not exist yet.

    Idempotent: existing rows (matched by plan name, coupon code or email)
    are left untouched.
    """
    async with async_session_factory() as session:
        for data in PLANS:
            existing = await session.execute(select(Plan).where(Plan.plan_name == data["plan_name"]))
            if existing.scalar_one_or_none() is not None:
                print(f"   - plan {data['plan_name']} already exists")
                continue
            session.add(Plan(**data))
            print(f"   + plan {data['plan_name']} (INR {data['price'] / 100:.2f})")

        for data in COUPONS:
            existing = await session.execute(select(Coupon).where(Coupon.code == data["code"]))
            if existing.scalar_one_or_none() is not None:
                print(f"   - coupon {data['code']} already exists")
                continue
            session.add(Coupon(**data))
            print(f"   + coupon {data['code']} ({data['percent_off']}% off)")

        users: list[User] = []
        for data in USERS:
            result = await session.execute(select(User).where(User.email == data["email"]))
            user = result.scalar_one_or_none()
            if user is None:
                user = User(**data)
                session.add(user)
                print(f"   + user {data['email']} ({data['role']})")
            users.append(user)

        await session.commit()

        print()
        print("=" * 60)
        print("Seed Summary")
        print("=" * 60)
        for user in users:
            print(f"   {user.email}: Bearer {create_access_token(str(user.id))}")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed())

"""Shared test configuration and fixtures.

Every test gets its own in-memory SQLite database (aiosqlite), so tests are
fully isolated and need no running PostgreSQL. Razorpay is never called:
tests patch ``create_remote_order`` / ``fetch_payment`` where needed.
"""

import hashlib
import hmac
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.jwt import create_access_token
from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models.coupon import Coupon
from app.models.payment import Payment, PaymentStatus
from app.models.plan import Plan
from app.models.user import User

TEST_KEY_ID = "rzp_test_key"
TEST_KEY_SECRET = "test_key_secret"
TEST_WEBHOOK_SECRET = "test_webhook_secret"


def sign(secret: str, message: bytes) -> str:
    """HMAC-SHA256 hex digest, the way Razorpay signs callbacks and webhooks."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


# ---------------------------------------------------------------------------
# Per-test: fresh in-memory database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session on the per-test database."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_plans_cache():
    app.state.plans_cache.invalidate()
    yield
    app.state.plans_cache.invalidate()


@pytest.fixture
def razorpay_keys(monkeypatch):
    """Configure test Razorpay credentials on the live settings object."""
    monkeypatch.setattr(settings, "razorpay_key_id", TEST_KEY_ID)
    monkeypatch.setattr(settings, "razorpay_key_secret", TEST_KEY_SECRET)
    monkeypatch.setattr(settings, "razorpay_webhook_secret", TEST_WEBHOOK_SECRET)
    return settings


# ---------------------------------------------------------------------------
# Convenience fixtures: catalog
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def plans(db_session: AsyncSession) -> dict[str, Plan]:
    """Seed free / basic / premium plans plus an inactive legacy plan."""
    rows = [
        Plan(plan_name="free", display_name="Free", price=0, is_lifetime=True, sort_order=0),
        Plan(plan_name="basic", display_name="Basic", price=1000, sort_order=1),
        Plan(plan_name="premium", display_name="Premium", price=2000, is_popular=True, sort_order=2),
        Plan(plan_name="legacy", display_name="Legacy", price=500, is_active=False, sort_order=9),
    ]
    db_session.add_all(rows)
    await db_session.flush()
    return {p.plan_name: p for p in rows}


@pytest_asyncio.fixture
async def coupon(db_session: AsyncSession) -> Coupon:
    """A 20% coupon, unlimited total uses."""
    c = Coupon(code="SAVE20", percent_off=20)
    db_session.add(c)
    await db_session.flush()
    return c


# ---------------------------------------------------------------------------
# Convenience fixtures: users
# ---------------------------------------------------------------------------


async def create_user(db_session: AsyncSession, role: str = "student", **kwargs) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=kwargs.pop("email", f"user-{unique}@test.com"),
        full_name=kwargs.pop("full_name", "Test Student"),
        role=role,
        **kwargs,
    )
    db_session.add(user)
    await db_session.flush()
    return user


async def create_payment(
    db_session: AsyncSession,
    user: User,
    plan: str = "basic",
    amount: int = 1000,
    status: PaymentStatus = PaymentStatus.CREATED,
    **kwargs,
) -> Payment:
    payment = Payment(
        user_id=user.id,
        user_email=user.email,
        user_name=user.full_name,
        plan=plan,
        base_amount=kwargs.pop("base_amount", amount),
        amount=amount,
        order_id=kwargs.pop("order_id", f"order_{uuid.uuid4().hex[:14]}"),
        status=status.value,
        **kwargs,
    )
    db_session.add(payment)
    await db_session.flush()
    return payment


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await create_user(db_session)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    return {"Authorization": f"Bearer {create_access_token(str(test_user.id))}"}


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, role="admin", full_name="Admin")


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(admin_user.id))}"}


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory fixture: ``await make_user(role=..., subscription_plan=...)``."""

    async def _make(**kwargs) -> User:
        return await create_user(db_session, **kwargs)

    return _make


@pytest.fixture
def make_payment(db_session: AsyncSession):
    """Factory fixture: ``await make_payment(user, plan=..., amount=..., status=...)``."""

    async def _make(user: User, **kwargs) -> Payment:
        return await create_payment(db_session, user, **kwargs)

    return _make


@pytest.fixture
def signer():
    """Return the HMAC-SHA256 signing helper."""
    return sign

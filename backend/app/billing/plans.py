"""Plan catalog — plan lookups, cached listings and subscription end dates."""

import logging
from dataclasses import dataclass
from datetime import datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.cache import TTLCache
from app.models.plan import Plan

logger = logging.getLogger(__name__)

DEFAULT_DURATION_UNIT = "months"
DEFAULT_DURATION_VALUE = 1

_DURATION_UNITS = {"days", "months", "years"}


@dataclass(frozen=True)
class PlanInfo:
    """Detached, immutable view of a plan row (safe to keep in a cache)."""

    plan_name: str
    display_name: str
    description: str
    price: int  # in paise (e.g., 249900 = INR 2499.00)
    duration_value: int
    duration_unit: str
    is_lifetime: bool
    is_popular: bool
    is_active: bool
    sort_order: int

    @classmethod
    def from_model(cls, plan: Plan) -> "PlanInfo":
        return cls(
            plan_name=plan.plan_name,
            display_name=plan.display_name,
            description=plan.description,
            price=plan.price,
            duration_value=plan.duration_value,
            duration_unit=plan.duration_unit,
            is_lifetime=plan.is_lifetime,
            is_popular=plan.is_popular,
            is_active=plan.is_active,
            sort_order=plan.sort_order,
        )


def compute_end_date(plan: Plan | PlanInfo | None, start_date: datetime) -> datetime | None:
    """Return when a subscription to ``plan`` starting at ``start_date`` ends.

    Lifetime plans never end (None). Otherwise ``duration_value`` units are
    added with calendar semantics, so Jan 31 + 1 month is Feb 28/29.
    A missing plan falls back to the default one-month duration.
    """
    if plan is not None and plan.is_lifetime:
        return None

    value = DEFAULT_DURATION_VALUE
    unit = DEFAULT_DURATION_UNIT
    if plan is not None:
        value = int(plan.duration_value or DEFAULT_DURATION_VALUE)
        unit = (plan.duration_unit or DEFAULT_DURATION_UNIT).lower()
        if unit not in _DURATION_UNITS:
            unit = DEFAULT_DURATION_UNIT

    return start_date + relativedelta(**{unit: value})


async def get_plan_by_name(db: AsyncSession, plan_name: str) -> Plan | None:
    """Look up a plan by name regardless of its active flag."""
    result = await db.execute(select(Plan).where(Plan.plan_name == plan_name))
    return result.scalar_one_or_none()


async def find_active_plan(db: AsyncSession, plan_name: str) -> Plan | None:
    """Look up a purchasable plan. Never cached: prices feed money math."""
    result = await db.execute(
        select(Plan).where(Plan.plan_name == plan_name, Plan.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def list_plans(
    db: AsyncSession,
    cache: TTLCache,
    include_inactive: bool = False,
) -> list[PlanInfo]:
    """List plans ordered by ``sort_order``, served from ``cache`` when fresh.

    Entries are keyed "public" and "all"; callers that change plans should
    ``cache.invalidate()``.
    """
    key = "all" if include_inactive else "public"

    cached = cache.get(key)
    if cached is not None:
        return cached

    query = select(Plan).order_by(Plan.sort_order, Plan.plan_name)
    if not include_inactive:
        query = query.where(Plan.is_active.is_(True))
    result = await db.execute(query)
    plans = [PlanInfo.from_model(p) for p in result.scalars().all()]

    cache.set(key, plans)
    logger.debug("Cached %d plans under %r", len(plans), key)
    return plans

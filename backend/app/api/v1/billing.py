"""Billing API endpoints — plan catalog and the caller's current subscription."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db, get_plans_cache, require_admin
from app.billing.cache import TTLCache
from app.billing.plans import list_plans
from app.models.user import User
from app.schemas.billing import (
    CurrentSubscriptionResponse,
    PlanResponse,
    PlansListResponse,
    SubscriptionResponse,
)
from app.services.subscription_service import get_active_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.get("/plans", response_model=PlansListResponse)
async def list_public_plans(
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_plans_cache),
) -> PlansListResponse:
    """List purchasable plans (public — no auth required)."""
    plans = await list_plans(db, cache)
    return PlansListResponse(plans=[PlanResponse.model_validate(p) for p in plans])


@router.get("/plans/all", response_model=PlansListResponse)
async def list_all_plans(
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_plans_cache),
    _admin: User = Depends(require_admin),
) -> PlansListResponse:
    """List every plan including inactive ones (admin only)."""
    plans = await list_plans(db, cache, include_inactive=True)
    return PlansListResponse(plans=[PlanResponse.model_validate(p) for p in plans])


@router.get("/subscription", response_model=CurrentSubscriptionResponse)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CurrentSubscriptionResponse:
    """Get the caller's plan mirror and active subscription."""
    subscription = await get_active_subscription(db, current_user.id)
    return CurrentSubscriptionResponse(
        subscription_plan=current_user.subscription_plan,
        subscription_status=current_user.subscription_status,
        subscription_start_date=current_user.subscription_start_date,
        subscription_end_date=current_user.subscription_end_date,
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
    )

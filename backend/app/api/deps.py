"""Shared API dependencies — single import point for all routers.

Re-exports the database session and authentication dependencies so that
router modules can import everything they need from one place::

    from app.api.deps import get_db, get_current_user
"""

from fastapi import Request

from app.auth.dependencies import get_current_user, require_admin
from app.billing.cache import TTLCache
from app.database import get_db


def get_plans_cache(request: Request) -> TTLCache:
    """The application's plan-listing cache (created in ``app.main``)."""
    return request.app.state.plans_cache


__all__ = [
    "get_db",
    "get_current_user",
    "get_plans_cache",
    "require_admin",
]

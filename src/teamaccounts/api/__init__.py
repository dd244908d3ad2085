"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth routes live at the root because their URLs are registered
with OAuth providers and sent in emails. Everything else is under
/api/v1; those handlers take get_current_user themselves because they
need the user row, not just a yes/no.
"""

from fastapi import APIRouter

from teamaccounts.api.auth import router as auth_router
from teamaccounts.api.billing import router as billing_router
from teamaccounts.api.health import router as health_router
from teamaccounts.api.teams import router as teams_router
from teamaccounts.api.users import router as users_router

api_router = APIRouter(prefix="/api/v1")

# Open routes: no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes: handlers depend on get_current_user
api_router.include_router(users_router, tags=["users"])
api_router.include_router(teams_router, tags=["teams"])
api_router.include_router(billing_router, tags=["billing"])

__all__ = ["api_router", "auth_router"]

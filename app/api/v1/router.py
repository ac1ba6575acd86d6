"""
API router setup
Organized into: dashboard (session) and admin routes
"""
from fastapi import APIRouter

from app.api.v1.dashboard import integrations, webhooks, delivery
from app.api.v1.admin import webhooks as admin_webhooks

api_router = APIRouter()

# ============================================================================
# DASHBOARD ROUTES (session authentication required)
# ============================================================================
api_router.include_router(
    integrations.router,
    prefix="/integrations",
    tags=["Dashboard"]
)

api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Dashboard"]
)

api_router.include_router(
    delivery.router,
    prefix="/delivery",
    tags=["Dashboard"]
)

# ============================================================================
# ADMIN ROUTES (session authentication + admin role required)
# ============================================================================
api_router.include_router(
    admin_webhooks.router,
    # No prefix needed - router already has "/admin/webhooks" prefix
    tags=["Admin"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_router.get("", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    """
    return {
        "version": "1.0",
        "authentication": {
            "dashboard": "session cookie or JWT Bearer token",
            "admin": "session + admin role",
            "inbound_webhooks": "webhook secret in the URL"
        }
    }

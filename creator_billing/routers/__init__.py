from creator_billing.routers.health import router as health_router
from creator_billing.routers.auth import router as auth_router
from creator_billing.routers.checkout import router as checkout_router
from creator_billing.routers.stripe_routes import router as stripe_router
from creator_billing.routers.subscription import router as subscription_router
from creator_billing.routers.entitlements import router as entitlements_router
from creator_billing.routers.access import router as access_router

__all__ = [
    "health_router",
    "auth_router",
    "checkout_router",
    "stripe_router",
    "subscription_router",
    "entitlements_router",
    "access_router",
]

from fastapi import APIRouter

from api.v1.routes import (
    health,
)
from packages.billing.routes import billing
from packages.orders.routes import payments
from packages.webhooks.routes import tbank

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Gateway notifications (no auth - always acknowledged)
api_router.include_router(tbank.router, tags=["webhooks"])

# Payment initiation
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])

# Subscription management (consumed by the admin tool)
api_router.include_router(
    billing.router, prefix="/subscriptions", tags=["subscriptions"]
)
api_router.include_router(billing.admin_router, prefix="/admin", tags=["admin"])

from fastapi import Request

from packages.billing.services.billing_scheduler import BillingScheduler
from packages.billing.services.subscription_service import SubscriptionService


def get_billing_scheduler(request: Request) -> BillingScheduler:
    """Process-wide scheduler created in the application lifespan."""
    return request.app.state.billing_scheduler


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service

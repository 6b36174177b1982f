"""Billing services."""

from packages.billing.services.charge_service import ChargeService
from packages.billing.services.billing_scheduler import BillingScheduler
from packages.billing.services.subscription_service import SubscriptionService

__all__ = [
    "ChargeService",
    "BillingScheduler",
    "SubscriptionService",
]

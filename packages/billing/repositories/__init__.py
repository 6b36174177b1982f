"""Billing repositories."""

from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.charge_attempt_repository import (
    ChargeAttemptRepository,
)

__all__ = [
    "SubscriptionRepository",
    "ChargeAttemptRepository",
]

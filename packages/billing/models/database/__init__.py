"""Database models for billing."""

from packages.billing.models.database.subscription import (
    SubscriptionEntity,
    ChargeAttemptEntity,
)

__all__ = [
    "SubscriptionEntity",
    "ChargeAttemptEntity",
]

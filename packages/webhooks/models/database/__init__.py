"""Database models for gateway notifications."""

from packages.webhooks.models.database.notification import (
    ProcessedNotificationEntity,
    PendingNotificationEntity,
    WebhookErrorEntity,
)

__all__ = [
    "ProcessedNotificationEntity",
    "PendingNotificationEntity",
    "WebhookErrorEntity",
]

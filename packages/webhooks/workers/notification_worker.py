"""
Supervised background worker for gateway notifications.

The webhook route acknowledges the gateway and hands the parsed notification
(or the malformed body) to this worker; all persistence happens here.
"""

from typing import Optional, Union

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.workers.base_worker import BaseWorker
from packages.webhooks.models.domain.notification import (
    MalformedNotification,
    PaymentNotification,
    RebillNotification,
)
from packages.webhooks.repositories.webhook_error_repository import (
    WebhookErrorRepository,
)
from packages.webhooks.services.webhook_reconciler import WebhookReconciler

logger = get_logger(__name__)

NotificationMessage = Union[PaymentNotification, RebillNotification, MalformedNotification]


class NotificationWorker(BaseWorker[NotificationMessage]):
    """Processes queued notifications through the WebhookReconciler."""

    def __init__(
        self,
        reconciler: WebhookReconciler,
        concurrency: Optional[int] = None,
        max_queue_size: Optional[int] = None,
    ):
        super().__init__(
            queue_name="gateway_notifications",
            max_concurrent_messages=concurrency
            or settings.notification_worker_concurrency,
            max_queue_size=(
                max_queue_size
                if max_queue_size is not None
                else settings.notification_queue_size
            ),
        )
        self.reconciler = reconciler
        self.error_repo = WebhookErrorRepository()

    async def process_message(self, message: NotificationMessage):
        if isinstance(message, MalformedNotification):
            logger.warning(f"Recording malformed notification: {message.error}")
            await self.error_repo.record(
                error=f"parse error: {message.error}",
                payload={
                    "raw_body": message.raw_body,
                    "content_type": message.content_type,
                },
            )
            return

        outcome = await self.reconciler.reconcile(message)
        logger.info(
            f"Notification {message.notification_key} -> {outcome.value}",
            extra={"notification_key": message.notification_key, "outcome": outcome.value},
        )

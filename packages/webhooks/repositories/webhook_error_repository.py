from typing import Any, Dict, Optional

from common.core.clock import utc_now
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.repositories.base import BaseRepository
from packages.webhooks.models.database.notification import WebhookErrorEntity
from packages.webhooks.models.domain.records import (
    WebhookError,
    WebhookErrorCreateModel,
)

logger = get_logger(__name__)


class WebhookErrorRepository(BaseRepository[WebhookErrorEntity, WebhookError]):
    def __init__(self):
        super().__init__(WebhookErrorEntity, WebhookError)

    @trace_span
    async def record(
        self,
        error: str,
        payment_id: Optional[str] = None,
        notification_key: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[WebhookError]:
        """Best-effort write; a failure here is logged and never raised."""
        try:
            return await self.create(
                WebhookErrorCreateModel(
                    error=error,
                    payment_id=payment_id,
                    notification_key=notification_key,
                    payload=payload,
                    created_at=utc_now(),
                )
            )
        except Exception as e:
            logger.error(
                f"Failed to record webhook error: {e}",
                extra={"payment_id": payment_id, "original_error": error},
            )
            return None

"""
Inbound gateway notification endpoint.

Public endpoint (no auth). The gateway retries any non-200 response, so this
route always answers 200 and defers all work to the NotificationWorker.
"""

from fastapi import APIRouter, BackgroundTasks, Request

from common.core.exceptions import NotificationParseError
from common.core.otel_axiom_exporter import get_logger
from common.providers.rate_limiter.limiter import limiter
from packages.webhooks.models.domain.notification import (
    MalformedNotification,
    parse_notification,
)
from packages.webhooks.repositories.webhook_error_repository import (
    WebhookErrorRepository,
)

logger = get_logger(__name__)

router = APIRouter()

ACK = {"Success": True, "Error": "0"}


async def _record_rejected(error: str, payload: dict) -> None:
    await WebhookErrorRepository().record(error=error, payload=payload)


@router.post("/webhooks/tbank")
@limiter.exempt
async def tbank_webhook(request: Request, background_tasks: BackgroundTasks):
    """Receive a payment notification from the gateway."""
    body = await request.body()
    content_type = request.headers.get("content-type")
    worker = request.app.state.notification_worker

    try:
        message = parse_notification(body, content_type)
        logger.info(
            f"Received notification {message.notification_key}",
            extra={"payment_id": message.payment_id, "order_id": message.order_id},
        )
    except NotificationParseError as e:
        logger.warning(f"Malformed gateway notification: {e}")
        message = MalformedNotification(
            error=str(e),
            raw_body=body.decode("utf-8", errors="replace"),
            content_type=content_type,
        )

    if not worker.submit(message):
        payload = (
            {"raw_body": message.raw_body}
            if isinstance(message, MalformedNotification)
            else message.to_payload()
        )
        background_tasks.add_task(
            _record_rejected, "notification queue rejected message", payload
        )

    return ACK

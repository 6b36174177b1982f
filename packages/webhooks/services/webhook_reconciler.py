"""
Webhook reconciler: applies one parsed gateway notification.

Received -> Parsed -> Deduplicated -> Routed -> Applied
Received -> Parsed -> Deduplicated -> Unroutable -> Pending
"""

from typing import Optional, Union

from common.core.clock import Clock, utc_now
from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger, log_span_event
from common.db.retry import with_persistence_retry
from packages.billing.models.domain.subscription import ChargeEvidence
from packages.billing.services.subscription_service import SubscriptionService
from packages.orders.models.domain.order import OrderPaymentUpdateModel, OrderRoute
from packages.orders.repositories.order_repository import OrderRepository
from packages.orders.services.order_resolver import OrderResolver
from packages.users.repositories.user_repository import UserRepository
from packages.webhooks.models.domain.notification import (
    PaymentNotification,
    RebillNotification,
)
from packages.webhooks.models.domain.outcome import ReconcileOutcome
from packages.webhooks.models.domain.records import PendingNotificationCreateModel
from packages.webhooks.repositories.pending_notification_repository import (
    PendingNotificationRepository,
)
from packages.webhooks.repositories.processed_notification_repository import (
    ProcessedNotificationRepository,
)
from packages.webhooks.repositories.webhook_error_repository import (
    WebhookErrorRepository,
)

logger = get_logger(__name__)

Notification = Union[PaymentNotification, RebillNotification]


class WebhookReconciler:
    """
    Deduplicates, routes and applies gateway notifications.

    `reconcile` is the error boundary of the deferred webhook path: it never
    raises, and every branch ends in a logged ReconcileOutcome.
    """

    def __init__(
        self,
        subscription_service: SubscriptionService,
        clock: Clock = utc_now,
    ):
        self.subscription_service = subscription_service
        self.clock = clock
        self.event_store = ProcessedNotificationRepository()
        self.order_resolver = OrderResolver()
        self.order_repo = OrderRepository()
        self.pending_repo = PendingNotificationRepository()
        self.error_repo = WebhookErrorRepository()
        self.user_repo = UserRepository()

    @trace_span
    async def reconcile(self, notification: Notification) -> ReconcileOutcome:
        key = notification.notification_key
        log_extra = {
            "notification_key": key,
            "payment_id": notification.payment_id,
            "order_id": notification.order_id,
            "status": notification.status,
        }

        try:
            claimed = await with_persistence_retry(
                lambda: self.event_store.claim(
                    key,
                    notification.payment_id,
                    notification.status,
                    notification.to_payload(),
                ),
                "claim notification",
            )
            if not claimed:
                logger.warning(f"Duplicate notification {key}, skipping", extra=log_extra)
                return ReconcileOutcome.DUPLICATE

            route = await self._route(notification)
            if route is not None:
                await self._apply(route, notification)
                log_span_event(
                    f"Applied notification {key} to order {route.internal_order_id}",
                    {**log_extra, "user_id": route.user_id},
                )
                return ReconcileOutcome.APPLIED

            return await self._handle_unroutable(notification)
        except Exception as e:
            logger.error(
                f"Failed to process notification {key}: {e}",
                extra=log_extra,
                exc_info=True,
            )
            await self.error_repo.record(
                error=str(e),
                payment_id=notification.payment_id,
                notification_key=key,
                payload=notification.to_payload(),
            )
            return ReconcileOutcome.FAILED

    async def _route(self, notification: Notification) -> Optional[OrderRoute]:
        route = None
        if notification.order_id:
            route = await self.order_resolver.resolve(notification.order_id)
        if route is None:
            route = await self.order_resolver.resolve_by_payment_id(
                notification.payment_id
            )
        return route

    async def _apply(self, route: OrderRoute, notification: Notification) -> None:
        now = self.clock()
        if notification.has_fractional_amount():
            logger.warning(
                f"Notification {notification.notification_key} amount {notification.amount} has kopecks, recording {notification.amount_major}",
                extra={"payment_id": notification.payment_id, "user_id": route.user_id},
            )
        update = OrderPaymentUpdateModel(
            payment_id=notification.payment_id,
            status=notification.status,
            success=notification.success,
            last_notification=notification.to_payload(),
            updated_at=now,
        )
        if notification.amount_major is not None:
            update.amount = notification.amount_major
        if notification.card_id:
            update.card_id = notification.card_id
        if notification.pan:
            update.card_last_digits = notification.pan
        if notification.rebill_token:
            update.rebill_id = notification.rebill_token
            update.finished_at = now

        await with_persistence_retry(
            lambda: self.order_repo.update(route.internal_order_id, update),
            "update order payment",
        )

        if notification.rebill_token:
            await self._upsert_subscription(route.user_id, notification)

    async def _upsert_subscription(
        self, user_id: str, notification: Notification
    ) -> None:
        if not notification.is_settled():
            logger.info(
                f"Rebill notification {notification.notification_key} is not a settled charge, no subscription change",
                extra={"user_id": user_id, "status": notification.status},
            )
            return

        evidence = ChargeEvidence(
            payment_id=notification.payment_id,
            order_id=notification.order_id,
            amount=(
                notification.amount_major
                if notification.amount_major is not None
                else settings.first_payment_amount
            ),
            card_id=notification.card_id,
            card_last_digits=notification.pan,
        )
        await self.subscription_service.upsert(
            user_id, evidence, notification.rebill_token
        )

    async def _handle_unroutable(self, notification: Notification) -> ReconcileOutcome:
        key = notification.notification_key
        pending = await with_persistence_retry(
            lambda: self.pending_repo.create(
                PendingNotificationCreateModel(
                    gateway_order_id=notification.order_id,
                    payment_id=notification.payment_id,
                    status=notification.status,
                    rebill_id=notification.rebill_token,
                    email=notification.email,
                    payload=notification.to_payload(),
                    received_at=self.clock(),
                )
            ),
            "store pending notification",
        )
        logger.warning(
            f"No order found for notification {key}, stored for review as {pending.id}",
            extra={
                "notification_key": key,
                "order_id": notification.order_id,
                "payment_id": notification.payment_id,
            },
        )

        if not (notification.rebill_token and notification.is_settled() and notification.email):
            return ReconcileOutcome.PENDING

        user = await self.user_repo.get_by_email(notification.email)
        if user is None:
            logger.warning(
                f"No user with email for pending notification {pending.id}",
                extra={"notification_key": key},
            )
            return ReconcileOutcome.PENDING

        await self._upsert_subscription(user.id, notification)
        await self.pending_repo.mark_processed(pending.id, user.id)
        logger.info(
            f"Routed pending notification {pending.id} to user {user.id} by email",
            extra={"notification_key": key, "user_id": user.id},
        )
        return ReconcileOutcome.ROUTED_BY_EMAIL

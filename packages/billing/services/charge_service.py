"""
Charge executor: settles a recurring charge against a stored rebill token.
"""

from datetime import datetime
from typing import Optional

from common.core.clock import Clock, utc_now
from common.core.config import settings
from common.core.exceptions import (
    GatewayError,
    SubscriptionNotActiveError,
    SubscriptionNotFoundError,
)
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.retry import with_persistence_retry
from packages.billing.models.domain.charge import (
    ChargeAttemptCreateModel,
    ChargeResult,
)
from packages.billing.models.domain.enums import SubscriptionStatus
from packages.billing.models.domain.subscription import (
    PaymentFailure,
    PaymentHistoryEntry,
)
from packages.billing.providers.payment.factory import get_payment_gateway
from packages.billing.providers.payment.interface import PaymentGatewayInterface
from packages.billing.repositories.charge_attempt_repository import (
    ChargeAttemptRepository,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.orders.models.domain.order import (
    INITIATED_STATUS,
    OrderCreateModel,
    OrderType,
)
from packages.orders.repositories.order_repository import OrderRepository
from packages.orders.services.order_resolver import OrderResolver
from packages.users.repositories.user_repository import UserRepository

logger = get_logger(__name__)


class ChargeService:
    """
    Executes one charge attempt for a subscription.

    The gateway is called before any local write. On success the charge is
    appended to the payment history and total_paid is incremented; on
    failure the error is appended to payment_failures and the subscription
    moves to payment_failed. Every charge the gateway accepted gets a
    recurrent_auto order and mapping so its notifications route back to the
    user. Rescheduling is the caller's concern.
    """

    def __init__(
        self,
        gateway: Optional[PaymentGatewayInterface] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        clock: Clock = utc_now,
    ):
        self.gateway = gateway or get_payment_gateway()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.charge_attempt_repo = ChargeAttemptRepository()
        self.order_repo = OrderRepository()
        self.order_resolver = OrderResolver()
        self.user_repo = UserRepository()
        self.clock = clock

    def _make_order_id(self, user_id: str) -> str:
        timestamp_ms = int(self.clock().timestamp() * 1000)
        return f"recurrent-auto-{timestamp_ms}-{user_id}"

    async def _customer_email(self, user_id: str) -> str:
        user = await self.user_repo.get(user_id)
        if user and user.email:
            return user.email
        return settings.default_customer_email

    @trace_span
    async def execute(
        self,
        user_id: str,
        rebill_token: str,
        amount: int,
        description: str,
        subscription_id: str,
    ) -> ChargeResult:
        """
        Charge a subscription once.

        Args:
            user_id: Subscription owner
            rebill_token: Stored gateway rebill token
            amount: Amount in major units
            description: Charge description for the receipt
            subscription_id: Subscription being charged

        Returns:
            ChargeResult for a successful charge

        Raises:
            SubscriptionNotFoundError: Subscription does not exist (nothing charged)
            SubscriptionNotActiveError: Subscription is not active (nothing charged)
            GatewayError: The gateway rejected the charge or could not be reached
        """
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise SubscriptionNotActiveError(
                f"Subscription {subscription_id} is {subscription.status.value}"
            )

        order_id = self._make_order_id(user_id)
        email = await self._customer_email(user_id)
        log_extra = {
            "user_id": user_id,
            "subscription_id": subscription_id,
            "order_id": order_id,
        }
        logger.info(f"Executing charge of {amount} for {subscription_id}", extra=log_extra)

        payment_id: Optional[str] = None
        try:
            intent = await self.gateway.create_charge(
                amount=amount * 100,
                order_id=order_id,
                description=description,
                email=email,
            )
            payment_id = intent.payment_id
            settlement = await self.gateway.settle_recurrent_charge(
                payment_id=payment_id, rebill_id=rebill_token
            )
        except GatewayError as e:
            finished_at = self.clock()
            await self._record_attempt(
                order_id, payment_id, rebill_token, user_id, subscription_id,
                amount, e.status, False, e.message, finished_at,
            )
            if payment_id is not None:
                await self._record_order(
                    order_id, payment_id, rebill_token, user_id, amount,
                    description, e.status, False, finished_at,
                )
            await self._record_failure(subscription_id, e.message, finished_at)
            raise

        finished_at = self.clock()
        await self._record_attempt(
            order_id, payment_id, rebill_token, user_id, subscription_id,
            amount, settlement.status, settlement.success, settlement.message,
            finished_at,
        )
        await self._record_order(
            order_id, payment_id, rebill_token, user_id, amount,
            description, settlement.status, settlement.success, finished_at,
        )

        if not settlement.success:
            error = GatewayError(
                settlement.message or settlement.error_code or "charge declined",
                error_code=settlement.error_code,
                status=settlement.status,
            )
            await self._record_failure(subscription_id, error.message, finished_at)
            raise error

        entry = PaymentHistoryEntry(
            date=finished_at,
            amount=amount,
            payment_id=payment_id,
            order_id=order_id,
        )
        appended = await with_persistence_retry(
            lambda: self.subscription_repo.append_payment(subscription_id, entry),
            "append recurring payment",
        )
        if not appended:
            logger.warning(
                f"Payment {payment_id} already recorded for {subscription_id}",
                extra=log_extra,
            )

        logger.info(
            f"Charge succeeded for {subscription_id}: payment {payment_id}",
            extra={**log_extra, "payment_id": payment_id},
        )
        return ChargeResult(
            success=True,
            payment_id=payment_id,
            status=settlement.status,
            order_id=order_id,
            amount=amount,
        )

    async def _record_attempt(
        self,
        order_id: str,
        payment_id: Optional[str],
        rebill_id: str,
        user_id: str,
        subscription_id: str,
        amount: int,
        status: Optional[str],
        success: bool,
        error_message: Optional[str],
        finished_at: datetime,
    ) -> None:
        attempt = ChargeAttemptCreateModel(
            order_id=order_id,
            payment_id=payment_id,
            rebill_id=rebill_id,
            user_id=user_id,
            subscription_id=subscription_id,
            amount=amount,
            status=status,
            success=success,
            error_message=None if success else error_message,
            finished_at=finished_at,
        )
        await with_persistence_retry(
            lambda: self.charge_attempt_repo.create(attempt), "record charge attempt"
        )

    async def _record_failure(
        self, subscription_id: str, error: str, date: datetime
    ) -> None:
        failure = PaymentFailure(date=date, error=error)
        await with_persistence_retry(
            lambda: self.subscription_repo.record_failure(subscription_id, failure),
            "record payment failure",
        )
        logger.error(
            f"Charge failed for {subscription_id}: {error}",
            extra={"subscription_id": subscription_id},
        )

    async def _record_order(
        self,
        order_id: str,
        payment_id: str,
        rebill_id: str,
        user_id: str,
        amount: int,
        description: str,
        status: Optional[str],
        success: bool,
        finished_at: datetime,
    ) -> None:
        order = OrderCreateModel(
            id=order_id,
            user_id=user_id,
            gateway_order_id=order_id,
            order_type=OrderType.RECURRENT_AUTO,
            amount=amount,
            description=description,
            payment_id=payment_id,
            status=status or INITIATED_STATUS,
            success=success,
            rebill_id=rebill_id,
            finished_at=finished_at,
        )
        await with_persistence_retry(
            lambda: self.order_repo.create(order), "record recurrent order"
        )
        await self.order_resolver.record(order_id, user_id, order_id)

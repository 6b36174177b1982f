"""
Service for managing subscriptions.
"""

from typing import List, Optional
from uuid import uuid4

from common.core.clock import Clock, add_months, utc_now
from common.core.config import settings
from common.core.exceptions import (
    GatewayError,
    SubscriptionNotActiveError,
    SubscriptionNotFoundError,
)
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.retry import with_persistence_retry
from packages.billing.models.domain.charge import ChargeResult
from packages.billing.models.domain.enums import (
    CancellationReason,
    SubscriptionStatus,
)
from packages.billing.models.domain.subscription import (
    ChargeEvidence,
    InvariantRepairResult,
    PaymentHistoryEntry,
    Subscription,
    SubscriptionCreateModel,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.billing_scheduler import BillingScheduler

logger = get_logger(__name__)


def new_subscription_id() -> str:
    return f"sub_{uuid4().hex}"


class SubscriptionService:
    """Service for subscription management."""

    def __init__(
        self,
        scheduler: BillingScheduler,
        subscription_repo: Optional[SubscriptionRepository] = None,
        clock: Optional[Clock] = None,
    ):
        self.scheduler = scheduler
        self.subscription_repo = subscription_repo or scheduler.subscription_repo
        self.clock = clock or scheduler.clock

    @trace_span
    async def upsert(
        self, user_id: str, evidence: ChargeEvidence, rebill_token: str
    ) -> Subscription:
        """
        Record a successful charge that carries a rebill token.

        - Same token as the user's active subscription: append the payment
          (skipped if the payment id is already recorded), advance the due
          date one interval from now and reschedule.
        - Different token: cancel the active subscription, then create.
        - No active subscription: create one and schedule it.
        """
        log_extra = {
            "user_id": user_id,
            "payment_id": evidence.payment_id,
        }
        repair = await self.scheduler.repair_active_invariant(user_id)
        current = repair.kept
        now = self.clock()

        if current is not None and current.rebill_token == rebill_token:
            next_date = add_months(now, self.scheduler.interval_months)
            entry = PaymentHistoryEntry(
                date=now,
                amount=evidence.amount,
                payment_id=evidence.payment_id,
                order_id=evidence.order_id,
            )
            appended = await with_persistence_retry(
                lambda: self.subscription_repo.append_payment(
                    current.id, entry, next_payment_date=next_date
                ),
                "append subscription payment",
            )
            if not appended:
                logger.warning(
                    f"Payment {evidence.payment_id} already recorded on {current.id}, ignoring replay",
                    extra={**log_extra, "subscription_id": current.id},
                )
                return current

            self.scheduler.schedule(
                user_id, current.id, next_date, rebill_token, current.amount
            )
            logger.info(
                f"Recorded recurring payment on {current.id}",
                extra={**log_extra, "subscription_id": current.id},
            )
            return await self.subscription_repo.get(current.id)

        if current is not None:
            logger.info(
                f"User {user_id} switched payment method, replacing {current.id}",
                extra={**log_extra, "subscription_id": current.id},
            )
            await self.scheduler.cancel(
                user_id,
                current.id,
                status=SubscriptionStatus.CANCELLED,
                reason=CancellationReason.PAYMENT_METHOD_REPLACED,
            )

        return await self._create(user_id, evidence, rebill_token)

    async def _create(
        self, user_id: str, evidence: ChargeEvidence, rebill_token: str
    ) -> Subscription:
        now = self.clock()
        next_date = add_months(now, self.scheduler.interval_months)
        create_model = SubscriptionCreateModel(
            id=new_subscription_id(),
            user_id=user_id,
            rebill_token=rebill_token,
            card_id=evidence.card_id,
            card_last_digits=evidence.card_last_digits,
            amount=settings.recurring_payment_amount,
            initial_payment_date=now,
            next_payment_date=next_date,
            last_successful_payment=now,
            total_paid=evidence.amount,
            payment_history=[
                PaymentHistoryEntry(
                    date=now,
                    amount=evidence.amount,
                    payment_id=evidence.payment_id,
                    order_id=evidence.order_id,
                )
            ],
            created_at=now,
            updated_at=now,
        )
        subscription = await with_persistence_retry(
            lambda: self.subscription_repo.create(create_model),
            "create subscription",
        )
        self.scheduler.schedule(
            user_id,
            subscription.id,
            subscription.next_payment_date,
            rebill_token,
            subscription.amount,
        )
        logger.info(
            f"Created subscription {subscription.id} for user {user_id}",
            extra={
                "user_id": user_id,
                "subscription_id": subscription.id,
                "payment_id": evidence.payment_id,
            },
        )
        return subscription

    @trace_span
    async def cancel(self, user_id: str, subscription_id: str) -> Subscription:
        """Cancel a user's subscription at their request."""
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")

        await self.scheduler.cancel(
            user_id,
            subscription_id,
            status=SubscriptionStatus.CANCELLED,
            reason=CancellationReason.USER_REQUEST,
        )
        return await self.subscription_repo.get(subscription_id)

    async def repair_active_invariant(self, user_id: str) -> InvariantRepairResult:
        return await self.scheduler.repair_active_invariant(user_id)

    @trace_span
    async def get_for_user(self, user_id: str) -> Optional[Subscription]:
        """The user's active subscription, else their most recent one."""
        active = await self.subscription_repo.get_active_for_user(user_id)
        if active:
            return active[0]
        return await self.subscription_repo.get_latest_for_user(user_id)

    async def list_active(self) -> List[Subscription]:
        return await self.subscription_repo.get_by_status(SubscriptionStatus.ACTIVE)

    @trace_span
    async def charge_now(
        self, user_id: str, subscription_id: str, amount: Optional[int] = None
    ) -> ChargeResult:
        """
        Charge an active subscription immediately, outside its schedule.

        On success the scheduled timer and due date are left untouched. A
        failed charge moves the subscription to payment_failed and drops its
        timer.

        Raises:
            SubscriptionNotFoundError: No such subscription for this user
            SubscriptionNotActiveError: Subscription is not active
            GatewayError: The charge failed
        """
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")
        if not subscription.is_billable():
            raise SubscriptionNotActiveError(
                f"Subscription {subscription_id} is {subscription.status.value}"
            )

        try:
            return await self.scheduler.charge_service.execute(
                user_id=user_id,
                rebill_token=subscription.rebill_token,
                amount=amount or subscription.amount,
                description=settings.manual_charge_description,
                subscription_id=subscription_id,
            )
        except GatewayError:
            # payment_failed subscriptions keep no timer
            self.scheduler.unschedule(user_id, subscription_id)
            raise

"""
Repository for subscription management.

Ledger writes (history append, total-paid increment, failure append) run in
a single session under a row lock so concurrent writers serialize on the row.
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, update

from common.core.clock import utc_now
from common.core.exceptions import SubscriptionNotFoundError
from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    PaymentHistoryEntry,
    PaymentFailure,
)
from packages.billing.models.domain.enums import (
    CancellationReason,
    SubscriptionStatus,
)
from common.core.otel_axiom_exporter import trace_span


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing recurring subscriptions."""

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    @trace_span
    async def create(self, create_model: SubscriptionCreateModel) -> Subscription:
        """Create a subscription; history entries are stored as JSON."""
        data = create_model.model_dump(exclude_none=True)
        data["payment_history"] = [
            entry.model_dump(mode="json") for entry in create_model.payment_history
        ]
        data["payment_failures"] = []
        data["status"] = create_model.status.value
        db_obj = SubscriptionEntity(**data)
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def get_active_for_user(self, user_id: str) -> List[Subscription]:
        """Active subscriptions for a user, newest first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.user_id == user_id,
                    SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
                )
                .order_by(
                    SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc()
                )
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get_latest_for_user(self, user_id: str) -> Optional[Subscription]:
        """Most recently created subscription for a user, in any status."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.user_id == user_id)
                .order_by(
                    SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc()
                )
                .limit(1)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_by_status(self, status: SubscriptionStatus) -> List[Subscription]:
        """Full scan of subscriptions in a status (used at startup and by admin)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.status == status.value)
                .order_by(SubscriptionEntity.created_at.desc())
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def append_payment(
        self,
        subscription_id: str,
        entry: PaymentHistoryEntry,
        next_payment_date: Optional[datetime] = None,
    ) -> bool:
        """
        Append a successful charge and increment total_paid by its amount.

        Args:
            subscription_id: Subscription to update
            entry: History entry for the charge
            next_payment_date: Optionally advance the due date in the same write

        Returns:
            False if the payment id is already recorded (nothing written)

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist
        """
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .with_for_update()
            )
            db_subscription = result.scalar_one_or_none()
            if db_subscription is None:
                raise SubscriptionNotFoundError(
                    f"Subscription {subscription_id} not found"
                )

            history = list(db_subscription.payment_history or [])
            if any(item.get("payment_id") == entry.payment_id for item in history):
                return False

            values = {
                "payment_history": history + [entry.model_dump(mode="json")],
                "total_paid": SubscriptionEntity.total_paid + entry.amount,
                "last_successful_payment": entry.date,
                "updated_at": utc_now(),
            }
            if next_payment_date is not None:
                values["next_payment_date"] = next_payment_date

            await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await session.flush()
            return True

    @trace_span
    async def record_failure(
        self, subscription_id: str, failure: PaymentFailure
    ) -> None:
        """Append to payment_failures and move the subscription to payment_failed."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .with_for_update()
            )
            db_subscription = result.scalar_one_or_none()
            if db_subscription is None:
                raise SubscriptionNotFoundError(
                    f"Subscription {subscription_id} not found"
                )

            failures = list(db_subscription.payment_failures or [])
            await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .values(
                    payment_failures=failures + [failure.model_dump(mode="json")],
                    status=SubscriptionStatus.PAYMENT_FAILED.value,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session="fetch")
            )
            await session.flush()

    @trace_span
    async def set_status(
        self,
        subscription_id: str,
        status: SubscriptionStatus,
        reason: Optional[CancellationReason] = None,
        cancelled_at: Optional[datetime] = None,
    ) -> bool:
        """Set status (and cancellation fields). Returns False if no such row."""
        values = {"status": status.value, "updated_at": utc_now()}
        if reason is not None:
            values["cancellation_reason"] = reason.value
        if cancelled_at is not None:
            values["cancelled_at"] = cancelled_at

        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await session.flush()
            return result.rowcount > 0

    @trace_span
    async def update_schedule(
        self,
        subscription_id: str,
        next_payment_date: datetime,
        last_scheduled_payment: Optional[datetime] = None,
        amount: Optional[int] = None,
    ) -> None:
        """Persist the next due date after a scheduled charge."""
        values = {"next_payment_date": next_payment_date, "updated_at": utc_now()}
        if last_scheduled_payment is not None:
            values["last_scheduled_payment"] = last_scheduled_payment
        if amount is not None:
            values["amount"] = amount

        async with self._get_session() as session:
            await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await session.flush()

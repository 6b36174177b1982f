"""
Unit tests for SubscriptionRepository.

Covers the guarded ledger writes: history append with total_paid increment,
failure recording and status changes.
"""

import pytest
from datetime import datetime, timedelta

from common.core.exceptions import SubscriptionNotFoundError
from packages.billing.models.domain.enums import (
    CancellationReason,
    SubscriptionStatus,
)
from packages.billing.models.domain.subscription import (
    PaymentFailure,
    PaymentHistoryEntry,
    SubscriptionCreateModel,
)
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)

from tests.factories.billing_factory import SubscriptionFactory

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.mark.asyncio
class TestSubscriptionRepository:
    """Test SubscriptionRepository operations."""

    async def test_create_subscription(self):
        repo = SubscriptionRepository()
        subscription = await repo.create(
            SubscriptionCreateModel(
                id="sub_created",
                user_id="user-1",
                rebill_token="rebill-1",
                amount=390,
                initial_payment_date=NOW,
                next_payment_date=datetime(2026, 4, 15, 12, 0),
                last_successful_payment=NOW,
                total_paid=390,
                payment_history=[
                    PaymentHistoryEntry(date=NOW, amount=390, payment_id="p-1")
                ],
                created_at=NOW,
                updated_at=NOW,
            )
        )

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.total_paid == 390
        assert subscription.payment_history[0].payment_id == "p-1"
        assert subscription.payment_failures == []

    async def test_append_payment_increments_total(self, test_db):
        test_db.add(SubscriptionFactory.create_subscription_entity(id="sub_a"))
        await test_db.commit()

        repo = SubscriptionRepository()
        next_date = datetime(2026, 5, 15, 12, 0)
        appended = await repo.append_payment(
            "sub_a",
            PaymentHistoryEntry(date=NOW, amount=390, payment_id="p-2"),
            next_payment_date=next_date,
        )

        assert appended is True
        subscription = await repo.get("sub_a")
        assert subscription.total_paid == 780
        assert [e.payment_id for e in subscription.payment_history] == [
            "pay-initial",
            "p-2",
        ]
        assert subscription.next_payment_date == next_date
        assert subscription.last_successful_payment == NOW

    async def test_append_payment_skips_recorded_payment_id(self, test_db):
        test_db.add(SubscriptionFactory.create_subscription_entity(id="sub_b"))
        await test_db.commit()

        repo = SubscriptionRepository()
        appended = await repo.append_payment(
            "sub_b",
            PaymentHistoryEntry(date=NOW, amount=390, payment_id="pay-initial"),
            next_payment_date=datetime(2026, 5, 15),
        )

        assert appended is False
        subscription = await repo.get("sub_b")
        assert subscription.total_paid == 390
        assert len(subscription.payment_history) == 1
        assert subscription.next_payment_date == datetime(2026, 4, 15, 12, 0)

    async def test_append_payment_missing_subscription(self):
        with pytest.raises(SubscriptionNotFoundError):
            await SubscriptionRepository().append_payment(
                "sub_missing",
                PaymentHistoryEntry(date=NOW, amount=390, payment_id="p-9"),
            )

    async def test_record_failure_moves_to_payment_failed(self, test_db):
        test_db.add(SubscriptionFactory.create_subscription_entity(id="sub_c"))
        await test_db.commit()

        repo = SubscriptionRepository()
        await repo.record_failure(
            "sub_c", PaymentFailure(date=NOW, error="insufficient_funds")
        )

        subscription = await repo.get("sub_c")
        assert subscription.status == SubscriptionStatus.PAYMENT_FAILED
        assert subscription.payment_failures[0].error == "insufficient_funds"
        assert subscription.total_paid == 390

    async def test_set_status_with_reason(self, test_db):
        test_db.add(SubscriptionFactory.create_subscription_entity(id="sub_d"))
        await test_db.commit()

        repo = SubscriptionRepository()
        updated = await repo.set_status(
            "sub_d",
            SubscriptionStatus.CANCELLED,
            reason=CancellationReason.USER_REQUEST,
            cancelled_at=NOW,
        )

        assert updated is True
        subscription = await repo.get("sub_d")
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.cancellation_reason == CancellationReason.USER_REQUEST
        assert subscription.cancelled_at == NOW

    async def test_set_status_unknown_subscription(self):
        assert (
            await SubscriptionRepository().set_status(
                "sub_missing", SubscriptionStatus.CANCELLED
            )
            is False
        )

    async def test_active_for_user_newest_first(self, test_db):
        test_db.add_all(
            [
                SubscriptionFactory.create_subscription_entity(
                    id="sub_old", created_at=NOW - timedelta(days=10)
                ),
                SubscriptionFactory.create_subscription_entity(
                    id="sub_new", created_at=NOW - timedelta(days=1)
                ),
                SubscriptionFactory.create_subscription_entity(
                    id="sub_gone",
                    status=SubscriptionStatus.CANCELLED,
                    created_at=NOW,
                ),
            ]
        )
        await test_db.commit()

        repo = SubscriptionRepository()
        active = await repo.get_active_for_user("user-1")
        assert [s.id for s in active] == ["sub_new", "sub_old"]

        latest = await repo.get_latest_for_user("user-1")
        assert latest.id == "sub_gone"

    async def test_update_schedule(self, test_db):
        test_db.add(SubscriptionFactory.create_subscription_entity(id="sub_e"))
        await test_db.commit()

        repo = SubscriptionRepository()
        await repo.update_schedule(
            "sub_e",
            next_payment_date=datetime(2026, 5, 15, 12, 0),
            last_scheduled_payment=datetime(2026, 4, 15, 12, 0),
        )

        subscription = await repo.get("sub_e")
        assert subscription.next_payment_date == datetime(2026, 5, 15, 12, 0)
        assert subscription.last_scheduled_payment == datetime(2026, 4, 15, 12, 0)

"""Unit tests for the notification event store."""

import pytest

from packages.webhooks.repositories.processed_notification_repository import (
    ProcessedNotificationRepository,
)


@pytest.mark.asyncio
class TestProcessedNotificationRepository:
    async def test_first_claim_wins(self):
        repo = ProcessedNotificationRepository()

        assert await repo.claim("wh_1_CONFIRMED_7", "1", "CONFIRMED", {"PaymentId": "1"})
        assert not await repo.claim("wh_1_CONFIRMED_7", "1", "CONFIRMED", {"PaymentId": "1"})

        record = await repo.get_by_key("wh_1_CONFIRMED_7")
        assert record.payment_id == "1"
        assert record.payload == {"PaymentId": "1"}

    async def test_status_changes_are_distinct_events(self):
        repo = ProcessedNotificationRepository()

        assert await repo.claim("wh_1_AUTHORIZED_7", "1", "AUTHORIZED", {})
        assert await repo.claim("wh_1_CONFIRMED_7", "1", "CONFIRMED", {})
        assert await repo.count_for_payment("1") == 2

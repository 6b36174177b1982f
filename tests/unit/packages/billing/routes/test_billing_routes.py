"""Tests for the subscription management endpoints."""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from common.core.clock import add_months
from common.core.exceptions import GatewayError
from packages.billing.models.domain.enums import SubscriptionStatus

from tests.factories.billing_factory import SubscriptionFactory

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest_asyncio.fixture
async def active_subscription(test_db, scheduler):
    due = add_months(NOW, 1)
    test_db.add(SubscriptionFactory.create_subscription_entity(id="sub_1", next_payment_date=due))
    await test_db.commit()
    scheduler.schedule("user-1", "sub_1", due, "rebill-1", 390)
    return "sub_1"


@pytest.mark.asyncio
class TestSubscriptionRoutes:
    async def test_get_user_subscription(self, client, active_subscription):
        response = await client.get("/api/v1/subscriptions/user-1")

        assert response.status_code == 200
        data = response.json()
        assert data["has_scheduled_payment"] is True
        assert data["subscription"]["id"] == "sub_1"
        assert data["subscription"]["status"] == "active"
        assert data["subscription"]["total_paid"] == 390

    async def test_get_user_without_subscription(self, client):
        response = await client.get("/api/v1/subscriptions/nobody")

        assert response.status_code == 200
        assert response.json() == {"subscription": None, "has_scheduled_payment": False}

    async def test_cancel(self, client, active_subscription, scheduler):
        response = await client.post(
            "/api/v1/subscriptions/cancel",
            json={"user_id": "user-1", "subscription_id": "sub_1"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert scheduler.job_count == 0

    async def test_cancel_unknown(self, client):
        response = await client.post(
            "/api/v1/subscriptions/cancel",
            json={"user_id": "user-1", "subscription_id": "sub_missing"},
        )
        assert response.status_code == 404

    async def test_charge_now(self, client, active_subscription):
        response = await client.post(
            "/api/v1/subscriptions/charge-now",
            json={"user_id": "user-1", "subscription_id": "sub_1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["payment_id"] == "9001"
        assert data["amount"] == 390

    async def test_charge_now_gateway_failure(self, client, active_subscription, mock_gateway):
        mock_gateway.create_charge.side_effect = GatewayError("Gateway Init timed out", status="TIMEOUT")

        response = await client.post(
            "/api/v1/subscriptions/charge-now",
            json={"user_id": "user-1", "subscription_id": "sub_1"},
        )

        assert response.status_code == 502

    async def test_charge_now_inactive(self, client, test_db):
        test_db.add(
            SubscriptionFactory.create_subscription_entity(
                id="sub_x", status=SubscriptionStatus.PAYMENT_FAILED
            )
        )
        await test_db.commit()

        response = await client.post(
            "/api/v1/subscriptions/charge-now",
            json={"user_id": "user-1", "subscription_id": "sub_x"},
        )
        assert response.status_code == 400


@pytest.mark.asyncio
class TestAdminRoutes:
    async def test_list_active_subscriptions(self, client, active_subscription, test_db):
        test_db.add(
            SubscriptionFactory.create_subscription_entity(
                id="sub_2",
                user_id="user-2",
                created_at=NOW - timedelta(days=1),
                next_payment_date=NOW + timedelta(days=2, hours=1),
            )
        )
        await test_db.commit()

        response = await client.get("/api/v1/admin/subscriptions")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["scheduled_jobs"] == 1
        by_id = {item["id"]: item for item in data["subscriptions"]}
        assert by_id["sub_1"]["has_scheduled_job"] is True
        assert by_id["sub_1"]["days_until_payment"] == 31
        assert by_id["sub_2"]["has_scheduled_job"] is False
        assert by_id["sub_2"]["days_until_payment"] == 3


@pytest.mark.asyncio
class TestHealth:
    async def test_health_reports_scheduled_jobs(self, client, active_subscription):
        response = await client.get("/api/v1/health/")

        assert response.status_code == 200
        assert response.json()["scheduled_jobs"] == 1

    async def test_healthz(self, client):
        response = await client.get("/healthz")
        assert response.json() == {"status": "ok"}

"""Tests for the payment initiation endpoints."""

import pytest
import pytest_asyncio

from api.main import app
from common.core.exceptions import GatewayError
from packages.orders.routes.payments import get_payment_initiation_service
from packages.orders.services.payment_initiation_service import (
    PaymentInitiationService,
)


@pytest_asyncio.fixture
async def payments_client(client, mock_gateway):
    app.dependency_overrides[get_payment_initiation_service] = (
        lambda: PaymentInitiationService(gateway=mock_gateway)
    )
    yield client


@pytest.mark.asyncio
class TestPaymentRoutes:
    async def test_init_payment(self, payments_client):
        response = await payments_client.post(
            "/api/v1/payments/init",
            json={
                "user_id": "user-1",
                "order_id": "order-1",
                "amount": 390,
                "email": "payer@example.com",
                "recurrent": True,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_id"] == "9001"
        assert data["order_id"] == "order-1"
        assert data["payment_url"] == "https://securepay.example/pay/9001"

    async def test_init_rejects_non_positive_amount(self, payments_client):
        response = await payments_client.post(
            "/api/v1/payments/init",
            json={"user_id": "user-1", "order_id": "order-1", "amount": 0},
        )
        assert response.status_code == 422

    async def test_init_gateway_failure(self, payments_client, mock_gateway):
        mock_gateway.create_charge.side_effect = GatewayError("Gateway Init failed: bad token")

        response = await payments_client.post(
            "/api/v1/payments/init",
            json={"user_id": "user-1", "order_id": "order-1", "amount": 390},
        )

        assert response.status_code == 502

    async def test_check_payment(self, payments_client):
        response = await payments_client.post(
            "/api/v1/payments/check", json={"payment_id": "9001"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"

    async def test_check_unknown_order(self, payments_client):
        response = await payments_client.post(
            "/api/v1/payments/check",
            json={"payment_id": "9001", "order_id": "missing"},
        )
        assert response.status_code == 404

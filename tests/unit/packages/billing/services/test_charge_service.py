"""Unit tests for the charge executor."""

import pytest

from common.core.config import settings
from common.core.exceptions import (
    GatewayError,
    SubscriptionNotActiveError,
    SubscriptionNotFoundError,
)
from packages.billing.models.domain.charge import SettlementResult
from packages.billing.models.domain.enums import SubscriptionStatus
from packages.billing.repositories.charge_attempt_repository import (
    ChargeAttemptRepository,
)
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.services.charge_service import ChargeService
from packages.orders.models.domain.order import OrderType
from packages.orders.repositories.order_mapping_repository import (
    OrderMappingRepository,
)
from packages.orders.repositories.order_repository import OrderRepository

from tests.factories.billing_factory import SubscriptionFactory


@pytest.fixture
def charge_service(mock_gateway, clock):
    return ChargeService(gateway=mock_gateway, clock=clock)


async def _seed(test_db, **kwargs):
    test_db.add(SubscriptionFactory.create_subscription_entity(**kwargs))
    await test_db.commit()


@pytest.mark.asyncio
class TestChargeService:
    async def test_successful_charge_appends_history(
        self, charge_service, mock_gateway, test_db, clock
    ):
        await _seed(test_db, id="sub_ok")

        result = await charge_service.execute(
            user_id="user-1",
            rebill_token="rebill-1",
            amount=390,
            description="Subscription renewal",
            subscription_id="sub_ok",
        )

        assert result.success is True
        assert result.payment_id == "9001"
        assert result.amount == 390
        assert result.order_id == f"recurrent-auto-{int(clock().timestamp() * 1000)}-user-1"

        create_kwargs = mock_gateway.create_charge.call_args.kwargs
        assert create_kwargs["amount"] == 39000
        assert create_kwargs["email"] == settings.default_customer_email
        mock_gateway.settle_recurrent_charge.assert_awaited_once_with(
            payment_id="9001", rebill_id="rebill-1"
        )

        subscription = await SubscriptionRepository().get("sub_ok")
        assert subscription.total_paid == 780
        assert subscription.has_payment("9001")
        assert subscription.status == SubscriptionStatus.ACTIVE

        attempts = await ChargeAttemptRepository().get_by_subscription("sub_ok")
        assert len(attempts) == 1
        assert attempts[0].success is True

    async def test_successful_charge_records_routable_order(
        self, charge_service, test_db, clock
    ):
        await _seed(test_db, id="sub_ok")

        result = await charge_service.execute(
            user_id="user-1",
            rebill_token="rebill-1",
            amount=390,
            description="Subscription renewal",
            subscription_id="sub_ok",
        )

        order = await OrderRepository().get(result.order_id)
        assert order.order_type == OrderType.RECURRENT_AUTO
        assert order.gateway_order_id == result.order_id
        assert order.payment_id == "9001"
        assert order.amount == 390
        assert order.status == "CONFIRMED"
        assert order.success is True
        assert order.rebill_id == "rebill-1"
        assert order.finished_at == clock()

        mapping = await OrderMappingRepository().get_by_gateway_order_id(result.order_id)
        assert mapping.user_id == "user-1"
        assert mapping.internal_order_id == result.order_id

    async def test_uses_user_email_when_known(
        self, charge_service, mock_gateway, test_db, sample_user
    ):
        await _seed(test_db, id="sub_mail")

        await charge_service.execute(
            user_id="user-1",
            rebill_token="rebill-1",
            amount=390,
            description="Subscription renewal",
            subscription_id="sub_mail",
        )

        assert mock_gateway.create_charge.call_args.kwargs["email"] == "payer@example.com"

    async def test_declined_charge_records_failure(
        self, charge_service, mock_gateway, test_db
    ):
        await _seed(test_db, id="sub_declined")
        mock_gateway.settle_recurrent_charge.return_value = SettlementResult(
            success=False,
            status="REJECTED",
            payment_id="9001",
            error_code="51",
            message="insufficient_funds",
        )

        with pytest.raises(GatewayError) as exc_info:
            await charge_service.execute(
                user_id="user-1",
                rebill_token="rebill-1",
                amount=390,
                description="Subscription renewal",
                subscription_id="sub_declined",
            )

        assert exc_info.value.error_code == "51"
        subscription = await SubscriptionRepository().get("sub_declined")
        assert subscription.status == SubscriptionStatus.PAYMENT_FAILED
        assert len(subscription.payment_failures) == 1
        assert subscription.payment_failures[0].error == "insufficient_funds"
        assert subscription.total_paid == 390

        attempts = await ChargeAttemptRepository().get_by_subscription("sub_declined")
        assert attempts[0].success is False
        assert attempts[0].error_message == "insufficient_funds"

        order = await OrderRepository().get(attempts[0].order_id)
        assert order.status == "REJECTED"
        assert order.success is False
        assert order.payment_id == "9001"

    async def test_gateway_unreachable_records_failure(
        self, charge_service, mock_gateway, test_db
    ):
        await _seed(test_db, id="sub_timeout")
        mock_gateway.create_charge.side_effect = GatewayError(
            "Gateway Init timed out", status="TIMEOUT"
        )

        with pytest.raises(GatewayError):
            await charge_service.execute(
                user_id="user-1",
                rebill_token="rebill-1",
                amount=390,
                description="Subscription renewal",
                subscription_id="sub_timeout",
            )

        mock_gateway.settle_recurrent_charge.assert_not_awaited()
        subscription = await SubscriptionRepository().get("sub_timeout")
        assert subscription.status == SubscriptionStatus.PAYMENT_FAILED
        # No payment id was issued, so there is nothing for a notification to match
        assert await OrderRepository().get(charge_service._make_order_id("user-1")) is None

    async def test_missing_subscription_never_calls_gateway(
        self, charge_service, mock_gateway
    ):
        with pytest.raises(SubscriptionNotFoundError):
            await charge_service.execute(
                user_id="user-1",
                rebill_token="rebill-1",
                amount=390,
                description="Subscription renewal",
                subscription_id="sub_missing",
            )
        mock_gateway.create_charge.assert_not_awaited()

    async def test_inactive_subscription_never_calls_gateway(
        self, charge_service, mock_gateway, test_db
    ):
        await _seed(test_db, id="sub_cancelled", status=SubscriptionStatus.CANCELLED)

        with pytest.raises(SubscriptionNotActiveError):
            await charge_service.execute(
                user_id="user-1",
                rebill_token="rebill-1",
                amount=390,
                description="Subscription renewal",
                subscription_id="sub_cancelled",
            )
        mock_gateway.create_charge.assert_not_awaited()

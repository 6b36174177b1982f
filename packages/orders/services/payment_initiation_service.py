"""
Service for starting gateway payments and checking their state.
"""

from typing import Optional
from uuid import uuid4

from common.core.clock import utc_now
from common.core.config import settings
from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.charge import ChargeState
from packages.billing.providers.payment.factory import get_payment_gateway
from packages.billing.providers.payment.interface import PaymentGatewayInterface
from packages.orders.models.domain.order import (
    OrderCreateModel,
    OrderPaymentUpdateModel,
    OrderType,
)
from packages.orders.models.schemas.payments import PaymentInitResponse
from packages.orders.repositories.order_repository import OrderRepository
from packages.orders.services.order_resolver import OrderResolver

logger = get_logger(__name__)


class PaymentInitiationService:
    """Creates first payments (one-time or card-binding) and refreshes their state."""

    def __init__(self, gateway: Optional[PaymentGatewayInterface] = None):
        self.gateway = gateway or get_payment_gateway()
        self.order_repo = OrderRepository()
        self.order_resolver = OrderResolver()

    @trace_span
    async def init_payment(
        self,
        user_id: str,
        order_id: str,
        amount: int,
        email: Optional[str] = None,
        description: Optional[str] = None,
        phone: Optional[str] = None,
        recurrent: bool = False,
    ) -> PaymentInitResponse:
        """
        Start a payment with the gateway and record the order.

        Args:
            user_id: Paying user
            order_id: Internal order id
            amount: Amount in major units
            email: Receipt email
            description: Payment description
            phone: Receipt phone
            recurrent: Bind the card for later rebill charges

        Returns:
            PaymentInitResponse with the gateway payment URL
        """
        order_type = OrderType.RECURRENT if recurrent else OrderType.ONE_TIME
        prefix = "recurrent" if recurrent else "order"
        gateway_order_id = f"{prefix}-{int(utc_now().timestamp() * 1000)}-{user_id}"
        customer_key = f"{user_id}-{uuid4().hex[:8]}" if recurrent else None
        description = description or f"Payment for order {order_id}"

        intent = await self.gateway.create_charge(
            amount=amount * 100,
            order_id=gateway_order_id,
            description=description,
            email=email or settings.default_customer_email,
            phone=phone,
            recurrent=recurrent,
            customer_key=customer_key,
            notification_url=settings.notification_url,
        )

        await self.order_repo.create(
            OrderCreateModel(
                id=order_id,
                user_id=user_id,
                gateway_order_id=gateway_order_id,
                order_type=order_type,
                amount=amount,
                description=description,
                payment_id=intent.payment_id,
                payment_url=intent.payment_url,
                customer_key=customer_key,
            )
        )
        await self.order_resolver.record(gateway_order_id, user_id, order_id)

        logger.info(
            f"Initiated {order_type.value} payment {intent.payment_id} for order {order_id}",
            extra={
                "user_id": user_id,
                "order_id": order_id,
                "payment_id": intent.payment_id,
            },
        )
        return PaymentInitResponse(
            payment_id=intent.payment_id,
            payment_url=intent.payment_url,
            gateway_order_id=gateway_order_id,
            order_id=order_id,
        )

    @trace_span
    async def check_payment(
        self,
        payment_id: str,
        order_id: Optional[str] = None,
    ) -> ChargeState:
        """
        Query the gateway for a payment's state, refreshing the order if given.

        Raises:
            NotFoundError: If order_id is given but no such order exists
        """
        state = await self.gateway.get_charge_state(payment_id)

        if order_id:
            order = await self.order_repo.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            update = OrderPaymentUpdateModel(
                payment_id=state.payment_id,
                status=state.status,
                success=state.success,
                updated_at=utc_now(),
            )
            if state.rebill_id:
                update.rebill_id = state.rebill_id
            if state.card_id:
                update.card_id = state.card_id
            await self.order_repo.update(order_id, update)

        return state

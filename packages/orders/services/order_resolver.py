"""
Maps gateway order and payment identifiers to internal (user, order) pairs.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.orders.models.domain.order import OrderRoute
from packages.orders.repositories.order_mapping_repository import (
    OrderMappingRepository,
)
from packages.orders.repositories.order_repository import OrderRepository

logger = get_logger(__name__)


class OrderResolver:
    """
    Resolves gateway identifiers to internal orders.

    An unresolved identifier is a normal outcome (returned as None), never an
    error. Recording failures are logged and swallowed.
    """

    def __init__(self):
        self.mapping_repo = OrderMappingRepository()
        self.order_repo = OrderRepository()

    @trace_span
    async def resolve(self, gateway_order_id: str) -> Optional[OrderRoute]:
        mapping = await self.mapping_repo.get_by_gateway_order_id(gateway_order_id)
        if mapping is None:
            return None
        return OrderRoute(
            user_id=mapping.user_id, internal_order_id=mapping.internal_order_id
        )

    @trace_span
    async def resolve_by_payment_id(self, payment_id: str) -> Optional[OrderRoute]:
        """
        Fallback lookup by gateway payment id over recent orders.

        A hit backfills the order mapping so later notifications route directly.
        """
        order = await self.order_repo.find_recent_by_payment_id(
            payment_id, settings.payment_id_scan_limit
        )
        if order is None:
            return None

        logger.info(
            f"Resolved payment {payment_id} to order {order.id} by payment id",
            extra={"payment_id": payment_id, "order_id": order.id},
        )
        await self.record(order.gateway_order_id, order.user_id, order.id)
        return OrderRoute(user_id=order.user_id, internal_order_id=order.id)

    @trace_span
    async def record(
        self, gateway_order_id: str, user_id: str, internal_order_id: str
    ) -> None:
        try:
            inserted = await self.mapping_repo.record(
                gateway_order_id, user_id, internal_order_id
            )
            if inserted:
                logger.info(
                    f"Recorded order mapping {gateway_order_id} -> {internal_order_id}",
                    extra={"user_id": user_id, "gateway_order_id": gateway_order_id},
                )
        except Exception as e:
            logger.error(
                f"Failed to record order mapping {gateway_order_id}: {e}",
                extra={"user_id": user_id, "gateway_order_id": gateway_order_id},
            )

from typing import Optional
from sqlalchemy import select

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.orders.models.database.order import OrderEntity
from packages.orders.models.domain.order import Order


class OrderRepository(BaseRepository[OrderEntity, Order]):
    def __init__(self):
        super().__init__(OrderEntity, Order)

    @trace_span
    async def find_recent_by_payment_id(
        self, payment_id: str, scan_limit: int
    ) -> Optional[Order]:
        """
        Find an order by gateway payment id among the most recent orders.

        Only the newest `scan_limit` orders are considered.
        """
        recent = (
            select(OrderEntity.id)
            .order_by(OrderEntity.created_at.desc())
            .limit(scan_limit)
            .subquery()
        )
        async with self._get_session() as session:
            result = await session.execute(
                select(OrderEntity)
                .where(
                    OrderEntity.id.in_(select(recent.c.id)),
                    OrderEntity.payment_id == payment_id,
                )
                .order_by(OrderEntity.created_at.desc())
                .limit(1)
            )
            db_order = result.scalar_one_or_none()
            return self._entity_to_domain(db_order) if db_order else None

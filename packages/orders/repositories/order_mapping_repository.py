from typing import Optional
from sqlalchemy import select

from common.core.clock import utc_now
from common.core.otel_axiom_exporter import trace_span
from common.db.insert import insert_if_absent
from common.repositories.base import BaseRepository
from packages.orders.models.database.order import OrderMappingEntity
from packages.orders.models.domain.order import OrderMapping


class OrderMappingRepository(BaseRepository[OrderMappingEntity, OrderMapping]):
    def __init__(self):
        super().__init__(OrderMappingEntity, OrderMapping)

    @trace_span
    async def get_by_gateway_order_id(
        self, gateway_order_id: str
    ) -> Optional[OrderMapping]:
        async with self._get_session() as session:
            result = await session.execute(
                select(OrderMappingEntity).where(
                    OrderMappingEntity.gateway_order_id == gateway_order_id
                )
            )
            db_mapping = result.scalar_one_or_none()
            return self._entity_to_domain(db_mapping) if db_mapping else None

    @trace_span
    async def record(
        self, gateway_order_id: str, user_id: str, internal_order_id: str
    ) -> bool:
        """Insert the mapping unless it exists. Returns True if inserted."""
        async with self._get_session() as session:
            return await insert_if_absent(
                session,
                OrderMappingEntity,
                {
                    "gateway_order_id": gateway_order_id,
                    "user_id": user_id,
                    "internal_order_id": internal_order_id,
                    "created_at": utc_now(),
                },
                index_elements=["gateway_order_id"],
            )

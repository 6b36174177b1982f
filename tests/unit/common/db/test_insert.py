"""Unit tests for the dialect-aware insert-if-absent helper."""

from datetime import datetime

import pytest

from common.db.insert import insert_if_absent
from common.db.scoped import get_session
from packages.orders.models.database.order import OrderMappingEntity


def _values(internal_order_id: str = "order-1"):
    return {
        "gateway_order_id": "order-1-user-1",
        "user_id": "user-1",
        "internal_order_id": internal_order_id,
        "created_at": datetime(2026, 3, 15, 12, 0),
    }


@pytest.mark.asyncio
class TestInsertIfAbsent:
    async def test_first_insert_wins(self):
        async with get_session() as session:
            assert await insert_if_absent(
                session, OrderMappingEntity, _values(), ["gateway_order_id"]
            )

    async def test_second_insert_is_ignored(self, test_db):
        async with get_session() as session:
            await insert_if_absent(
                session, OrderMappingEntity, _values(), ["gateway_order_id"]
            )
        async with get_session() as session:
            inserted = await insert_if_absent(
                session, OrderMappingEntity, _values("order-2"), ["gateway_order_id"]
            )

        assert inserted is False
        mapping = await test_db.get(OrderMappingEntity, "order-1-user-1")
        assert mapping.internal_order_id == "order-1"

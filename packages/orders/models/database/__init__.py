"""Database models for orders."""

from packages.orders.models.database.order import OrderEntity, OrderMappingEntity

__all__ = [
    "OrderEntity",
    "OrderMappingEntity",
]

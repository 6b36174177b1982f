"""Domain models for orders."""

from packages.orders.models.domain.order import (
    INITIATED_STATUS,
    Order,
    OrderCreateModel,
    OrderMapping,
    OrderPaymentUpdateModel,
    OrderRoute,
    OrderType,
)

__all__ = [
    "INITIATED_STATUS",
    "Order",
    "OrderCreateModel",
    "OrderMapping",
    "OrderPaymentUpdateModel",
    "OrderRoute",
    "OrderType",
]

"""
Database entities for orders and gateway order mappings.
"""

from sqlalchemy import Column, String, DateTime, Integer, Boolean, JSON

from common.core.clock import utc_now
from common.db.base import Base


class OrderEntity(Base):
    """Internal order with the latest payment state reported by the gateway."""

    __tablename__ = "orders"

    id = Column(String, primary_key=True, index=True)  # internal order id
    user_id = Column(String, nullable=False, index=True)
    gateway_order_id = Column(String, nullable=False, unique=True, index=True)
    order_type = Column(String(32), nullable=False)  # one_time, recurrent, recurrent_auto
    amount = Column(Integer, nullable=False)  # major units
    description = Column(String, nullable=True)

    # Payment state
    payment_id = Column(String, nullable=True, index=True)
    payment_url = Column(String, nullable=True)
    status = Column(String(50), nullable=False)
    success = Column(Boolean, nullable=True)
    rebill_id = Column(String, nullable=True)
    card_id = Column(String, nullable=True)
    card_last_digits = Column(String(4), nullable=True)
    customer_key = Column(String, nullable=True)
    last_notification = Column(JSON, nullable=True)
    finished_at = Column(DateTime(), nullable=True)

    created_at = Column(DateTime(), nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime(), nullable=False, default=utc_now, onupdate=utc_now)


class OrderMappingEntity(Base):
    """Gateway order id -> (user, internal order). Written once, never updated."""

    __tablename__ = "order_mappings"

    gateway_order_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    internal_order_id = Column(String, nullable=False)
    created_at = Column(DateTime(), nullable=False, default=utc_now)

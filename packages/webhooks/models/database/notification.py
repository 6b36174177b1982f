"""
Database entities for processed, pending and failed gateway notifications.
"""

from sqlalchemy import Column, String, DateTime, Boolean, JSON, Text

from common.core.clock import utc_now
from common.db.base import Base, BigIntegerType


class ProcessedNotificationEntity(Base):
    """Event store: one row per unique notification key, never mutated."""

    __tablename__ = "processed_notifications"

    key = Column(String, primary_key=True)
    payment_id = Column(String, nullable=False, index=True)
    status = Column(String(50), nullable=False)
    processed_at = Column(DateTime(), nullable=False, default=utc_now)
    payload = Column(JSON, nullable=False)


class PendingNotificationEntity(Base):
    """Notifications that could not be routed to an order, kept for manual review."""

    __tablename__ = "pending_notifications"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    gateway_order_id = Column(String, nullable=True, index=True)
    payment_id = Column(String, nullable=False, index=True)
    status = Column(String(50), nullable=False)
    rebill_id = Column(String, nullable=True)
    email = Column(String, nullable=True)
    payload = Column(JSON, nullable=False)
    processed = Column(Boolean, nullable=False, default=False, index=True)
    processed_user_id = Column(String, nullable=True)
    received_at = Column(DateTime(), nullable=False, default=utc_now)
    processed_at = Column(DateTime(), nullable=True)


class WebhookErrorEntity(Base):
    """Error record collection for the deferred webhook path."""

    __tablename__ = "webhook_errors"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    error = Column(Text, nullable=False)
    payment_id = Column(String, nullable=True, index=True)
    notification_key = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(), nullable=False, default=utc_now)

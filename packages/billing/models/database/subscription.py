"""
Database entities for subscriptions and charge attempts.
"""

from sqlalchemy import Column, String, DateTime, Integer, Boolean, JSON, Index

from common.core.clock import utc_now
from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    Recurring subscription database entity.

    Soft-cancelled only, never deleted. Payment history and failures are
    ordered JSON arrays appended under a row lock.
    """

    __tablename__ = "subscriptions"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)

    # Gateway payment method
    rebill_token = Column(String, nullable=False, index=True)
    card_id = Column(String, nullable=True)
    card_last_digits = Column(String(4), nullable=True)

    status = Column(
        String(50), nullable=False, index=True
    )  # active, payment_failed, cancelled, cancelled_by_system
    amount = Column(Integer, nullable=False)  # major units

    # Billing dates (naive UTC)
    initial_payment_date = Column(DateTime(), nullable=False)
    next_payment_date = Column(DateTime(), nullable=False)
    last_successful_payment = Column(DateTime(), nullable=True)
    last_scheduled_payment = Column(DateTime(), nullable=True)

    # Ledger
    total_paid = Column(Integer, nullable=False, default=0)
    payment_history = Column(JSON, nullable=False, default=list)
    payment_failures = Column(JSON, nullable=False, default=list)

    # Lifecycle
    cancellation_reason = Column(String(64), nullable=True)
    cancelled_at = Column(DateTime(), nullable=True)

    created_at = Column(DateTime(), nullable=False, default=utc_now)
    updated_at = Column(DateTime(), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("idx_subscription_user_status", "user_id", "status"),
        Index("idx_subscription_next_payment", "next_payment_date"),
    )


class ChargeAttemptEntity(Base):
    """One gateway charge attempt (scheduled or manual). Immutable once written."""

    __tablename__ = "charge_attempts"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String, nullable=False, index=True)
    payment_id = Column(String, nullable=True, index=True)
    rebill_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    subscription_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # major units
    status = Column(String(50), nullable=True)
    success = Column(Boolean, nullable=False, default=False)
    error_message = Column(String, nullable=True)
    finished_at = Column(DateTime(), nullable=False, default=utc_now)

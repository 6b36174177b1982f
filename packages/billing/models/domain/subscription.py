"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from packages.billing.models.domain.enums import (
    CancellationReason,
    HistoryEntryStatus,
    SubscriptionStatus,
)


class PaymentHistoryEntry(BaseModel):
    """One recorded successful charge."""

    date: datetime
    amount: int
    payment_id: str
    order_id: Optional[str] = None
    status: HistoryEntryStatus = HistoryEntryStatus.SUCCESS


class PaymentFailure(BaseModel):
    date: datetime
    error: str


class Subscription(BaseModel):
    """
    Recurring subscription domain model.

    Amounts are in major currency units. `next_payment_date` is authoritative
    for scheduling; in-memory timers are rebuilt from it on restart.
    """

    id: str
    user_id: str
    rebill_token: str
    card_id: Optional[str] = None
    card_last_digits: Optional[str] = None

    status: SubscriptionStatus
    amount: int

    initial_payment_date: datetime
    next_payment_date: datetime
    last_successful_payment: Optional[datetime] = None
    last_scheduled_payment: Optional[datetime] = None

    total_paid: int = 0
    payment_history: List[PaymentHistoryEntry] = Field(default_factory=list)
    payment_failures: List[PaymentFailure] = Field(default_factory=list)

    cancellation_reason: Optional[CancellationReason] = None
    cancelled_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_billable(self) -> bool:
        """Check if subscription should be billed."""
        return self.status.is_billable()

    def has_payment(self, payment_id: str) -> bool:
        """Check whether a gateway payment is already in the history."""
        return any(entry.payment_id == payment_id for entry in self.payment_history)


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    id: str
    user_id: str
    rebill_token: str
    card_id: Optional[str] = None
    card_last_digits: Optional[str] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    amount: int
    initial_payment_date: datetime
    next_payment_date: datetime
    last_successful_payment: Optional[datetime] = None
    total_paid: int = 0
    payment_history: List[PaymentHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ChargeEvidence(BaseModel):
    """A successful charge reported by the gateway, used to upsert a subscription."""

    payment_id: str
    order_id: Optional[str] = None
    amount: int
    card_id: Optional[str] = None
    card_last_digits: Optional[str] = None


class InvariantRepairResult(BaseModel):
    """Outcome of enforcing one active subscription per user."""

    user_id: str
    kept: Optional[Subscription] = None
    cancelled_ids: List[str] = Field(default_factory=list)

    @property
    def repaired(self) -> bool:
        return bool(self.cancelled_ids)

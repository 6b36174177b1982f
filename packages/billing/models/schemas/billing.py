"""
API schemas for subscription management.

Request and response models for the management surface.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from packages.billing.models.domain.enums import CancellationReason, SubscriptionStatus
from packages.billing.models.domain.subscription import (
    PaymentFailure,
    PaymentHistoryEntry,
)


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionResponse(BaseModel):
    """Subscription details for one user."""

    id: str
    user_id: str
    status: SubscriptionStatus
    amount: int
    card_last_digits: Optional[str] = None
    initial_payment_date: datetime
    next_payment_date: datetime
    last_successful_payment: Optional[datetime] = None
    total_paid: int
    payment_history: List[PaymentHistoryEntry] = Field(default_factory=list)
    payment_failures: List[PaymentFailure] = Field(default_factory=list)
    cancellation_reason: Optional[CancellationReason] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSubscriptionResponse(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    has_scheduled_payment: bool = False


class CancelSubscriptionRequest(BaseModel):
    user_id: str
    subscription_id: str


class CancelSubscriptionResponse(BaseModel):
    success: bool
    subscription_id: str
    status: SubscriptionStatus
    cancelled_at: Optional[datetime] = None


class ChargeNowRequest(BaseModel):
    user_id: str
    subscription_id: str
    amount: Optional[int] = Field(
        default=None, gt=0, description="Override amount in major units"
    )


class ChargeNowResponse(BaseModel):
    success: bool
    payment_id: str
    order_id: str
    status: Optional[str] = None
    amount: int


# ============================================================================
# Admin Schemas
# ============================================================================


class AdminSubscriptionItem(SubscriptionResponse):
    days_until_payment: int
    has_scheduled_job: bool


class AdminSubscriptionListResponse(BaseModel):
    count: int
    scheduled_jobs: int
    subscriptions: List[AdminSubscriptionItem]

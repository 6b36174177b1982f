"""
Domain models for charge attempts and gateway exchanges.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ChargeIntent(BaseModel):
    """Result of creating a charge with the gateway (Init)."""

    payment_id: str
    payment_url: Optional[str] = None
    status: Optional[str] = None


class SettlementResult(BaseModel):
    """Result of settling a charge against a rebill token (Charge)."""

    success: bool
    status: Optional[str] = None
    payment_id: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


class ChargeState(BaseModel):
    """Current state of a gateway payment (GetState)."""

    payment_id: str
    status: str
    success: bool = True
    order_id: Optional[str] = None
    amount: Optional[int] = None  # minor units
    rebill_id: Optional[str] = None
    card_id: Optional[str] = None


class ChargeResult(BaseModel):
    """Outcome of one Charge Executor run."""

    success: bool
    payment_id: str
    status: Optional[str] = None
    order_id: str
    amount: int


class ChargeAttempt(BaseModel):
    id: int
    order_id: str
    payment_id: Optional[str] = None
    rebill_id: str
    user_id: str
    subscription_id: str
    amount: int
    status: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    finished_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChargeAttemptCreateModel(BaseModel):
    order_id: str
    payment_id: Optional[str] = None
    rebill_id: str
    user_id: str
    subscription_id: str
    amount: int
    status: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    finished_at: datetime

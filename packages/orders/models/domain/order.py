from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


class OrderType(str, Enum):
    ONE_TIME = "one_time"
    RECURRENT = "recurrent"  # first payment that binds a card
    RECURRENT_AUTO = "recurrent_auto"  # scheduled charge against a rebill token


INITIATED_STATUS = "INITIATED"


class Order(BaseModel):
    id: str
    user_id: str
    gateway_order_id: str
    order_type: OrderType
    amount: int
    description: Optional[str] = None
    payment_id: Optional[str] = None
    payment_url: Optional[str] = None
    status: str
    success: Optional[bool] = None
    rebill_id: Optional[str] = None
    card_id: Optional[str] = None
    card_last_digits: Optional[str] = None
    customer_key: Optional[str] = None
    last_notification: Optional[Dict[str, Any]] = None
    finished_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderCreateModel(BaseModel):
    """Model for creating a new order."""

    id: str
    user_id: str
    gateway_order_id: str
    order_type: OrderType
    amount: int
    description: Optional[str] = None
    payment_id: Optional[str] = None
    payment_url: Optional[str] = None
    status: str = INITIATED_STATUS
    success: Optional[bool] = None
    rebill_id: Optional[str] = None
    customer_key: Optional[str] = None
    finished_at: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)


class OrderPaymentUpdateModel(BaseModel):
    """Payment fields refreshed from a notification or a state query."""

    payment_id: Optional[str] = None
    status: Optional[str] = None
    success: Optional[bool] = None
    amount: Optional[int] = None
    rebill_id: Optional[str] = None
    card_id: Optional[str] = None
    card_last_digits: Optional[str] = None
    last_notification: Optional[Dict[str, Any]] = None
    finished_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderMapping(BaseModel):
    gateway_order_id: str
    user_id: str
    internal_order_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderRoute(BaseModel):
    """Where a gateway notification belongs."""

    user_id: str
    internal_order_id: str

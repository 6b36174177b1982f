from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


class ProcessedNotification(BaseModel):
    key: str
    payment_id: str
    status: str
    processed_at: datetime
    payload: Dict[str, Any]

    model_config = ConfigDict(from_attributes=True)


class PendingNotification(BaseModel):
    id: int
    gateway_order_id: Optional[str] = None
    payment_id: str
    status: str
    rebill_id: Optional[str] = None
    email: Optional[str] = None
    payload: Dict[str, Any]
    processed: bool = False
    processed_user_id: Optional[str] = None
    received_at: datetime
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PendingNotificationCreateModel(BaseModel):
    gateway_order_id: Optional[str] = None
    payment_id: str
    status: str
    rebill_id: Optional[str] = None
    email: Optional[str] = None
    payload: Dict[str, Any]
    received_at: datetime


class WebhookError(BaseModel):
    id: int
    error: str
    payment_id: Optional[str] = None
    notification_key: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WebhookErrorCreateModel(BaseModel):
    error: str
    payment_id: Optional[str] = None
    notification_key: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

"""
API schemas for payment initiation.
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class PaymentInitRequest(BaseModel):
    user_id: str
    order_id: str
    amount: int = Field(..., gt=0, description="Amount in major currency units")
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    recurrent: bool = False


class PaymentInitResponse(BaseModel):
    payment_id: str
    payment_url: Optional[str] = None
    gateway_order_id: str
    order_id: str


class PaymentCheckRequest(BaseModel):
    payment_id: str
    order_id: Optional[str] = None


class PaymentCheckResponse(BaseModel):
    payment_id: str
    status: str
    success: bool
    amount: Optional[int] = Field(None, description="Amount in minor units")
    rebill_id: Optional[str] = None
    card_id: Optional[str] = None

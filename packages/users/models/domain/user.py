from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr


class User(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreateModel(BaseModel):
    """Model for creating a new user."""

    id: str
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None

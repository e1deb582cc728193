"""
User and token schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from freshbasket.app.models.enums import UserRole
from freshbasket.app.schemas.base import WireModel


class UserCreate(WireModel):
    """
    Schema for creating a user from the admin panel.

    ADMIN accounts are provisioned out of band and cannot be created here.
    """
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole = Field(default=UserRole.AGENT)


class UserResponse(WireModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    completed_orders: int
    created_at: datetime


class TokenRequest(WireModel):
    user_id: int


class TokenResponse(WireModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: UserRole

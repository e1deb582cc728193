"""
Order schemas for customers, agents and admins.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from freshbasket.app.models.enums import OrderStatus
from freshbasket.app.schemas.base import WireModel
from freshbasket.app.schemas.tracking import LocationPoint


class CustomerDetails(WireModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=10, max_length=20)
    address: str = Field(..., min_length=3, max_length=500)


class OrderCreate(WireModel):
    """
    Schema for placing an order.

    When no delivery coordinate is given, the customer address is geocoded.
    """
    customer: CustomerDetails
    notes: Optional[str] = Field(None, max_length=500)
    delivery_latitude: Optional[float] = Field(None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(None, ge=-180, le=180)


class OrderResponse(WireModel):
    id: int
    order_code: str
    status: OrderStatus
    customer: CustomerDetails
    notes: Optional[str] = None
    assigned_agent_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
    tracking_enabled: bool
    delivery_location: Optional[LocationPoint] = None
    created_at: datetime


class OrderListResponse(WireModel):
    success: bool = True
    count: int
    orders: List[OrderResponse]


class OrderStatusUpdate(WireModel):
    status: OrderStatus


class OrderStatusResponse(WireModel):
    success: bool = True
    message: str
    order: OrderResponse


class AssignAgentRequest(WireModel):
    agent_id: int


class AuditEntry(WireModel):
    id: int
    action: str
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    meta_data: Optional[dict] = None
    timestamp: datetime


class OrderHistoryResponse(WireModel):
    order_id: int
    order_code: str
    entries: List[AuditEntry]

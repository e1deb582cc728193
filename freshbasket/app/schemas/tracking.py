"""
Live tracking schemas.

These are the two wire messages of the tracking pipeline: the agent's
coordinate update and the snapshot a customer's viewer polls for.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from freshbasket.app.models.enums import OrderStatus
from freshbasket.app.schemas.base import WireModel


class LocationPoint(WireModel):
    """A labelled point on the map."""
    latitude: float = Field(..., allow_inf_nan=False)
    longitude: float = Field(..., allow_inf_nan=False)
    address: Optional[str] = None
    updated_at: Optional[datetime] = None


class AgentCoordinateUpdate(WireModel):
    """Body of POST /orders/agent/location."""
    order_id: str = Field(..., min_length=1, description="Order id or order code")
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    accuracy: Optional[float] = Field(None, ge=0, description="Fix accuracy in meters")


class AgentLocationResponse(WireModel):
    """Response after an agent coordinate was stored."""
    success: bool = True
    message: str = "Location updated successfully"
    agent_location: LocationPoint


class AssignedAgent(WireModel):
    name: str
    phone: Optional[str] = None


class TrackingSnapshot(WireModel):
    """
    Snapshot returned by GET /orders/{order_id}/track.

    agent_location is present exactly when tracking_enabled is true.
    """
    order_id: str
    status: OrderStatus
    tracking_enabled: bool = False
    store_location: Optional[LocationPoint] = None
    agent_location: Optional[LocationPoint] = None
    delivery_location: Optional[LocationPoint] = None
    assigned_agent: Optional[AssignedAgent] = None
    distance_remaining_km: Optional[float] = None

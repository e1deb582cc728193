"""
Agent location storage and tracking snapshots.

The order row holds exactly one agent coordinate. Publishes overwrite it,
so delivery order of updates does not matter: the last write processed wins.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freshbasket.app.core.exceptions import OrderClosedError
from freshbasket.app.models.enums import CLOSED_STATUSES
from freshbasket.app.models.order import Order
from freshbasket.app.models.user import User
from freshbasket.app.schemas.tracking import (
    AgentCoordinateUpdate, AssignedAgent, LocationPoint, TrackingSnapshot
)
from freshbasket.app.services.geocoding import store_location
from freshbasket.app.services.order_service import get_agent_order
from freshbasket.tracking.geometry import format_coordinates, haversine_km

logger = logging.getLogger("freshbasket.tracking")


async def record_agent_location(
    db: AsyncSession, agent_id: int, update: AgentCoordinateUpdate
) -> LocationPoint:
    """
    Overwrite the agent coordinate of an order.

    Raises:
        OrderNotAssignedError: order missing or assigned to someone else
        OrderClosedError: order already delivered or cancelled
    """
    order = await get_agent_order(db, update.order_id, agent_id)

    if order.status in CLOSED_STATUSES:
        raise OrderClosedError("update location", order.status.value)

    order.agent_latitude = update.latitude
    order.agent_longitude = update.longitude
    order.agent_accuracy_meters = update.accuracy
    order.agent_location_updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(order)

    logger.debug(
        "Agent %s at %.5f,%.5f for order %s",
        agent_id, update.latitude, update.longitude, order.order_code
    )
    return agent_location_point(order)


def agent_location_point(order: Order) -> LocationPoint:
    point = LocationPoint(
        latitude=order.agent_latitude,
        longitude=order.agent_longitude,
        updated_at=order.agent_location_updated_at,
    )
    point.address = format_coordinates(point)
    return point


async def build_snapshot(db: AsyncSession, order: Order) -> TrackingSnapshot:
    """Assemble the public tracking view of an order."""
    if order.store_latitude is not None and order.store_longitude is not None:
        store = LocationPoint(
            latitude=order.store_latitude,
            longitude=order.store_longitude,
            address=order.store_address,
        )
    else:
        store = store_location()

    delivery = None
    if order.delivery_latitude is not None and order.delivery_longitude is not None:
        delivery = LocationPoint(
            latitude=order.delivery_latitude,
            longitude=order.delivery_longitude,
            address=order.delivery_address,
        )

    assigned_agent = None
    if order.assigned_agent_id is not None:
        result = await db.execute(select(User).where(User.id == order.assigned_agent_id))
        agent_user = result.scalar_one_or_none()
        if agent_user is not None:
            assigned_agent = AssignedAgent(name=agent_user.name, phone=agent_user.phone)

    tracking_enabled = order.tracking_enabled
    agent = agent_location_point(order) if tracking_enabled else None

    distance = None
    if agent is not None and delivery is not None:
        distance = round(haversine_km(agent, delivery), 2)

    return TrackingSnapshot(
        order_id=order.order_code,
        status=order.status,
        tracking_enabled=tracking_enabled,
        store_location=store,
        agent_location=agent,
        delivery_location=delivery,
        assigned_agent=assigned_agent,
        distance_remaining_km=distance,
    )

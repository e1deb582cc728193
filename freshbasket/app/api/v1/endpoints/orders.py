"""
Order and Live Tracking API Endpoints.

Customers place orders and poll tracking snapshots; delivery agents publish
their coordinate for the order they are carrying.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from freshbasket.app.db.session import get_db
from freshbasket.app.core.guards import require_agent, require_customer
from freshbasket.app.schemas.order import OrderCreate, OrderResponse
from freshbasket.app.schemas.tracking import (
    AgentCoordinateUpdate, AgentLocationResponse, TrackingSnapshot
)
from freshbasket.app.services.audit import log_event, AuditAction
from freshbasket.app.services.order_service import (
    create_order, get_order_or_404, order_to_response
)
from freshbasket.app.services.tracking_service import build_snapshot, record_agent_location

router = APIRouter(prefix="/orders", tags=["Orders - Live Tracking"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    order_data: OrderCreate,
    current_user: dict = Depends(require_customer),
    db: AsyncSession = Depends(get_db)
):
    """
    Place an order (Customer only).

    The delivery address is geocoded unless coordinates are supplied.
    """
    order = await create_order(db, order_data, customer_id=current_user["user_id"])

    await log_event(
        db=db,
        action=AuditAction.ORDER_CREATED,
        actor_id=current_user["user_id"],
        actor_email=current_user.get("sub"),
        order_id=order.id,
        metadata={"order_code": order.order_code},
    )

    return order_to_response(order)


@router.post("/agent/location", response_model=AgentLocationResponse)
async def update_agent_location(
    update: AgentCoordinateUpdate,
    current_user: dict = Depends(require_agent),
    db: AsyncSession = Depends(get_db)
):
    """
    Publish the agent's current coordinate (Agent only).

    Overwrites the previous coordinate for the order. Not audited: agents
    publish every few seconds.
    """
    location = await record_agent_location(db, current_user["user_id"], update)
    return AgentLocationResponse(agent_location=location)


@router.get("/{order_id}/track", response_model=TrackingSnapshot)
async def get_order_tracking(
    order_id: str = Path(..., description="Order id or order code"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the live tracking snapshot of an order (public).

    Returns store, delivery and, once the agent has published, agent
    locations. trackingEnabled is false until then.
    """
    order = await get_order_or_404(db, order_id)
    return await build_snapshot(db, order)

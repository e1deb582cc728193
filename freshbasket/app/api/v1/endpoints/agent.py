"""
Delivery Agent API Endpoints.

Agents list the orders assigned to them and move them through
Processing → Shipped → Delivered.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from freshbasket.app.db.session import get_db
from freshbasket.app.core.guards import require_agent
from freshbasket.app.schemas.order import (
    OrderListResponse, OrderStatusUpdate, OrderStatusResponse
)
from freshbasket.app.services.audit import log_event, AuditAction
from freshbasket.app.services.order_service import (
    list_orders, order_to_response, update_delivery_status
)

router = APIRouter(prefix="/agent", tags=["Delivery Agent"])


@router.get("/orders", response_model=OrderListResponse)
async def get_agent_orders(
    current_user: dict = Depends(require_agent),
    db: AsyncSession = Depends(get_db)
):
    """List orders assigned to the calling agent, newest first."""
    orders = await list_orders(db, agent_id=current_user["user_id"])
    return OrderListResponse(
        count=len(orders),
        orders=[order_to_response(o) for o in orders]
    )


@router.patch("/orders/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    payload: OrderStatusUpdate,
    order_id: str = Path(..., description="Order id or order code"),
    current_user: dict = Depends(require_agent),
    db: AsyncSession = Depends(get_db)
):
    """
    Update the delivery status of an assigned order (Agent only).

    Allowed: Processing, Shipped, Delivered.
    """
    order = await update_delivery_status(db, order_id, current_user["user_id"], payload.status)

    await log_event(
        db=db,
        action=AuditAction.ORDER_STATUS_CHANGED,
        actor_id=current_user["user_id"],
        actor_email=current_user.get("sub"),
        order_id=order.id,
        metadata={"status": order.status.value},
    )

    return OrderStatusResponse(
        message=f"Order status updated to {order.status.value}",
        order=order_to_response(order),
    )

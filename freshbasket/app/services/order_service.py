"""
Order lifecycle operations shared by the customer, agent and admin routers.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from freshbasket.app.core.exceptions import (
    ResourceNotFoundError,
    OrderNotAssignedError,
    OrderClosedError,
    InvalidStatusError,
    InvalidAssigneeError,
)
from freshbasket.app.models.enums import (
    OrderStatus, UserRole, CLOSED_STATUSES, AGENT_SETTABLE_STATUSES
)
from freshbasket.app.models.order import Order
from freshbasket.app.models.user import User
from freshbasket.app.schemas.order import CustomerDetails, OrderCreate, OrderResponse
from freshbasket.app.schemas.tracking import LocationPoint
from freshbasket.app.services.geocoding import geocode_address, store_location


def generate_order_code() -> str:
    return f"ORD-{uuid.uuid4().hex[:8].upper()}"


def order_to_response(order: Order) -> OrderResponse:
    delivery = None
    if order.delivery_latitude is not None and order.delivery_longitude is not None:
        delivery = LocationPoint(
            latitude=order.delivery_latitude,
            longitude=order.delivery_longitude,
            address=order.delivery_address,
        )
    return OrderResponse(
        id=order.id,
        order_code=order.order_code,
        status=order.status,
        customer=CustomerDetails(
            name=order.customer_name,
            email=order.customer_email,
            phone=order.customer_phone,
            address=order.customer_address,
        ),
        notes=order.notes,
        assigned_agent_id=order.assigned_agent_id,
        assigned_at=order.assigned_at,
        tracking_enabled=order.tracking_enabled,
        delivery_location=delivery,
        created_at=order.created_at,
    )


async def find_order(db: AsyncSession, order_ref: str) -> Optional[Order]:
    """Look an order up by numeric id or by order code."""
    conditions = [Order.order_code == order_ref]
    if str(order_ref).isdigit():
        conditions.append(Order.id == int(order_ref))
    result = await db.execute(select(Order).where(or_(*conditions)))
    return result.scalars().first()


async def get_order_or_404(db: AsyncSession, order_ref: str) -> Order:
    order = await find_order(db, order_ref)
    if order is None:
        raise ResourceNotFoundError("Order", order_ref)
    return order


async def get_agent_order(db: AsyncSession, order_ref: str, agent_id: int) -> Order:
    """An order assigned to the given agent, or OrderNotAssignedError."""
    order = await find_order(db, order_ref)
    if order is None or order.assigned_agent_id != agent_id:
        raise OrderNotAssignedError(order_ref)
    return order


async def create_order(db: AsyncSession, data: OrderCreate, customer_id: Optional[int] = None) -> Order:
    """
    Place an order.

    The delivery coordinate comes from the request when given, otherwise
    from geocoding the customer address.
    """
    if data.delivery_latitude is not None and data.delivery_longitude is not None:
        delivery = LocationPoint(
            latitude=data.delivery_latitude,
            longitude=data.delivery_longitude,
            address=data.customer.address,
        )
    else:
        delivery = await geocode_address(data.customer.address)

    store = store_location()
    order = Order(
        order_code=generate_order_code(),
        customer_id=customer_id,
        customer_name=data.customer.name,
        customer_email=data.customer.email,
        customer_phone=data.customer.phone,
        customer_address=data.customer.address,
        notes=data.notes,
        status=OrderStatus.PENDING,
        store_latitude=store.latitude,
        store_longitude=store.longitude,
        store_address=store.address,
        delivery_latitude=delivery.latitude,
        delivery_longitude=delivery.longitude,
        delivery_address=delivery.address,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    return order


async def list_orders(db: AsyncSession, agent_id: Optional[int] = None) -> List[Order]:
    """All orders, or those assigned to one agent; newest first."""
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if agent_id is not None:
        query = query.where(Order.assigned_agent_id == agent_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def assign_agent(db: AsyncSession, order_ref: str, agent_id: int) -> Order:
    """
    Assign a delivery agent to an order.

    Reassignment clears the previous agent's last coordinate, so tracking
    stays disabled until the new agent publishes.
    """
    order = await get_order_or_404(db, order_ref)
    if order.status in CLOSED_STATUSES:
        raise OrderClosedError("assign an agent", order.status.value)

    result = await db.execute(select(User).where(User.id == agent_id))
    agent = result.scalar_one_or_none()
    if agent is None or agent.role != UserRole.AGENT or not agent.is_active:
        raise InvalidAssigneeError(agent_id)

    if order.assigned_agent_id != agent_id:
        order.agent_latitude = None
        order.agent_longitude = None
        order.agent_accuracy_meters = None
        order.agent_location_updated_at = None

    order.assigned_agent_id = agent_id
    order.assigned_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(order)
    return order


async def update_delivery_status(
    db: AsyncSession, order_ref: str, agent_id: int, new_status: OrderStatus
) -> Order:
    """Agent-driven status change; Delivered bumps the agent's completed count."""
    if new_status not in AGENT_SETTABLE_STATUSES:
        raise InvalidStatusError(new_status.value, [s.value for s in AGENT_SETTABLE_STATUSES])

    order = await get_agent_order(db, order_ref, agent_id)
    if order.status in CLOSED_STATUSES:
        raise OrderClosedError("change status", order.status.value)

    order.status = new_status

    if new_status == OrderStatus.DELIVERED:
        result = await db.execute(select(User).where(User.id == agent_id))
        agent = result.scalar_one()
        agent.completed_orders = (agent.completed_orders or 0) + 1

    await db.commit()
    await db.refresh(order)
    return order

"""
Admin API Endpoints.

Creating delivery agents and customers, listing orders, assigning agents
and reading an order's audit trail.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freshbasket.app.db.session import get_db
from freshbasket.app.core.guards import require_admin
from freshbasket.app.models.enums import UserRole
from freshbasket.app.models.user import User
from freshbasket.app.schemas.auth import UserCreate, UserResponse
from freshbasket.app.schemas.order import (
    AssignAgentRequest, AuditEntry, OrderHistoryResponse, OrderListResponse, OrderResponse
)
from freshbasket.app.services.audit import log_event, get_order_history, AuditAction
from freshbasket.app.services.order_service import (
    assign_agent, get_order_or_404, list_orders, order_to_response
)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a delivery agent or customer account."""
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users cannot be created via API"
        )

    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    user = User(
        name=user_data.name,
        email=user_data.email,
        phone=user_data.phone,
        role=user_data.role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    await log_event(
        db=db,
        action=AuditAction.USER_CREATED,
        actor_id=admin["user_id"],
        actor_email=admin.get("sub"),
        metadata={"user_id": user.id, "role": user.role.value},
    )

    return UserResponse.model_validate(user)


@router.get("/orders", response_model=OrderListResponse)
async def get_all_orders(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    orders = await list_orders(db)
    return OrderListResponse(count=len(orders), orders=[order_to_response(o) for o in orders])


@router.post("/orders/{order_id}/assign", response_model=OrderResponse)
async def assign_order(
    payload: AssignAgentRequest,
    order_id: str = Path(..., description="Order id or order code"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign a delivery agent to an order.

    Delivered and cancelled orders cannot be assigned.
    """
    order = await assign_agent(db, order_id, payload.agent_id)

    await log_event(
        db=db,
        action=AuditAction.AGENT_ASSIGNED,
        actor_id=admin["user_id"],
        actor_email=admin.get("sub"),
        order_id=order.id,
        metadata={"agent_id": payload.agent_id},
    )

    return order_to_response(order)


@router.get("/orders/{order_id}/history", response_model=OrderHistoryResponse)
async def get_order_audit_history(
    order_id: str = Path(..., description="Order id or order code"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail of an order, newest first."""
    order = await get_order_or_404(db, order_id)
    entries = await get_order_history(db, order.id)
    return OrderHistoryResponse(
        order_id=order.id,
        order_code=order.order_code,
        entries=[AuditEntry.model_validate(e) for e in entries],
    )

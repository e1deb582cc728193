"""
Integration tests for order management.

Admin creates agents and assigns orders; agents list their orders and
move them through Processing → Shipped → Delivered.
"""

import pytest
from sqlalchemy import select

from freshbasket.app.models.audit_log import AuditLog
from freshbasket.app.models.enums import UserRole
from freshbasket.app.models.user import User
from freshbasket.app.services.audit import AuditAction, get_order_history


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, name="Store Admin")


@pytest.mark.asyncio
async def test_admin_creates_agent(client, admin, auth_headers):
    response = await client.post(
        "/v1/admin/users",
        json={"name": "Ravi Kumar", "email": "ravi@freshbasket.in", "phone": "9000012345", "role": "AGENT"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "AGENT"
    assert data["isActive"] is True
    assert data["completedOrders"] == 0


@pytest.mark.asyncio
async def test_admin_cannot_create_admin(client, admin, auth_headers):
    response = await client.post(
        "/v1/admin/users",
        json={"name": "Other Admin", "email": "boss@freshbasket.in", "role": "ADMIN"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_email_conflict(client, admin, auth_headers):
    body = {"name": "Ravi", "email": "ravi@freshbasket.in", "role": "AGENT"}
    assert (await client.post("/v1/admin/users", json=body, headers=auth_headers(admin))).status_code == 201

    response = await client.post("/v1/admin/users", json=body, headers=auth_headers(admin))
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT"


@pytest.mark.asyncio
async def test_agent_cannot_use_admin_endpoints(client, make_user, auth_headers):
    agent = await make_user(UserRole.AGENT)
    response = await client.get("/v1/admin/orders", headers=auth_headers(agent))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_assign_agent(client, db_session, admin, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    order = await make_order()

    response = await client.post(
        f"/v1/admin/orders/{order.order_code}/assign",
        json={"agentId": agent.id},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["assignedAgentId"] == agent.id
    assert data["assignedAt"] is not None
    assert data["trackingEnabled"] is False

    history = await get_order_history(db_session, order.id)
    assert [entry.action for entry in history] == [AuditAction.AGENT_ASSIGNED]


@pytest.mark.asyncio
async def test_assign_rejects_non_agent(client, admin, make_user, make_order, auth_headers):
    customer = await make_user(UserRole.CUSTOMER)
    order = await make_order(customer)

    response = await client.post(
        f"/v1/admin/orders/{order.id}/assign", json={"agentId": customer.id}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_AGENT_001"


@pytest.mark.asyncio
async def test_assign_rejects_delivered_order(client, admin, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    order = await make_order()
    await client.post(f"/v1/admin/orders/{order.id}/assign", json={"agentId": agent.id}, headers=auth_headers(admin))
    await client.patch(
        f"/v1/agent/orders/{order.id}/status", json={"status": "Delivered"}, headers=auth_headers(agent)
    )

    response = await client.post(
        f"/v1/admin/orders/{order.id}/assign", json={"agentId": agent.id}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot assign an agent for delivered orders"


@pytest.mark.asyncio
async def test_agent_lists_only_own_orders_newest_first(client, admin, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    other = await make_user(UserRole.AGENT)
    first = await make_order()
    second = await make_order()
    foreign = await make_order()

    for order, assignee in ((first, agent), (second, agent), (foreign, other)):
        await client.post(
            f"/v1/admin/orders/{order.id}/assign", json={"agentId": assignee.id}, headers=auth_headers(admin)
        )

    response = await client.get("/v1/agent/orders", headers=auth_headers(agent))

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [o["orderCode"] for o in data["orders"]] == [second.order_code, first.order_code]

    all_orders = (await client.get("/v1/admin/orders", headers=auth_headers(admin))).json()
    assert all_orders["count"] == 3


@pytest.mark.asyncio
async def test_agent_moves_order_to_delivered(client, db_session, admin, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    order = await make_order()
    await client.post(f"/v1/admin/orders/{order.id}/assign", json={"agentId": agent.id}, headers=auth_headers(admin))

    for status_value in ("Processing", "Shipped", "Delivered"):
        response = await client.patch(
            f"/v1/agent/orders/{order.order_code}/status",
            json={"status": status_value},
            headers=auth_headers(agent),
        )
        assert response.status_code == 200
        assert response.json()["order"]["status"] == status_value
        assert response.json()["message"] == f"Order status updated to {status_value}"

    result = await db_session.execute(select(User).where(User.id == agent.id))
    assert result.scalar_one().completed_orders == 1

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.action == AuditAction.ORDER_STATUS_CHANGED)
    )
    assert len(result.scalars().all()) == 3


@pytest.mark.asyncio
async def test_agent_cannot_cancel(client, admin, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    order = await make_order()
    await client.post(f"/v1/admin/orders/{order.id}/assign", json={"agentId": agent.id}, headers=auth_headers(admin))

    response = await client.patch(
        f"/v1/agent/orders/{order.id}/status", json={"status": "Cancelled"}, headers=auth_headers(agent)
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_ORDER_003"


@pytest.mark.asyncio
async def test_agent_cannot_update_unassigned_order(client, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    order = await make_order()

    response = await client.patch(
        f"/v1/agent/orders/{order.id}/status", json={"status": "Shipped"}, headers=auth_headers(agent)
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_ORDER_001"


@pytest.mark.asyncio
async def test_debug_token_endpoint(client, make_user):
    agent = await make_user(UserRole.AGENT)

    response = await client.post("/v1/auth/token", json={"userId": agent.id})

    assert response.status_code == 200
    data = response.json()
    assert data["tokenType"] == "bearer"
    assert data["role"] == "AGENT"

    orders = await client.get("/v1/agent/orders", headers={"Authorization": f"Bearer {data['accessToken']}"})
    assert orders.status_code == 200


@pytest.mark.asyncio
async def test_order_history_lists_audit_trail(client, admin, make_user, make_order, auth_headers):
    agent = await make_user(UserRole.AGENT)
    order = await make_order()
    await client.post(f"/v1/admin/orders/{order.id}/assign", json={"agentId": agent.id}, headers=auth_headers(admin))
    await client.patch(
        f"/v1/agent/orders/{order.id}/status", json={"status": "Shipped"}, headers=auth_headers(agent)
    )

    response = await client.get(f"/v1/admin/orders/{order.order_code}/history", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()
    assert data["orderCode"] == order.order_code
    actions = {entry["action"] for entry in data["entries"]}
    assert actions == {AuditAction.AGENT_ASSIGNED, AuditAction.ORDER_STATUS_CHANGED}
    shipped = next(e for e in data["entries"] if e["action"] == AuditAction.ORDER_STATUS_CHANGED)
    assert shipped["metaData"] == {"status": "Shipped"}
    assert shipped["actorId"] == agent.id

"""
End-to-end: agent dashboard publishes through the API, customer viewer
sees the agent on the map.
"""

import pytest

from freshbasket.app.models.enums import OrderStatus, UserRole
from freshbasket.app.models.order import Order
from freshbasket.app.services.order_service import assign_agent
from freshbasket.tracking.errors import RequestRejected
from freshbasket.tracking.geolocation import PositionFix, PositionOptions, ScriptedGeolocation
from freshbasket.tracking.geometry import LatLng, MarkerKind
from freshbasket.tracking.publisher import LocationPublisher, PublisherState
from freshbasket.tracking.session import RedisSessionStore
from freshbasket.tracking.viewer import TrackingViewer, ViewState


@pytest.fixture
async def ord_100(session_factory, make_user, make_order):
    """Order ORD-100 assigned to an agent, not yet shipped."""
    customer = await make_user(UserRole.CUSTOMER, name="Priya Raman")
    agent = await make_user(UserRole.AGENT, name="Ravi Kumar")
    order = await make_order(customer)
    async with session_factory() as session:
        row = await session.get(Order, order.id)
        row.order_code = "ORD-100"
        await session.commit()
        await assign_agent(session, "ORD-100", agent.id)
    return agent


@pytest.mark.asyncio
async def test_agent_shares_and_customer_sees_marker(ord_100, tracking_client_factory, make_token, mock_redis):
    agent_api = tracking_client_factory(token=make_token(ord_100))
    customer_api = tracking_client_factory()

    await agent_api.update_order_status("ORD-100", OrderStatus.SHIPPED)

    publisher = LocationPublisher(
        geolocation=ScriptedGeolocation(fixes=[PositionFix(9.1700, 77.8700, accuracy_meters=10.0)]),
        client=agent_api,
        store=RedisSessionStore(mock_redis, key="test:sharing"),
        options=PositionOptions(timeout=0.5),
        heartbeat_interval=60,
    )
    await publisher.start("ORD-100")
    assert await publisher.wait_until_settled(2.0) is PublisherState.PUBLISHING
    assert (publisher.last_coordinate.latitude, publisher.last_coordinate.longitude) == (9.17, 77.87)
    assert publisher.published_count == 1
    assert publisher.failed_publishes == 0

    async with TrackingViewer(customer_api, "ORD-100", poll_interval=60) as viewer:
        view = viewer.render()

    assert view.state is ViewState.MAP
    assert view.status is OrderStatus.SHIPPED
    assert view.agent_name == "Ravi Kumar"
    assert view.map.marker(MarkerKind.AGENT).position == LatLng(9.17, 77.87)
    assert view.map.center == LatLng(9.17, 77.87)
    assert len(view.map.route) == 3

    await publisher.stop()


@pytest.mark.asyncio
async def test_viewer_shows_placeholder_before_first_publish(ord_100, tracking_client_factory):
    customer_api = tracking_client_factory()

    async with TrackingViewer(customer_api, "ORD-100", poll_interval=60) as viewer:
        view = viewer.render()

    assert view.state is ViewState.UNAVAILABLE
    assert view.status is OrderStatus.PENDING


@pytest.mark.asyncio
async def test_client_surfaces_backend_rejection(ord_100, tracking_client_factory, make_user, make_token):
    stranger = await make_user(UserRole.AGENT)
    api = tracking_client_factory(token=make_token(stranger))

    with pytest.raises(RequestRejected) as exc_info:
        await api.publish_location("ORD-100", 9.17, 77.87)

    assert exc_info.value.status_code == 404
    assert exc_info.value.remote_error_code == "ERR_ORDER_001"
    assert exc_info.value.user_message == "Order not found or not assigned to you"


@pytest.mark.asyncio
async def test_client_lists_orders_and_logs_out(ord_100, tracking_client_factory, make_token):
    api = tracking_client_factory(token=make_token(ord_100))

    orders = await api.list_agent_orders()
    assert [o.order_code for o in orders] == ["ORD-100"]

    await api.logout()
    assert api.token is None

"""
Delivery agent dashboard.

Keeps the agent's order list fresh, owns the location publisher, and makes
sure sharing stops when the tracked order is finished or the agent logs out.
"""

import asyncio
import contextlib
import logging
from typing import List, Optional

from freshbasket.app.core.config import settings
from freshbasket.app.models.enums import OrderStatus
from freshbasket.app.schemas.order import OrderResponse
from freshbasket.tracking.client import FreshBasketClient
from freshbasket.tracking.errors import RequestRejected, TrackingError
from freshbasket.tracking.geometry import LatLng, MapView, build_map_view
from freshbasket.tracking.publisher import RESUMABLE_STATUSES, LocationPublisher

logger = logging.getLogger("freshbasket.tracking.dashboard")


class AgentDashboard:
    """
    Args:
        client: API client with the agent's token
        publisher: The single publisher for this agent
        refresh_interval: Seconds between order list refreshes
    """

    def __init__(
        self,
        client: FreshBasketClient,
        publisher: LocationPublisher,
        refresh_interval: float = settings.dashboard_refresh_interval_seconds,
    ):
        self.client = client
        self.publisher = publisher
        self.refresh_interval = refresh_interval
        self.orders: List[OrderResponse] = []
        self.error: Optional[TrackingError] = None
        self.logged_out = False
        self._refresh_task: Optional[asyncio.Task] = None

    async def open(self) -> "AgentDashboard":
        """Load orders, resume any persisted sharing session, start refreshing."""
        await self.refresh_orders()
        if self.error is None:
            await self.publisher.restore(self.orders)
        if self._refresh_task is None and not self.logged_out:
            self._refresh_task = asyncio.create_task(self._refresh_loop(), name="agent-dashboard-refresh")
        return self

    async def close(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> "AgentDashboard":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _refresh_loop(self) -> None:
        while not self.logged_out:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh_orders()

    async def refresh_orders(self) -> List[OrderResponse]:
        try:
            self.orders = await self.client.list_agent_orders()
            self.error = None
        except RequestRejected as e:
            self.error = e
            if e.unauthorized:
                logger.warning("Session expired, logging out")
                await self._end_session(revoke=False)
        except TrackingError as e:
            logger.warning("Failed to load orders: %s", e.message)
            self.error = e
        return self.orders

    def find_order(self, order_id: str) -> Optional[OrderResponse]:
        order_id = str(order_id)
        return next(
            (o for o in self.orders if str(o.id) == order_id or o.order_code == order_id),
            None,
        )

    async def start_sharing(self, order_id: str):
        return await self.publisher.start(order_id)

    async def stop_sharing(self) -> None:
        await self.publisher.stop()

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        """
        Move an order along; sharing for it stops once it leaves
        Processing/Shipped.

        Raises:
            TrackingError: the backend refused or could not be reached
        """
        order = await self.client.update_order_status(order_id, status)
        tracked = self.publisher.order_id
        if (
            tracked is not None
            and tracked in (str(order.id), order.order_code)
            and order.status not in RESUMABLE_STATUSES
        ):
            logger.info("Order %s is %s, stopping location sharing", tracked, order.status.value)
            await self.publisher.stop()
        await self.refresh_orders()
        return order

    async def logout(self) -> None:
        """Force-stop sharing, then revoke the token."""
        await self._end_session(revoke=True)

    async def _end_session(self, revoke: bool) -> None:
        self.logged_out = True
        await self.publisher.logout()
        if self._refresh_task is asyncio.current_task():
            # the loop exits on its own once logged_out is set
            self._refresh_task = None
        else:
            await self.close()
        if revoke:
            try:
                await self.client.logout()
            except TrackingError as e:
                logger.warning("Token revocation failed: %s", e.message)
        else:
            self.client.token = None

    def map_view(self, order: Optional[OrderResponse] = None) -> MapView:
        """
        The agent's own map: store, the agent's current fix, and the
        selected order's destination.
        """
        store = LatLng(settings.store_latitude, settings.store_longitude)
        return build_map_view(
            store=store,
            agent=self.publisher.last_coordinate,
            destination=order.delivery_location if order is not None else None,
            zoom=settings.map_zoom,
            default_center=store,
            agent_label="You",
        )

"""
Customer Tracking Viewer.

Read-only live view of an order's store → agent → destination chain. The
viewer fetches a snapshot when opened and then polls while the order is
moving; closing it (or leaving its ``async with`` block) cancels the poll.
A failed fetch keeps the last snapshot on screen and offers a retry.
"""

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from freshbasket.app.core.config import settings
from freshbasket.app.models.enums import IN_MOTION_STATUSES, OrderStatus
from freshbasket.app.schemas.tracking import TrackingSnapshot
from freshbasket.tracking.client import FreshBasketClient
from freshbasket.tracking.errors import TrackingError
from freshbasket.tracking.geometry import LatLng, MapView, build_map_view

logger = logging.getLogger("freshbasket.tracking.viewer")

TRACKING_UNAVAILABLE_MESSAGE = (
    "Live tracking is not available yet. It starts once a delivery agent "
    "is assigned and sets off with your order."
)


class ViewState(str, enum.Enum):
    LOADING = "loading"
    ERROR = "error"
    UNAVAILABLE = "unavailable"
    MAP = "map"


@dataclass(frozen=True)
class TrackingView:
    """What the screen should show right now."""
    state: ViewState
    map: Optional[MapView] = None
    placeholder: Optional[str] = None
    error_message: Optional[str] = None
    can_retry: bool = False
    status: Optional[OrderStatus] = None
    agent_name: Optional[str] = None
    distance_remaining_km: Optional[float] = None


class TrackingViewer:
    """
    Polls one order's tracking snapshot.

    Args:
        client: API client; no token needed
        order_id: Order id or order code
        order_status: Status known when the viewer is opened; later
            snapshots take over
        poll_interval: Seconds between automatic fetches
        auto_refresh: Initial auto-refresh setting
    """

    def __init__(
        self,
        client: FreshBasketClient,
        order_id: str,
        order_status: Optional[OrderStatus] = None,
        poll_interval: float = settings.viewer_poll_interval_seconds,
        auto_refresh: bool = True,
        zoom: int = settings.map_zoom,
    ):
        self._client = client
        self.order_id = str(order_id)
        self._status = OrderStatus(order_status) if order_status else None
        self.poll_interval = poll_interval
        self.auto_refresh = auto_refresh
        self.zoom = zoom

        self.snapshot: Optional[TrackingSnapshot] = None
        self.error: Optional[TrackingError] = None
        self.loading = False
        self.fetch_count = 0
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._poll_task is not None

    @property
    def status(self) -> Optional[OrderStatus]:
        if self.snapshot is not None:
            return self.snapshot.status
        return self._status

    @property
    def in_motion(self) -> bool:
        return self.status in IN_MOTION_STATUSES

    async def open(self) -> "TrackingViewer":
        if self._poll_task is not None:
            return self
        await self.refresh()
        self._poll_task = asyncio.create_task(self._poll(), name=f"tracking-viewer-{self.order_id}")
        return self

    async def close(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> "TrackingViewer":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh = enabled

    async def refresh(self) -> Optional[TrackingSnapshot]:
        """
        Fetch one snapshot now.

        On failure the previous snapshot stays and ``error`` is set.
        """
        self.loading = True
        self.fetch_count += 1
        try:
            self.snapshot = await self._client.fetch_tracking(self.order_id)
            self.error = None
        except TrackingError as e:
            logger.warning("Tracking fetch for order %s failed: %s", self.order_id, e.message)
            self.error = e
        finally:
            self.loading = False
        return self.snapshot

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if self.auto_refresh and self.in_motion:
                await self.refresh()

    def render(self) -> TrackingView:
        snapshot = self.snapshot
        error_message = "Failed to load tracking information" if self.error else None

        if snapshot is None:
            if self.error is not None:
                return TrackingView(ViewState.ERROR, error_message=error_message, can_retry=True)
            return TrackingView(ViewState.LOADING, status=self._status)

        common = dict(
            error_message=error_message,
            can_retry=self.error is not None,
            status=snapshot.status,
            agent_name=snapshot.assigned_agent.name if snapshot.assigned_agent else None,
            distance_remaining_km=snapshot.distance_remaining_km,
        )

        if not snapshot.tracking_enabled:
            return TrackingView(ViewState.UNAVAILABLE, placeholder=TRACKING_UNAVAILABLE_MESSAGE, **common)

        map_view = build_map_view(
            store=snapshot.store_location,
            agent=snapshot.agent_location,
            destination=snapshot.delivery_location,
            zoom=self.zoom,
            default_center=LatLng(settings.store_latitude, settings.store_longitude),
        )
        return TrackingView(ViewState.MAP, map=map_view, **common)

"""
Agent Location Publisher.

Shares a delivery agent's position for exactly one order at a time:

    IDLE ──start──▶ ACQUIRING ──first fix──▶ PUBLISHING ◀─┐
                        │                        │        │ relaxed fix
                        └──timeout──▶ DEGRADED ◀─┘ timeout│
                                          └───────────────┘
    any ──stop / logout / unrecoverable error──▶ STOPPED

A timeout is retried once with ``enable_high_accuracy=False``; a second
timeout, a denied permission or an unavailable position stops the session.
While publishing, every fix is sent to the backend and the last fix is
re-sent on a heartbeat so the server's "last seen" stays fresh.

The sharing flag and order id are persisted before the first fix, so a
restarted dashboard can pick the session up again with ``restore()``.
"""

import asyncio
import contextlib
import enum
import logging
from typing import Callable, Iterable, Optional

from freshbasket.app.core.config import settings
from freshbasket.app.models.enums import IN_MOTION_STATUSES, OrderStatus
from freshbasket.tracking.client import FreshBasketClient
from freshbasket.tracking.errors import (
    AcquisitionTimeout,
    GeolocationError,
    GeolocationErrorKind,
    GeolocationUnsupported,
    PermissionDenied,
    PositionUnavailable,
    TrackingError,
)
from freshbasket.tracking.geolocation import (
    GeolocationProvider,
    PermissionState,
    PositionFix,
    PositionOptions,
    PositionWatch,
    acquire_position,
)
from freshbasket.tracking.session import (
    Coordinate,
    ErrorInfo,
    PersistedSharing,
    SessionStore,
    TrackingSession,
)

logger = logging.getLogger("freshbasket.tracking.publisher")

# Orders a persisted session may resume for after a restart
RESUMABLE_STATUSES = IN_MOTION_STATUSES


class PublisherState(str, enum.Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    PUBLISHING = "publishing"
    DEGRADED = "degraded"
    STOPPED = "stopped"


StateListener = Callable[[PublisherState, PublisherState], None]


def _matches(order, order_ref: str) -> bool:
    return str(getattr(order, "id", None)) == order_ref or getattr(order, "order_code", None) == order_ref


class LocationPublisher:
    """
    Publishes the agent's coordinates for one order.

    Args:
        geolocation: Position source
        client: API client carrying the agent's token
        store: Durable home of the sharing record
        options: Acquisition options; relaxed on timeout
        heartbeat_interval: Seconds between re-sends of the last fix
        retry_delay: Pause before the relaxed-accuracy retry
        on_state_change: Called with (old, new) on every transition
    """

    def __init__(
        self,
        geolocation: GeolocationProvider,
        client: FreshBasketClient,
        store: SessionStore,
        options: Optional[PositionOptions] = None,
        heartbeat_interval: float = settings.heartbeat_interval_seconds,
        retry_delay: float = 1.0,
        on_state_change: Optional[StateListener] = None,
    ):
        self._geolocation = geolocation
        self._client = client
        self._store = store
        self._options = options or PositionOptions()
        self._heartbeat_interval = heartbeat_interval
        self._retry_delay = retry_delay
        self._on_state_change = on_state_change

        self.state = PublisherState.IDLE
        self.session = TrackingSession()
        self.published_count = 0
        self.failed_publishes = 0

        self._lock = asyncio.Lock()
        self._settled = asyncio.Event()
        self._run_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._watch: Optional[PositionWatch] = None

    @property
    def order_id(self) -> Optional[str]:
        return self.session.order_id

    @property
    def is_active(self) -> bool:
        return self.session.is_active

    @property
    def last_coordinate(self) -> Optional[Coordinate]:
        return self.session.last_known_coordinate

    @property
    def last_error(self) -> Optional[ErrorInfo]:
        return self.session.last_error

    def _set_state(self, new_state: PublisherState) -> None:
        old_state, self.state = self.state, new_state
        if new_state in (PublisherState.PUBLISHING, PublisherState.STOPPED):
            self._settled.set()
        if old_state is new_state:
            return
        logger.info("Publisher %s -> %s (order %s)", old_state.value, new_state.value, self.order_id)
        if self._on_state_change is not None:
            self._on_state_change(old_state, new_state)

    async def wait_until_settled(self, timeout: Optional[float] = None) -> PublisherState:
        """Wait until the current session is PUBLISHING or STOPPED."""
        await asyncio.wait_for(self._settled.wait(), timeout=timeout)
        return self.state

    async def start(self, order_id: str) -> PublisherState:
        """
        Start sharing for an order.

        Any running session is shut down first. Returns once acquisition
        has been scheduled; use ``wait_until_settled`` for the outcome.
        """
        order_id = str(order_id)
        async with self._lock:
            await self._cancel_tasks()
            self._settled.clear()
            self.session = TrackingSession(order_id=order_id)

            if not self._geolocation.available:
                await self._fail(GeolocationUnsupported())
                return self.state
            if await self._geolocation.permission_state() is PermissionState.DENIED:
                await self._fail(PermissionDenied("Geolocation permission is denied"))
                return self.state

            await self._store.save(PersistedSharing(sharing_active=True, tracking_order_id=order_id))
            self.session.is_active = True
            self._set_state(PublisherState.ACQUIRING)
            self._run_task = asyncio.create_task(self._run(order_id), name=f"publisher-{order_id}")
            return self.state

    async def stop(self) -> None:
        """Stop sharing: cancel the watch and heartbeat, forget the session."""
        async with self._lock:
            await self._cancel_tasks()
            await self._store.clear()
            self.session = TrackingSession()
            self._set_state(PublisherState.STOPPED)

    async def logout(self) -> None:
        logger.info("Stopping location sharing on logout")
        await self.stop()

    async def restore(self, orders: Optional[Iterable] = None) -> PublisherState:
        """
        Reconcile the persisted record with the agent's current orders.

        Resumes sharing when the recorded order is still Processing or
        Shipped; otherwise clears the stale record and stays IDLE. When
        ``orders`` is None they are fetched; if that fails the record is
        kept for the next attempt.
        """
        record = await self._store.load()
        if record is None:
            return self.state
        if not record.sharing_active or not record.tracking_order_id:
            await self._store.clear()
            return self.state

        order_ref = record.tracking_order_id
        if self.is_active and self.order_id == order_ref:
            return self.state

        if orders is None:
            try:
                orders = await self._client.list_agent_orders()
            except TrackingError as e:
                logger.warning("Cannot check order %s for resume: %s", order_ref, e)
                return self.state

        order = next((o for o in orders if _matches(o, order_ref)), None)
        if order is not None and OrderStatus(order.status) in RESUMABLE_STATUSES:
            logger.info("Resuming location sharing for order %s", order_ref)
            return await self.start(order_ref)

        logger.info("Order %s is no longer trackable, clearing sharing record", order_ref)
        await self._store.clear()
        self.session = TrackingSession()
        self._set_state(PublisherState.IDLE)
        return self.state

    async def _run(self, order_id: str) -> None:
        options = self._options
        try:
            fix = await acquire_position(self._geolocation, options)
        except AcquisitionTimeout as e:
            self._degrade(e)
            options = options.relaxed()
            if self._retry_delay:
                await asyncio.sleep(self._retry_delay)
            try:
                fix = await acquire_position(self._geolocation, options)
            except GeolocationError as retry_error:
                await self._fail(self._exhausted(retry_error))
                return
        except GeolocationError as e:
            await self._fail(e)
            return

        await self._accept_fix(order_id, fix)
        self._heartbeat_task = asyncio.create_task(self._heartbeat(order_id), name=f"heartbeat-{order_id}")
        await self._follow(order_id, options)

    async def _follow(self, order_id: str, options: PositionOptions) -> None:
        """Consume the continuous watch; reopen it once with relaxed accuracy."""
        while True:
            self._watch = PositionWatch(self._geolocation, options).start()
            relax = False
            try:
                async for event in self._watch:
                    if isinstance(event, PositionFix):
                        await self._accept_fix(order_id, event)
                        continue
                    if event.kind is GeolocationErrorKind.TIMEOUT and options.enable_high_accuracy:
                        self._degrade(event)
                        relax = True
                        break
                    await self._fail(self._exhausted(event))
                    return
                else:
                    await self._fail(PositionUnavailable("Position stream ended"))
                    return
            finally:
                watch, self._watch = self._watch, None
                if watch is not None:
                    await watch.stop()
            if not relax:
                return
            options = options.relaxed()
            if self._retry_delay:
                await asyncio.sleep(self._retry_delay)

    async def _accept_fix(self, order_id: str, fix: PositionFix) -> None:
        coordinate = Coordinate(
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy_meters=fix.accuracy_meters,
            captured_at=fix.captured_at,
        )
        self.session.last_known_coordinate = coordinate
        self.session.last_error = None
        await self._publish(order_id, coordinate)
        self._set_state(PublisherState.PUBLISHING)

    async def _heartbeat(self, order_id: str) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            coordinate = self.session.last_known_coordinate
            if coordinate is not None:
                await self._publish(order_id, coordinate)

    async def _publish(self, order_id: str, coordinate: Coordinate) -> None:
        # A failed publish is superseded by the next fix or heartbeat
        try:
            await self._client.publish_location(
                order_id, coordinate.latitude, coordinate.longitude, coordinate.accuracy_meters
            )
        except TrackingError as e:
            self.failed_publishes += 1
            logger.warning("Location update for order %s failed: %s", order_id, e.message)
        else:
            self.published_count += 1

    def _degrade(self, error: GeolocationError) -> None:
        logger.warning("Location timeout for order %s, retrying with lower accuracy", self.order_id)
        self.session.last_error = ErrorInfo(error.kind, error.user_message)
        self._set_state(PublisherState.DEGRADED)

    @staticmethod
    def _exhausted(error: GeolocationError) -> GeolocationError:
        if error.kind is GeolocationErrorKind.TIMEOUT:
            return AcquisitionTimeout(error.message, exhausted=True)
        return error

    async def _fail(self, error: GeolocationError) -> None:
        """Unrecoverable geolocation error: stop and surface it."""
        logger.error("Location sharing for order %s stopped: %s", self.order_id, error.message)
        await self._cancel_tasks()
        await self._store.clear()
        self.session.is_active = False
        self.session.last_known_coordinate = None
        self.session.last_error = ErrorInfo(error.kind, error.user_message)
        self._set_state(PublisherState.STOPPED)

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        for attr in ("_heartbeat_task", "_run_task"):
            task = getattr(self, attr)
            if task is None or task is current:
                continue
            setattr(self, attr, None)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._watch is not None:
            watch, self._watch = self._watch, None
            await watch.stop()

"""
Geolocation acquisition.

A ``GeolocationProvider`` offers a one-shot fix and a continuous stream of
fix-or-error events. ``PositionWatch`` wraps that stream as a cancellable
subscription; the location publisher is its only owner.
"""

import abc
import asyncio
import contextlib
import dataclasses
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, List, Optional, Sequence, Union

from freshbasket.app.core.config import settings
from freshbasket.tracking.errors import AcquisitionTimeout, GeolocationError, UnknownGeolocationError

logger = logging.getLogger("freshbasket.tracking.geolocation")

# queued by the pump when the provider stream is over
_END_OF_STREAM = object()


class PermissionState(str, enum.Enum):
    GRANTED = "granted"
    PROMPT = "prompt"
    DENIED = "denied"


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout: float = settings.geolocation_timeout_seconds
    maximum_age: float = settings.geolocation_maximum_age_seconds

    def relaxed(self) -> "PositionOptions":
        return dataclasses.replace(self, enable_high_accuracy=False)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PositionFix:
    latitude: float
    longitude: float
    accuracy_meters: Optional[float] = None
    captured_at: datetime = field(default_factory=_utcnow)


PositionEvent = Union[PositionFix, GeolocationError]


class GeolocationProvider(abc.ABC):
    """Source of device positions."""

    @property
    def available(self) -> bool:
        return True

    async def permission_state(self) -> PermissionState:
        return PermissionState.PROMPT

    @abc.abstractmethod
    async def current_position(self, options: PositionOptions) -> PositionFix:
        """One fix, or raise a GeolocationError."""

    @abc.abstractmethod
    def watch(self, options: PositionOptions) -> AsyncIterator[PositionEvent]:
        """Endless stream of fixes; failures are yielded, not raised."""


async def acquire_position(provider: GeolocationProvider, options: PositionOptions) -> PositionFix:
    """
    One-shot fix bounded by ``options.timeout``.

    Raises:
        AcquisitionTimeout: no fix within the bound
        GeolocationError: any failure reported by the provider
    """
    try:
        return await asyncio.wait_for(provider.current_position(options), timeout=options.timeout)
    except asyncio.TimeoutError:
        raise AcquisitionTimeout(f"No position fix within {options.timeout:g}s")


class PositionWatch:
    """
    Cancellable subscription to a provider's position stream.

    ``start()`` opens the stream on a background task, iteration yields its
    events, ``stop()`` closes it. A stopped watch cannot be restarted; open
    a new one instead.

    Iteration ends when the provider stream ends. A stream that raises
    yields one ``UnknownGeolocationError`` before ending.
    """

    def __init__(self, provider: GeolocationProvider, options: PositionOptions):
        self.provider = provider
        self.options = options
        self._events: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PositionWatch":
        if self._stopped:
            raise RuntimeError("PositionWatch cannot be restarted")
        if self._task is None:
            self._task = asyncio.create_task(self._pump(), name="position-watch")
        return self

    async def _pump(self) -> None:
        stream = self.provider.watch(self.options)
        try:
            async for event in stream:
                await self._events.put(event)
        except Exception as e:
            logger.error("Position stream failed: %s", e)
            await self._events.put(UnknownGeolocationError(f"Position stream failed: {e}"))
        finally:
            self._events.put_nowait(_END_OF_STREAM)
            await stream.aclose()

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def __aiter__(self) -> "PositionWatch":
        return self

    async def __anext__(self) -> PositionEvent:
        event = await self._events.get()
        if event is _END_OF_STREAM:
            self._events.put_nowait(event)
            raise StopAsyncIteration
        return event


class ScriptedGeolocation(GeolocationProvider):
    """
    Deterministic provider for simulations and tests.

    ``fixes`` answers successive one-shot requests (the last entry repeats).
    Each opened watch takes the next list from ``watch_scripts`` and then
    waits for events sent with ``push``.
    """

    def __init__(
        self,
        fixes: Sequence[PositionEvent] = (),
        watch_scripts: Iterable[Sequence[PositionEvent]] = (),
        *,
        available: bool = True,
        permission: PermissionState = PermissionState.PROMPT,
        delay: float = 0.0,
    ):
        self._fixes = list(fixes)
        self._watch_scripts = [list(s) for s in watch_scripts]
        self._available = available
        self._permission = permission
        self._delay = delay
        self._queues: List[asyncio.Queue] = []
        self.requests: List[PositionOptions] = []
        self.watch_requests: List[PositionOptions] = []
        self.max_concurrent_watches = 0

    @property
    def available(self) -> bool:
        return self._available

    @property
    def active_watches(self) -> int:
        return len(self._queues)

    async def permission_state(self) -> PermissionState:
        return self._permission

    async def current_position(self, options: PositionOptions) -> PositionFix:
        self.requests.append(options)
        if self._delay:
            await asyncio.sleep(self._delay)
        if not self._fixes:
            # never answers; acquire_position turns this into a timeout
            await asyncio.Event().wait()
        event = self._fixes.pop(0) if len(self._fixes) > 1 else self._fixes[0]
        if isinstance(event, GeolocationError):
            raise event
        return event

    def push(self, event: PositionEvent) -> None:
        """Deliver an event to every open watch."""
        for queue in self._queues:
            queue.put_nowait(event)

    async def watch(self, options: PositionOptions) -> AsyncIterator[PositionEvent]:
        self.watch_requests.append(options)
        queue: asyncio.Queue = asyncio.Queue()
        for event in (self._watch_scripts.pop(0) if self._watch_scripts else []):
            queue.put_nowait(event)
        self._queues.append(queue)
        self.max_concurrent_watches = max(self.max_concurrent_watches, len(self._queues))
        try:
            while True:
                event = await queue.get()
                if self._delay:
                    await asyncio.sleep(self._delay)
                yield event
        finally:
            self._queues.remove(queue)

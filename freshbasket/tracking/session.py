"""
Tracking session state and its durable record.

Only two facts survive a restart: whether sharing is active and for which
order. They are stored together as one record so they can never disagree.
"""

import abc
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from freshbasket.app.core.config import settings
from freshbasket.tracking.errors import GeolocationErrorKind

logger = logging.getLogger("freshbasket.tracking.session")


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float
    accuracy_meters: Optional[float]
    captured_at: datetime


@dataclass(frozen=True)
class ErrorInfo:
    kind: GeolocationErrorKind
    message: str


@dataclass
class TrackingSession:
    """In-memory view of one agent's sharing session."""
    order_id: Optional[str] = None
    is_active: bool = False
    last_known_coordinate: Optional[Coordinate] = None
    last_error: Optional[ErrorInfo] = None


@dataclass(frozen=True)
class PersistedSharing:
    """The durable part of a TrackingSession."""
    sharing_active: bool
    tracking_order_id: Optional[str]

    def to_json(self) -> str:
        return json.dumps({
            "sharingActive": self.sharing_active,
            "trackingOrderId": self.tracking_order_id,
        })

    @classmethod
    def from_json(cls, raw: str) -> "PersistedSharing":
        data = json.loads(raw)
        order_id = data.get("trackingOrderId")
        return cls(
            sharing_active=bool(data.get("sharingActive")),
            tracking_order_id=str(order_id) if order_id is not None else None,
        )


class SessionStore(abc.ABC):
    """Durable key/value home of the PersistedSharing record."""

    @abc.abstractmethod
    async def load(self) -> Optional[PersistedSharing]:
        ...

    @abc.abstractmethod
    async def save(self, record: PersistedSharing) -> None:
        ...

    @abc.abstractmethod
    async def clear(self) -> None:
        ...


class MemorySessionStore(SessionStore):
    """Process-local store; survives publisher restarts, not process restarts."""

    def __init__(self, record: Optional[PersistedSharing] = None):
        self.record = record

    async def load(self) -> Optional[PersistedSharing]:
        return self.record

    async def save(self, record: PersistedSharing) -> None:
        self.record = record

    async def clear(self) -> None:
        self.record = None


class RedisSessionStore(SessionStore):
    """
    Redis-backed store: the record is one JSON value under one key, so a
    write replaces both flags at once.
    """

    def __init__(self, redis, key: str = settings.session_key):
        self._redis = redis
        self.key = key

    async def load(self) -> Optional[PersistedSharing]:
        raw = await self._redis.get(self.key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return PersistedSharing.from_json(raw)
        except (ValueError, AttributeError) as e:
            logger.warning("Discarding unreadable sharing record %r: %s", raw, e)
            await self.clear()
            return None

    async def save(self, record: PersistedSharing) -> None:
        await self._redis.set(self.key, record.to_json())

    async def clear(self) -> None:
        await self._redis.delete(self.key)

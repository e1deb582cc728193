"""
In-process TTL cache.

Used for geocoding results: the same delivery address is looked up once per
TTL instead of once per order.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, NamedTuple, Optional


class _Entry(NamedTuple):
    value: Any
    expires_at: datetime


_entries: Dict[str, _Entry] = {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CacheService:

    @staticmethod
    async def get(key: str) -> Optional[Any]:
        entry = _entries.get(key)
        if entry is None:
            return None
        if _now() >= entry.expires_at:
            _entries.pop(key, None)
            return None
        return entry.value

    @staticmethod
    async def set(key: str, value: Any, ttl_seconds: int = 300) -> None:
        _entries[key] = _Entry(value, _now() + timedelta(seconds=ttl_seconds))

    @staticmethod
    async def clear() -> None:
        _entries.clear()

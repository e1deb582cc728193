"""
Redis client initialization and connection management.

Backs token revocation on the server and the persisted sharing record
used by the agent's location publisher.
"""

import redis.asyncio as redis
from freshbasket.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """Return True when Redis answers a PING."""
    try:
        return await redis_client.ping()
    except Exception:
        return False

"""
Token Revocation using Redis.

Logging out an agent blacklists the presented token until it would have
expired anyway, so a stolen dashboard token cannot keep publishing locations.
"""

import logging

import freshbasket.app.core.redis_client as redis_store
from freshbasket.app.core.config import settings

logger = logging.getLogger("freshbasket.auth")

TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: Owner of the token, stored for audit purposes

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis_store.redis_client.set(
            f"{TOKEN_BLACKLIST_PREFIX}{token}", str(user_id), ex=ttl_seconds
        )
        return True
    except Exception as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    If Redis is unreachable the token is treated as valid; availability of
    tracking wins over strict revocation.
    """
    try:
        exists = await redis_store.redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except Exception as e:
        logger.warning("Error checking token revocation: %s", e)
        return False

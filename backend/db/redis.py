"""Redis connection management and key namespaces.

Redis is the only store: user records, API key / token indexes, per-user
request counters, OAuth codes (with TTL) and the registration counters all
live here.
"""

from typing import Optional

import redis.asyncio as aioredis
import structlog

from app.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis connection cache
_redis: Optional[aioredis.Redis] = None

# Key namespaces
USER_PREFIX = "user:"
APIKEY_PREFIX = "apikey:"
TOKEN_PREFIX = "token:"
USAGE_PREFIX = "usage:"
OAUTH_CODE_PREFIX = "oauth_code:"
STATS_TOTAL_USERS = "stats:total_users"
STATS_ACTIVE_USERS = "stats:active_users"


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def apikey_key(api_key: str) -> str:
    return f"{APIKEY_PREFIX}{api_key}"


def token_key(token_hash: str) -> str:
    return f"{TOKEN_PREFIX}{token_hash}"


def usage_key(user_id: str) -> str:
    return f"{USAGE_PREFIX}{user_id}"


def oauth_code_key(code: str) -> str:
    return f"{OAUTH_CODE_PREFIX}{code}"


async def get_redis() -> aioredis.Redis:
    """Get or create a Redis connection."""
    global _redis
    if _redis is None:
        settings = get_settings()
        # from_url connects lazily, on the first command
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Redis client created", url=settings.REDIS_URL.split("@")[-1])
    return _redis


async def close_redis() -> None:
    """Close the cached Redis connection."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis connection closed")

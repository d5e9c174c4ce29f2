"""FastAPI dependency injection functions."""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis

from app.config import Settings, get_settings
from core.exceptions import ForbiddenError, UnauthenticatedError
from db.models.user import UserRecord
from db.redis import get_redis
from integrations.slack_client import SlackClient, SlackClientFactory
from services.oauth_service import OAuthExchange
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

# auto_error=False so a missing header reaches our own 401 with a hint
bearer_scheme = HTTPBearer(auto_error=False)

REGISTER_HINT = "Register your Slack token at /connect to get an API key"


async def get_kv() -> Redis:
    """Provide the shared Redis connection (overridden in tests)."""
    return await get_redis()


async def get_user_registry(redis: Redis = Depends(get_kv)) -> UserRegistry:
    return UserRegistry(redis)


async def get_oauth_exchange(
    redis: Redis = Depends(get_kv),
    settings: Settings = Depends(get_settings),
) -> OAuthExchange:
    return OAuthExchange(redis, settings)


def get_slack_client_factory() -> SlackClientFactory:
    """Provide the callable that builds a Slack client from a user token."""
    return SlackClient


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    registry: UserRegistry = Depends(get_user_registry),
) -> UserRecord:
    """
    Resolve the bearer API key to an active user.

    Raises:
        UnauthenticatedError: If the header is missing or the key does not
            resolve to an active user
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Missing Authorization header", hint=REGISTER_HINT)

    user = await registry.get_user_by_api_key(credentials.credentials)
    if user is None:
        raise UnauthenticatedError("Invalid or inactive API key", hint=REGISTER_HINT)

    return user


async def require_admin(
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Guard admin endpoints with the shared ADMIN_API_KEY.

    Raises:
        ForbiddenError: If admin access is disabled or the key does not match
    """
    if not settings.ADMIN_API_KEY:
        raise ForbiddenError("Admin API is disabled")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        logger.warning("Rejected admin request")
        raise ForbiddenError("Invalid admin key")


def get_base_url(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Public base URL used when building connect and OAuth URLs."""
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    return str(request.base_url).rstrip("/")

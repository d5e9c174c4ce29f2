"""Health check endpoint."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from app.config import Settings, get_settings
from app.dependencies import get_kv
from core.utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=dict[str, Any])
async def health_check(
    settings: Settings = Depends(get_settings),
    redis: Redis = Depends(get_kv),
):
    """
    Health check with dependency verification.
    Pings Redis; returns 503 if it is unreachable.
    """
    try:
        await redis.ping()
        redis_status = "ok"
    except Exception as e:
        logger.warning("Redis health check failed: %s", e)
        redis_status = "unavailable"

    healthy = redis_status == "ok"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "version": settings.APP_VERSION,
        "redis": redis_status,
        "timestamp": utc_now().isoformat(),
    }
    if not healthy:
        return JSONResponse(status_code=503, content=body)
    return body

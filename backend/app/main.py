"""Slack MCP Server - FastAPI Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from api.router import api_router
from core.logging_config import setup_logging
from core.middleware import RequestTrackingMiddleware, setup_exception_handlers
from db.redis import close_redis, get_redis
from services.user_registry import wait_for_usage_updates

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        settings = get_settings()
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    setup_logging(settings)

    try:
        settings.validate_secrets()
    except RuntimeError as e:
        logger.critical(f"[startup] FATAL: {e}")
        raise

    redis = await get_redis()
    try:
        await redis.ping()
        logger.info("[startup] Redis connected")
    except Exception as e:
        logger.warning(f"[startup] Redis not reachable yet: {e}")

    if not settings.ADMIN_API_KEY:
        logger.info("[startup] ADMIN_API_KEY not set, admin endpoints disabled")

    logger.info(f"[startup] {settings.APP_NAME} v{settings.APP_VERSION} started ({settings.ENVIRONMENT})")
    yield
    await wait_for_usage_updates()
    await close_redis()
    logger.info("[shutdown] Application shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Multi-user MCP server exposing Slack to AI assistants, "
                    "with API-key registration and an OAuth authorization-code handoff.",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Request tracking middleware
    app.add_middleware(RequestTrackingMiddleware)

    # Security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Admin-Key"],
    )

    # Global exception handlers
    setup_exception_handlers(app)

    app.include_router(api_router)

    return app


app = create_app()

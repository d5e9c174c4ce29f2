"""Operator endpoints, guarded by the X-Admin-Key header."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_user_registry, require_admin
from api.schemas.registration import ApiKeyResponse, UpdateTokenRequest
from core.exceptions import InvalidRequestError, NotFoundError
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/users", summary="List users")
async def list_users(
    limit: int = Query(100, ge=1, le=1000),
    cursor: str = Query("0"),
    registry: UserRegistry = Depends(get_user_registry),
) -> dict[str, Any]:
    return await registry.list_users(limit=limit, cursor=cursor)


@router.get("/stats", summary="Registration statistics")
async def stats(registry: UserRegistry = Depends(get_user_registry)) -> dict[str, Any]:
    return await registry.get_stats()


@router.post("/users/{user_id}/rotate-key", response_model=ApiKeyResponse, summary="Rotate a user's API key")
async def rotate_key(user_id: str, registry: UserRegistry = Depends(get_user_registry)) -> ApiKeyResponse:
    api_key = await registry.rotate_api_key(user_id)
    logger.info(f"Admin rotated API key for {user_id}")
    return ApiKeyResponse(api_key=api_key)


@router.post("/users/{user_id}/deactivate", summary="Deactivate a user")
async def deactivate(user_id: str, registry: UserRegistry = Depends(get_user_registry)) -> dict[str, Any]:
    if not await registry.deactivate_user(user_id):
        raise NotFoundError("User not found")
    logger.info(f"Admin deactivated {user_id}")
    return {"success": True, "userId": user_id, "active": False}


@router.post("/users/{user_id}/reactivate", response_model=ApiKeyResponse, summary="Reactivate a user")
async def reactivate(user_id: str, registry: UserRegistry = Depends(get_user_registry)) -> ApiKeyResponse:
    api_key = await registry.reactivate_user(user_id)
    logger.info(f"Admin reactivated {user_id}")
    return ApiKeyResponse(api_key=api_key)


@router.put("/users/{user_id}/token", summary="Replace a user's Slack token")
async def update_token(
    user_id: str,
    body: UpdateTokenRequest,
    registry: UserRegistry = Depends(get_user_registry),
) -> dict[str, Any]:
    if not body.platform_token:
        raise InvalidRequestError("platformToken is required")
    record = await registry.update_user_token(user_id, body.platform_token)
    return {"success": True, "user": record.to_public_dict()}


@router.post("/cleanup", summary="Deactivate long-idle users")
async def cleanup(
    days_inactive: int = Query(90, ge=1),
    registry: UserRegistry = Depends(get_user_registry),
) -> dict[str, Any]:
    cleaned_up = await registry.cleanup_inactive_users(days_inactive=days_inactive)
    return {"success": True, "deactivated": cleaned_up, "daysInactive": days_inactive}

"""Self-service account endpoints for API key holders."""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_current_user, get_user_registry
from api.schemas.registration import ApiKeyResponse
from db.models.user import UserRecord
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account")


@router.post("/rotate-key", response_model=ApiKeyResponse, summary="Rotate own API key")
async def rotate_own_key(
    user: UserRecord = Depends(get_current_user),
    registry: UserRegistry = Depends(get_user_registry),
) -> ApiKeyResponse:
    """Issue a new API key for the caller; the presented key stops working immediately."""
    api_key = await registry.rotate_api_key(user.id)
    logger.info(f"User {user.id} rotated their API key")
    return ApiKeyResponse(api_key=api_key)

"""Registration endpoint: trade a Slack user token for an API key."""

import logging

from fastapi import APIRouter, Depends, Request, status

from app.dependencies import get_base_url, get_slack_client_factory, get_user_registry
from api.schemas.registration import RegisterRequest, RegisterResponse
from integrations.slack_client import SlackClientFactory
from services.registration import register_slack_user
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a Slack token",
)
async def register(
    body: RegisterRequest,
    request: Request,
    registry: UserRegistry = Depends(get_user_registry),
    slack_factory: SlackClientFactory = Depends(get_slack_client_factory),
    base_url: str = Depends(get_base_url),
) -> RegisterResponse:
    """
    Validate a Slack user token against Slack and issue an API key for it.

    The API key, not the Slack token, is what the assistant sends as its
    bearer credential.
    """
    user_id, api_key = await register_slack_user(
        registry,
        slack_factory,
        body.token,
        user_info=body.user_info,
        source=body.user_info.get("source") or "api",
        client_ip=request.client.host if request.client else None,
    )

    return RegisterResponse(
        message="Successfully registered. Use the API key as your bearer token.",
        api_key=api_key,
        user_id=user_id,
        integration={
            "server_url": base_url,
            "authorization": "Bearer <apiKey>",
            "instructions": "Send the API key as a Bearer token on every MCP request",
        },
    )

"""MCP tool surface: {method, params} over POST, bearer API key required."""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from app.config import Settings, get_settings
from app.dependencies import get_current_user, get_slack_client_factory
from api.schemas.mcp import MCPRequest
from db.models.user import UserRecord
from integrations.slack_client import SlackClientFactory
from services.mcp_dispatcher import MCPDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", summary="Server info")
async def server_info(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Unauthenticated description of this server."""
    return {
        "name": settings.APP_NAME,
        "description": "MCP server for Slack integration",
        "version": settings.APP_VERSION,
        "protocolVersion": settings.MCP_PROTOCOL_VERSION,
        "capabilities": ["search", "channels", "messages", "users"],
        "authentication": "Bearer API key from /register or the OAuth flow",
    }


async def _dispatch(
    body: MCPRequest,
    user: UserRecord,
    slack_factory: SlackClientFactory,
) -> dict[str, Any]:
    dispatcher = MCPDispatcher(user, slack_factory=slack_factory)
    return await dispatcher.handle(body.method, body.params)


@router.post("/", summary="MCP method call")
async def mcp_root(
    body: MCPRequest,
    user: UserRecord = Depends(get_current_user),
    slack_factory: SlackClientFactory = Depends(get_slack_client_factory),
) -> dict[str, Any]:
    return await _dispatch(body, user, slack_factory)


@router.post("/message", summary="MCP method call (alias)")
async def mcp_message(
    body: MCPRequest,
    user: UserRecord = Depends(get_current_user),
    slack_factory: SlackClientFactory = Depends(get_slack_client_factory),
) -> dict[str, Any]:
    return await _dispatch(body, user, slack_factory)

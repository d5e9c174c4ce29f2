"""MCP method dispatch for one authenticated user.

Maps {method, params} onto the tool registry. Tool failures (Slack errors,
missing arguments) come back as a normal result with isError set, so the
assistant can show the text instead of treating the call as a protocol fault.
"""

from typing import Any, Optional

import structlog

from app.config import Settings, get_settings
from core.exceptions import InvalidRequestError, SlackMCPException
from db.models.user import UserRecord
from integrations.slack_client import SlackClient, SlackClientFactory
from tools.registry import ToolRegistry
from tools.slack_tools import get_tool_registry

logger = structlog.get_logger(__name__)


def text_result(text: str, is_error: bool = False) -> dict[str, Any]:
    """Wrap display text in the tools/call result envelope."""
    result: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


class MCPDispatcher:
    """Handles initialize, ping, tools/list and tools/call."""

    def __init__(
        self,
        user: UserRecord,
        slack_factory: SlackClientFactory = SlackClient,
        registry: Optional[ToolRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.user = user
        self.slack_factory = slack_factory
        self.registry = registry or get_tool_registry()
        self.settings = settings or get_settings()
        self._methods = {
            "initialize": self.initialize,
            "ping": self.ping,
            "tools/list": self.list_tools,
            "tools/call": self.call_tool,
        }

    async def handle(self, method: Optional[str], params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Dispatch one MCP method.

        Raises:
            InvalidRequestError: Unknown method, or unknown tool in tools/call
        """
        handler = self._methods.get(method or "")
        if handler is None:
            raise InvalidRequestError(f"Unknown method: {method}")
        return await handler(params or {})

    async def initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "protocolVersion": self.settings.MCP_PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": self.settings.MCP_SERVER_NAME,
                "version": self.settings.APP_VERSION,
            },
        }

    async def ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": self.registry.get_tool_definitions()}

    async def call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        tool = self.registry.get(name) if name else None
        if tool is None:
            raise InvalidRequestError(f"Unknown tool: {name}")

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return text_result("Error: arguments must be an object", is_error=True)

        logger.info("Tool call", tool=name, user_id=self.user.id)
        try:
            async with self.slack_factory(self.user.platform_token) as slack:
                text = await tool(slack, arguments)
        except SlackMCPException as e:
            logger.info("Tool call failed", tool=name, user_id=self.user.id, error=e.message)
            return text_result(f"Error: {e.message}", is_error=True)
        except Exception as e:
            logger.error("Tool call crashed", tool=name, user_id=self.user.id, error=str(e), exc_info=True)
            return text_result(f"Error: {e}", is_error=True)

        return text_result(text)

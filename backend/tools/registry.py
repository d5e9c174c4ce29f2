"""
Tool Registry: named, schema-described operations an assistant may invoke.

Each tool has:
- name: unique identifier
- description: what the tool does (for the assistant's context)
- input_schema: JSON Schema describing parameters
- handler: async callable (slack_client, arguments) -> display text
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from integrations.slack_client import SlackClient

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[SlackClient, Dict[str, Any]], Awaitable[str]]


class ToolRegistry:
    """Registry of tools exposed through tools/list and tools/call."""

    def __init__(self):
        self._tools: Dict[str, Dict[str, Any]] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(
        self,
        name: str,
        description: str,
        input_schema: Dict[str, Any],
        handler: ToolHandler,
    ):
        """Register a tool."""
        self._tools[name] = {
            "name": name,
            "description": description,
            "inputSchema": input_schema,
        }
        self._handlers[name] = handler
        logger.debug(f"Tool registered: {name}")

    def tool(self, name: str, description: str, input_schema: Dict[str, Any]):
        """Decorator form of register()."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(name, description, input_schema, handler)
            return handler

        return decorator

    def get(self, name: str) -> Optional[ToolHandler]:
        return self._handlers.get(name)

    def get_tool_definitions(self) -> List[Dict[str, Any]]:
        """Tool descriptors in MCP tools/list format."""
        return list(self._tools.values())

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools.keys())

"""MCP request schema."""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Union


class MCPRequest(BaseModel):
    """A single {method, params} call; JSON-RPC framing fields are tolerated."""

    method: Optional[str] = Field(default=None, description="initialize, ping, tools/list or tools/call")
    params: Optional[Dict[str, Any]] = None
    id: Optional[Union[int, str]] = None
    jsonrpc: Optional[str] = None

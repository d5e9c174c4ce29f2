"""
Slack Web API client.

Thin authenticated wrapper over httpx: every call carries the user's Slack
token as a bearer header, and every non-success answer (HTTP error or
``"ok": false``) is raised as UpstreamError carrying Slack's error code.
No retries: callers decide whether to try again.
"""

from typing import Any, Callable, Dict, Optional

import httpx
import structlog

from app.config import get_settings
from core.exceptions import UpstreamError

logger = structlog.get_logger(__name__)


class SlackAPIError(UpstreamError):
    """Slack answered with ok=false."""

    def __init__(self, slack_error: str):
        super().__init__(f"Slack API error: {slack_error}", slack_error=slack_error)


class SlackClient:
    """Async Slack Web API client bound to one user token.

    Usage:
        async with SlackClient(token) as slack:
            identity = await slack.test_auth()
    """

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.SLACK_API_BASE).rstrip("/") + "/",
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout or settings.SLACK_TIMEOUT),
            transport=transport,
        )

    async def __aenter__(self) -> "SlackClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> Dict[str, Any]:
        """Call a Slack Web API method and return the decoded body.

        Args:
            endpoint: Slack method name, e.g. "conversations.list"
            params: Query parameters (GET) or JSON body (POST); None values are dropped
            method: HTTP method

        Raises:
            UpstreamError: On transport failure or non-2xx status
            SlackAPIError: When Slack answers ok=false
        """
        payload = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            if method == "GET":
                response = await self._client.get(endpoint, params=payload)
            else:
                response = await self._client.request(method, endpoint, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Slack request failed", endpoint=endpoint, error=str(e))
            raise UpstreamError(f"Slack API unreachable: {e.__class__.__name__}")

        if response.is_error:
            logger.warning("Slack HTTP error", endpoint=endpoint, status=response.status_code)
            raise UpstreamError(f"HTTP {response.status_code}: {response.reason_phrase}")

        data = response.json()
        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            logger.info("Slack API returned an error", endpoint=endpoint, slack_error=error)
            raise SlackAPIError(error)

        return data

    # ─── Web API methods ───────────────────────────────────────────

    async def test_auth(self) -> Dict[str, Any]:
        """Validate the token (auth.test); returns user_id, team_id, team, url."""
        return await self.make_request("auth.test")

    async def search_messages(self, query: str, count: int = 20, sort: Optional[str] = None) -> Dict[str, Any]:
        return await self.make_request("search.messages", {"query": query, "count": count, "sort": sort})

    async def list_conversations(self, types: str = "public_channel", limit: int = 100) -> Dict[str, Any]:
        return await self.make_request("conversations.list", {"types": types, "limit": limit})

    async def conversation_history(self, channel: str, limit: int = 50) -> Dict[str, Any]:
        return await self.make_request("conversations.history", {"channel": channel, "limit": limit})

    async def conversation_info(self, channel: str) -> Dict[str, Any]:
        return await self.make_request("conversations.info", {"channel": channel})

    async def open_conversation(self, users: str) -> Dict[str, Any]:
        return await self.make_request("conversations.open", {"users": users}, method="POST")

    async def post_message(self, channel: str, text: str, thread_ts: Optional[str] = None) -> Dict[str, Any]:
        return await self.make_request(
            "chat.postMessage",
            {"channel": channel, "text": text, "thread_ts": thread_ts},
            method="POST",
        )

    async def list_users(self, limit: int = 100) -> Dict[str, Any]:
        return await self.make_request("users.list", {"limit": limit})

    async def user_info(self, user: str) -> Dict[str, Any]:
        return await self.make_request("users.info", {"user": user})


SlackClientFactory = Callable[[str], SlackClient]

"""Shared pytest fixtures for the Slack MCP server test suite.

Provides:
- In-memory Redis (fakeredis, no server needed for tests)
- A scriptable fake Slack Web API on httpx.MockTransport
- FastAPI test client (httpx.AsyncClient) wired to both
- Pre-registered user helpers
"""

import os
from typing import Any, AsyncGenerator, Callable, Dict, List, Union

import fakeredis
import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any app imports
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from integrations.slack_client import SlackClient  # noqa: E402
from services.oauth_service import OAuthExchange  # noqa: E402
from services.user_registry import UserRegistry, wait_for_usage_updates  # noqa: E402

SLACK_TOKEN = "xoxp-" + "1234567890-" * 5
OTHER_SLACK_TOKEN = "xoxp-" + "0987654321-" * 5
ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}

SlackReply = Union[Dict[str, Any], Callable[[httpx.Request], httpx.Response]]


# ---------------------------------------------------------------------------
# Fake Slack
# ---------------------------------------------------------------------------

class FakeSlack:
    """Answers Slack Web API calls from a per-method reply table.

    A reply is either a JSON dict (sent with HTTP 200) or a callable
    returning a full httpx.Response. Every request is recorded in `calls`.
    """

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.replies: Dict[str, SlackReply] = {
            "auth.test": {
                "ok": True,
                "user_id": "U123",
                "team_id": "T123",
                "team": "Acme",
                "url": "https://acme.slack.com/",
            },
        }

    def reply(self, method: str, reply: SlackReply) -> None:
        self.replies[method] = reply

    def calls_to(self, method: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.url.path.endswith("/" + method)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        method = request.url.path.rsplit("/", 1)[-1]
        reply = self.replies.get(method)
        if reply is None:
            return httpx.Response(200, json={"ok": False, "error": "unknown_method"})
        if callable(reply):
            return reply(request)
        return httpx.Response(200, json=reply)

    def client_factory(self) -> Callable[[str], SlackClient]:
        transport = httpx.MockTransport(self.handler)
        return lambda token: SlackClient(token, transport=transport)


@pytest.fixture
def slack_token() -> str:
    return SLACK_TOKEN


@pytest.fixture
def other_slack_token() -> str:
    return OTHER_SLACK_TOKEN


@pytest.fixture
def admin_headers() -> dict:
    return dict(ADMIN_HEADERS)


@pytest.fixture
def fake_slack() -> FakeSlack:
    return FakeSlack()


@pytest_asyncio.fixture
async def slack(fake_slack) -> AsyncGenerator[SlackClient, None]:
    """A SlackClient talking to the fake Slack."""
    async with fake_slack.client_factory()(SLACK_TOKEN) as client:
        yield client


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def redis():
    """Fresh in-memory Redis per test."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await wait_for_usage_updates()
    await client.aclose()


@pytest.fixture
def registry(redis) -> UserRegistry:
    return UserRegistry(redis)


@pytest.fixture
def oauth(redis) -> OAuthExchange:
    return OAuthExchange(redis)


@pytest_asyncio.fixture
async def registered_user(registry):
    """(user_id, api_key, record) for a freshly created user."""
    return await registry.create_user(SLACK_TOKEN, {"name": "Ada", "email": "ada@example.com"})


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app(redis, fake_slack):
    """FastAPI app wired to fakeredis and the fake Slack."""
    from app.dependencies import get_kv, get_slack_client_factory
    from app.main import create_app

    test_app = create_app()

    async def _kv():
        return redis

    test_app.dependency_overrides[get_kv] = _kv
    test_app.dependency_overrides[get_slack_client_factory] = fake_slack.client_factory
    yield test_app
    test_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers(registered_user) -> dict:
    """Authorization headers carrying a valid API key."""
    _, api_key, _ = registered_user
    return {"Authorization": f"Bearer {api_key}"}

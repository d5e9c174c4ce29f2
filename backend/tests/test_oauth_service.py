"""Tests for the OAuth authorization-code handoff."""

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from app.config import Settings
from core.api_keys import generate_api_key
from core.exceptions import (
    InvalidClientError,
    InvalidCredentialFormatError,
    InvalidGrantError,
    InvalidRequestError,
    OAuthInvalidRequestError,
    UnsupportedGrantTypeError,
)
from services.oauth_service import OAuthExchange


@pytest.mark.unit
class TestBeginAuthorization:

    def test_connect_url_carries_context(self, oauth):
        code, url = oauth.begin_authorization(
            client_id="claude",
            redirect_uri="https://example.test/cb",
            state="s1",
            base_url="https://mcp.example.com/",
        )
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert url.startswith("https://mcp.example.com/connect?")
        assert "redirect_uri=https%3A%2F%2Fexample.test%2Fcb" in url
        assert query["oauth"] == ["true"]
        assert query["auth_code"] == [code]
        assert query["state"] == ["s1"]
        assert query["client_id"] == ["claude"]

    def test_codes_are_fresh(self, oauth):
        first, _ = oauth.begin_authorization("c", "https://x.test/cb", None, "http://test")
        second, _ = oauth.begin_authorization("c", "https://x.test/cb", None, "http://test")
        assert first != second
        assert first.startswith("slack_auth_")

    @pytest.mark.parametrize("client_id, redirect_uri, response_type", [
        (None, "https://x.test/cb", None),
        ("c", None, None),
        ("c", "https://x.test/cb", "token"),
    ])
    def test_rejects_incomplete_requests(self, oauth, client_id, redirect_uri, response_type):
        with pytest.raises(OAuthInvalidRequestError):
            oauth.begin_authorization(client_id, redirect_uri, "s", "http://test", response_type)

    @pytest.mark.parametrize("redirect_uri", [
        "javascript:alert(1)//",
        "JavaScript:alert(1)//https://x.test/",
        "data:text/html;base64,PHNjcmlwdD4=",
        "//x.test/cb",
        "https:///cb",
    ])
    def test_rejects_redirect_uri_that_is_not_http(self, oauth, redirect_uri):
        with pytest.raises(OAuthInvalidRequestError):
            oauth.begin_authorization("c", redirect_uri, "s", "http://test")

    def test_accepts_plain_http_redirect_uri(self, oauth):
        _, url = oauth.begin_authorization("c", "http://localhost:8765/callback", None, "http://test")
        assert "redirect_uri=http%3A%2F%2Flocalhost%3A8765%2Fcallback" in url

    async def test_nothing_is_stored(self, oauth, redis):
        oauth.begin_authorization("c", "https://x.test/cb", "s", "http://test")
        assert await redis.dbsize() == 0


@pytest.mark.integration
class TestStoreAndExchange:

    async def test_round_trip(self, oauth):
        api_key = generate_api_key()
        await oauth.store_token("slack_auth_abc", api_key)

        result = await oauth.exchange("authorization_code", "slack_auth_abc", "claude")
        assert result == {
            "access_token": api_key,
            "token_type": "bearer",
            "expires_in": 31536000,
            "scope": "slack:read slack:write",
        }

    async def test_code_is_single_use(self, oauth):
        await oauth.store_token("slack_auth_abc", generate_api_key())
        await oauth.exchange("authorization_code", "slack_auth_abc")
        with pytest.raises(InvalidGrantError):
            await oauth.exchange("authorization_code", "slack_auth_abc")

    async def test_concurrent_redemption_has_one_winner(self, oauth):
        await oauth.store_token("slack_auth_abc", generate_api_key())
        results = await asyncio.gather(
            *(oauth.exchange("authorization_code", "slack_auth_abc") for _ in range(5)),
            return_exceptions=True,
        )
        assert sum(isinstance(r, dict) for r in results) == 1
        assert sum(isinstance(r, InvalidGrantError) for r in results) == 4

    async def test_store_sets_ttl(self, oauth, redis):
        await oauth.store_token("slack_auth_abc", generate_api_key())
        ttl = await redis.ttl("oauth_code:slack_auth_abc")
        assert 0 < ttl <= 600

    async def test_expired_code_is_invalid_grant(self, redis):
        oauth = OAuthExchange(redis, Settings(OAUTH_CODE_TTL_SECONDS=1))
        await oauth.store_token("slack_auth_abc", generate_api_key())
        await asyncio.sleep(1.2)

        assert await redis.exists("oauth_code:slack_auth_abc") == 0
        with pytest.raises(InvalidGrantError):
            await oauth.exchange("authorization_code", "slack_auth_abc")

    async def test_last_write_wins(self, oauth):
        second = generate_api_key()
        await oauth.store_token("slack_auth_abc", generate_api_key())
        await oauth.store_token("slack_auth_abc", second)
        result = await oauth.exchange("authorization_code", "slack_auth_abc")
        assert result["access_token"] == second

    async def test_store_accepts_slack_token(self, oauth, slack_token):
        await oauth.store_token("slack_auth_abc", slack_token)
        result = await oauth.exchange("authorization_code", "slack_auth_abc")
        assert result["access_token"] == slack_token

    async def test_store_requires_both_fields(self, oauth):
        with pytest.raises(InvalidRequestError):
            await oauth.store_token("", generate_api_key())
        with pytest.raises(InvalidRequestError):
            await oauth.store_token("slack_auth_abc", None)

    async def test_store_rejects_malformed_credential(self, oauth, redis):
        with pytest.raises(InvalidCredentialFormatError):
            await oauth.store_token("slack_auth_abc", "hunter2")
        assert await redis.dbsize() == 0


@pytest.mark.integration
class TestExchangeErrors:

    async def test_wrong_grant_type(self, oauth):
        with pytest.raises(UnsupportedGrantTypeError):
            await oauth.exchange("client_credentials", "slack_auth_abc")

    async def test_missing_code(self, oauth):
        with pytest.raises(OAuthInvalidRequestError):
            await oauth.exchange("authorization_code", None)

    async def test_unknown_code(self, oauth):
        with pytest.raises(InvalidGrantError):
            await oauth.exchange("authorization_code", "slack_auth_never_stored")

    async def test_client_allow_list(self, redis):
        oauth = OAuthExchange(redis, Settings(OAUTH_ALLOWED_CLIENT_IDS="claude, other"))
        await oauth.store_token("slack_auth_abc", generate_api_key())

        with pytest.raises(InvalidClientError):
            await oauth.exchange("authorization_code", "slack_auth_abc", "intruder")
        # a rejected client does not burn the code
        result = await oauth.exchange("authorization_code", "slack_auth_abc", "claude")
        assert result["token_type"] == "bearer"


@pytest.mark.unit
class TestDiscovery:

    def test_document(self, oauth):
        doc = oauth.discovery_document("https://mcp.example.com/")
        assert doc["authorization_endpoint"] == "https://mcp.example.com/oauth/authorize"
        assert doc["token_endpoint"] == "https://mcp.example.com/oauth/token"
        assert doc["client_id"] == "slack-mcp-server"
        assert doc["scopes"] == ["slack:read", "slack:write"]
        assert doc["grant_types_supported"] == ["authorization_code"]
        assert doc["response_types_supported"] == ["code"]

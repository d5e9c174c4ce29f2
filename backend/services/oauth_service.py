"""OAuth authorization-code handoff.

A code moves through three states:

    STARTED       begin_authorization() minted it and sent the user to /connect
    TOKEN_STORED  store_token() saved a credential under oauth_code:<code> (TTL)
    REDEEMED      exchange() returned the credential and removed the code

A code whose TTL lapses before redemption simply disappears, and callers
cannot tell it apart from one that was never stored or already redeemed.
No new credential is minted here: the access token handed back is the
credential stored in step two.
"""

from typing import Any, Optional
from urllib.parse import urlencode, urlparse

import structlog
from redis.asyncio import Redis

from app.config import Settings, get_settings
from core.api_keys import generate_auth_code, is_valid_api_key, is_valid_slack_token, mask_token
from core.exceptions import (
    InvalidClientError,
    InvalidCredentialFormatError,
    InvalidGrantError,
    InvalidRequestError,
    OAuthInvalidRequestError,
    UnsupportedGrantTypeError,
)
from db.redis import oauth_code_key

logger = structlog.get_logger(__name__)

AUTHORIZATION_CODE_GRANT = "authorization_code"
REDIRECT_SCHEMES = ("http", "https")


def is_allowed_redirect_uri(redirect_uri: Optional[str]) -> bool:
    """True only for absolute http or https URLs (no javascript:, data:, relative paths)."""
    if not redirect_uri:
        return False
    parsed = urlparse(redirect_uri)
    return parsed.scheme.lower() in REDIRECT_SCHEMES and bool(parsed.netloc)


class OAuthExchange:
    """Issues, stores and redeems single-use authorization codes."""

    def __init__(self, redis: Redis, settings: Optional[Settings] = None):
        self.redis = redis
        self.settings = settings or get_settings()

    def begin_authorization(
        self,
        client_id: Optional[str],
        redirect_uri: Optional[str],
        state: Optional[str],
        base_url: str,
        response_type: Optional[str] = None,
    ) -> tuple[str, str]:
        """Mint a code and build the connect-page URL carrying the OAuth context.

        Nothing is stored; the code only becomes redeemable after store_token().
        redirect_uri and state are echoed forward untouched.

        Returns:
            Tuple of (code, connect_url)

        Raises:
            OAuthInvalidRequestError: If client_id or redirect_uri is missing,
                or redirect_uri is not an http(s) URL
        """
        if not redirect_uri:
            raise OAuthInvalidRequestError("redirect_uri is required")
        if not is_allowed_redirect_uri(redirect_uri):
            raise OAuthInvalidRequestError("redirect_uri must be an absolute http or https URL")
        if not client_id:
            raise OAuthInvalidRequestError("client_id is required")
        if response_type and response_type != "code":
            raise OAuthInvalidRequestError("Only response_type=code is supported")

        code = generate_auth_code()
        query = urlencode({
            "oauth": "true",
            "auth_code": code,
            "redirect_uri": redirect_uri,
            "state": state or "",
            "client_id": client_id,
        })
        connect_url = f"{base_url.rstrip('/')}/connect?{query}"

        logger.info("OAuth authorization started", client_id=client_id, code=mask_token(code, 16))
        return code, connect_url

    async def store_token(self, code: Optional[str], credential: Optional[str]) -> bool:
        """Attach a credential to an in-flight code for OAUTH_CODE_TTL_SECONDS.

        A later call for the same code overwrites the earlier one.

        Raises:
            InvalidRequestError: If code or credential is missing
            InvalidCredentialFormatError: If credential is neither a Slack
                user token nor an API key by shape
        """
        if not code or not credential:
            raise InvalidRequestError("Both authCode and token are required")
        if not (is_valid_api_key(credential) or is_valid_slack_token(credential)):
            raise InvalidCredentialFormatError("Token must be a Slack user token (xoxp-) or an API key")

        await self.redis.setex(
            oauth_code_key(code),
            self.settings.OAUTH_CODE_TTL_SECONDS,
            credential,
        )
        logger.info("Credential stored for OAuth code", code=mask_token(code, 16))
        return True

    async def exchange(
        self,
        grant_type: Optional[str],
        code: Optional[str],
        client_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Redeem a code exactly once.

        Returns:
            Token response dict (access_token, token_type, expires_in, scope)

        Raises:
            UnsupportedGrantTypeError: grant_type is not authorization_code
            OAuthInvalidRequestError: code is missing
            InvalidClientError: client_id is not in OAUTH_ALLOWED_CLIENT_IDS
            InvalidGrantError: nothing is stored under the code
        """
        if grant_type != AUTHORIZATION_CODE_GRANT:
            raise UnsupportedGrantTypeError()
        if not code:
            raise OAuthInvalidRequestError("authorization_code is required")

        allowed = self.settings.oauth_allowed_client_ids
        if allowed and client_id not in allowed:
            raise InvalidClientError()

        # GETDEL makes redemption atomic: two racing exchanges cannot both win
        credential = await self.redis.getdel(oauth_code_key(code))
        if not credential:
            logger.warning("OAuth code rejected", code=mask_token(code, 16))
            raise InvalidGrantError()

        logger.info("OAuth code redeemed", client_id=client_id, code=mask_token(code, 16))
        return {
            "access_token": credential,
            "token_type": "bearer",
            "expires_in": self.settings.OAUTH_TOKEN_EXPIRES_IN,
            "scope": self.settings.OAUTH_SCOPES,
        }

    def discovery_document(self, base_url: str) -> dict[str, Any]:
        """OAuth configuration advertised to MCP clients."""
        base = base_url.rstrip("/")
        return {
            "issuer": base,
            "authorization_endpoint": f"{base}/oauth/authorize",
            "token_endpoint": f"{base}/oauth/token",
            "client_id": self.settings.OAUTH_CLIENT_ID,
            "scopes": self.settings.oauth_scope_list,
            "scopes_supported": self.settings.oauth_scope_list,
            "response_types_supported": ["code"],
            "grant_types_supported": [AUTHORIZATION_CODE_GRANT],
            "token_endpoint_auth_methods_supported": ["client_secret_post", "none"],
            "server_info": {
                "name": self.settings.APP_NAME,
                "version": self.settings.APP_VERSION,
                "description": "Multi-user Slack integration for MCP assistants",
            },
        }

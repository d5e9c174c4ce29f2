"""OAuth authorization-code endpoints.

Flow:
    1. GET  /oauth/authorize    -> 302 to /connect carrying a fresh code
    2. POST /oauth/store-token  <- connect page attaches the user's API key to the code
    3. POST /oauth/token        <- MCP client redeems the code for the API key
"""

import logging
from typing import Any, Optional
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from app.dependencies import (
    get_base_url,
    get_oauth_exchange,
    get_slack_client_factory,
    get_user_registry,
)
from api.schemas.oauth import StoreTokenRequest, TokenRequest, TokenResponse
from core.api_keys import is_valid_api_key, is_valid_slack_token
from core.exceptions import InvalidRequestError, OAuthInvalidRequestError, UnauthenticatedError
from integrations.slack_client import SlackClientFactory
from services.oauth_service import OAuthExchange
from services.registration import register_slack_user
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth")

# Mounted at the app root for clients that probe RFC 8414 discovery
discovery_router = APIRouter()


@router.get("/authorize", summary="Start the authorization-code flow")
async def authorize(
    client_id: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    state: Optional[str] = None,
    response_type: Optional[str] = None,
    oauth: OAuthExchange = Depends(get_oauth_exchange),
    base_url: str = Depends(get_base_url),
) -> RedirectResponse:
    """Redirect the browser to the connect page with a fresh authorization code."""
    _, connect_url = oauth.begin_authorization(
        client_id=client_id,
        redirect_uri=redirect_uri,
        state=state,
        base_url=base_url,
        response_type=response_type,
    )
    return RedirectResponse(connect_url, status_code=302)


@router.post("/store-token", summary="Attach a credential to an authorization code")
async def store_token(
    body: StoreTokenRequest,
    request: Request,
    oauth: OAuthExchange = Depends(get_oauth_exchange),
    registry: UserRegistry = Depends(get_user_registry),
    slack_factory: SlackClientFactory = Depends(get_slack_client_factory),
) -> dict[str, Any]:
    """
    Store the API key the MCP client will receive for this code.

    A Slack token is registered first and replaced by its API key, so the
    raw Slack token is never handed to the client.
    """
    if not body.auth_code or not body.token:
        raise InvalidRequestError("Both authCode and token are required")

    credential = body.token
    if is_valid_slack_token(credential):
        _, credential = await register_slack_user(
            registry,
            slack_factory,
            credential,
            source="oauth-web-interface",
            client_ip=request.client.host if request.client else None,
        )
    elif is_valid_api_key(credential):
        if await registry.get_user_by_api_key(credential, track_usage=False) is None:
            raise UnauthenticatedError("Invalid or inactive API key", hint="Register at /connect first")

    await oauth.store_token(body.auth_code, credential)
    return {"success": True, "message": "Token stored for OAuth flow"}


@router.post("/token", response_model=TokenResponse, summary="Redeem an authorization code")
async def token(
    request: Request,
    oauth: OAuthExchange = Depends(get_oauth_exchange),
) -> dict[str, Any]:
    """Exchange a code for its credential. Accepts JSON or form-encoded bodies."""
    payload = await _read_token_request(request)
    return await oauth.exchange(
        grant_type=payload.grant_type,
        code=payload.code,
        client_id=payload.client_id,
    )


@router.get("/config", summary="OAuth discovery document")
async def config(
    oauth: OAuthExchange = Depends(get_oauth_exchange),
    base_url: str = Depends(get_base_url),
) -> dict[str, Any]:
    return oauth.discovery_document(base_url)


@discovery_router.get("/.well-known/oauth-authorization-server", include_in_schema=False)
async def well_known(
    oauth: OAuthExchange = Depends(get_oauth_exchange),
    base_url: str = Depends(get_base_url),
) -> dict[str, Any]:
    return oauth.discovery_document(base_url)


async def _read_token_request(request: Request) -> TokenRequest:
    raw = await request.body()
    content_type = request.headers.get("content-type", "")

    try:
        if "application/json" in content_type:
            return TokenRequest.model_validate_json(raw or b"{}")
        return TokenRequest(**dict(parse_qsl(raw.decode("utf-8"))))
    except (ValidationError, UnicodeDecodeError) as e:
        logger.info(f"Malformed token request: {e}")
        raise OAuthInvalidRequestError("Malformed token request body")

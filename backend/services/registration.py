"""Registration: verify a Slack token live, then mint its API key."""

from typing import Any, Optional

import structlog

from core.api_keys import is_valid_slack_token, mask_token
from core.exceptions import InvalidCredentialFormatError, InvalidRequestError
from integrations.slack_client import SlackAPIError, SlackClientFactory
from services.user_registry import UserRegistry

logger = structlog.get_logger(__name__)


async def register_slack_user(
    registry: UserRegistry,
    slack_factory: SlackClientFactory,
    platform_token: Optional[str],
    user_info: Optional[dict[str, Any]] = None,
    source: str = "connect-page",
    client_ip: Optional[str] = None,
) -> tuple[str, str]:
    """
    Register a Slack user token and return (user_id, api_key).

    The token is checked by shape first, then against Slack's auth.test.
    Every successful registration creates a new user and key; keys issued
    earlier for the same token stay valid.

    Raises:
        InvalidRequestError: Token missing, or rejected by Slack
        InvalidCredentialFormatError: Token is not a Slack user token by shape
        UpstreamError: Slack could not be reached
    """
    if not platform_token:
        raise InvalidRequestError("platformToken is required")
    if not is_valid_slack_token(platform_token):
        raise InvalidCredentialFormatError("Valid Slack user token required (must start with xoxp-)")

    try:
        async with slack_factory(platform_token) as slack:
            identity = await slack.test_auth()
    except SlackAPIError as e:
        logger.info("Slack rejected token at registration", token=mask_token(platform_token), slack_error=e.slack_error)
        raise InvalidRequestError(f"Registration failed: Slack rejected the token ({e.slack_error})")

    info = dict(user_info or {})
    info.update({
        "slackUserId": identity.get("user_id"),
        "slackTeam": identity.get("team_id"),
        "slackTeamName": identity.get("team"),
        "slackUrl": identity.get("url"),
        "source": source,
        "registrationIp": client_ip or "unknown",
    })

    user_id, api_key, _ = await registry.create_user(platform_token, info)
    return user_id, api_key

"""Credential helpers: API key / user ID generation, shape checks and masking.

API keys look like ``smcp_<64 hex>`` and are the only bearer credential the
tool surface accepts. Slack user tokens (``xoxp-...``) are wrapped by user
records and never handed back to a caller.
"""

import hashlib
import re
import secrets
from typing import Any

from app.config import get_settings

USER_ID_PREFIX = "usr_"
AUTH_CODE_PREFIX = "slack_auth_"

_HEX64 = re.compile(r"^[a-f0-9]{64}$")


def generate_user_id() -> str:
    """Generate an opaque, unguessable user ID."""
    return USER_ID_PREFIX + secrets.token_hex(16)


def generate_api_key() -> str:
    """Generate a new API key. Shown once to the user, stored in the user record."""
    return get_settings().API_KEY_PREFIX + secrets.token_hex(32)


def generate_auth_code() -> str:
    """Generate a single-use OAuth authorization code."""
    return AUTH_CODE_PREFIX + secrets.token_hex(24)


def hash_token(token: str) -> str:
    """SHA-256 digest of a platform token, for audit and index keys."""
    return hashlib.sha256(token.encode()).hexdigest()


def is_valid_api_key(api_key: Any) -> bool:
    """Check the API key shape (prefix + 64 lowercase hex chars)."""
    prefix = get_settings().API_KEY_PREFIX
    if not isinstance(api_key, str) or not api_key.startswith(prefix):
        return False
    return bool(_HEX64.match(api_key[len(prefix):]))


def is_valid_slack_token(token: Any) -> bool:
    """Format check for a Slack user token.

    This is a shape check only and never replaces validating the token
    against Slack itself.
    """
    settings = get_settings()
    return (
        isinstance(token, str)
        and token.startswith(settings.SLACK_TOKEN_PREFIX)
        and len(token) > settings.SLACK_TOKEN_MIN_LENGTH
    )


def mask_token(token: str, visible: int = 12) -> str:
    """Truncate a secret for diagnostics.

    Example: xoxp-1234567...
    """
    if not token:
        return ""
    return token[:visible] + "..."

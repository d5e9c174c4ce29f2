"""Custom exceptions for the Slack MCP server."""

from typing import Optional


class SlackMCPException(Exception):
    """Base exception for the Slack MCP server."""

    error_code = "server_error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP status code
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class InvalidRequestError(SlackMCPException):
    """A required field is missing or malformed."""

    error_code = "invalid_request"

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, 400)


class InvalidCredentialFormatError(SlackMCPException):
    """A credential does not have the expected shape."""

    error_code = "invalid_credential_format"

    def __init__(self, message: str = "Invalid Slack token format"):
        super().__init__(message, 400)


class UnauthenticatedError(SlackMCPException):
    """No bearer credential, or one that does not resolve to an active user."""

    error_code = "unauthenticated"

    def __init__(self, message: str = "Unauthorized", hint: Optional[str] = None):
        """Initialize UnauthenticatedError with 401 status code."""
        self.hint = hint
        super().__init__(message, 401)

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.hint:
            body["hint"] = self.hint
        return body


class ForbiddenError(SlackMCPException):
    """Forbidden access exception."""

    error_code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize ForbiddenError with 403 status code."""
        super().__init__(message, 403)


class NotFoundError(SlackMCPException):
    """Resource not found exception."""

    error_code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize NotFoundError with 404 status code."""
        super().__init__(message, 404)


class UpstreamError(SlackMCPException):
    """The Slack API returned a non-success response."""

    error_code = "upstream_error"

    def __init__(self, message: str, slack_error: Optional[str] = None):
        self.slack_error = slack_error
        super().__init__(message, 502)


class InternalError(SlackMCPException):
    """Store unavailable or unexpected failure."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, 500)


# ─── OAuth errors (RFC 6749 §5.2 vocabulary) ──────────────────


class OAuthError(SlackMCPException):
    """Base for errors rendered as {error, error_description}."""

    def __init__(self, description: str, status_code: int = 400):
        super().__init__(description, status_code)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "error_description": self.message}


class OAuthInvalidRequestError(OAuthError):
    error_code = "invalid_request"


class InvalidGrantError(OAuthError):
    """Unknown, expired or already-redeemed authorization code."""

    error_code = "invalid_grant"

    def __init__(self, description: str = "Invalid or expired authorization code"):
        super().__init__(description)


class UnsupportedGrantTypeError(OAuthError):
    error_code = "unsupported_grant_type"

    def __init__(self, description: str = "Only authorization_code grant type is supported"):
        super().__init__(description)


class InvalidClientError(OAuthError):
    error_code = "invalid_client"

    def __init__(self, description: str = "Unknown client_id"):
        super().__init__(description)

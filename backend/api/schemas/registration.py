"""Registration and account schemas."""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class RegisterRequest(BaseModel):
    """Register a Slack user token and receive an API key."""

    platform_token: Optional[str] = Field(
        default=None, alias="platformToken", description="Slack user token (xoxp-...)"
    )
    slack_token: Optional[str] = Field(
        default=None, alias="slackToken", description="Legacy name for platformToken"
    )
    user_info: Dict[str, Any] = Field(
        default_factory=dict, alias="userInfo", description="Optional profile fields (name, email)"
    )

    class Config:
        populate_by_name = True

    @property
    def token(self) -> Optional[str]:
        return self.platform_token or self.slack_token


class RegisterResponse(BaseModel):
    """Successful registration."""

    success: bool = True
    message: str
    api_key: str = Field(alias="apiKey", description="Bearer credential for the tool surface")
    user_id: str = Field(alias="userId")
    integration: Dict[str, Any] = Field(description="How to configure the MCP client")

    class Config:
        populate_by_name = True


class UpdateTokenRequest(BaseModel):
    """Replace the Slack token wrapped by a user."""

    platform_token: Optional[str] = Field(default=None, alias="platformToken")

    class Config:
        populate_by_name = True


class ApiKeyResponse(BaseModel):
    """A freshly issued API key."""

    success: bool = True
    api_key: str = Field(alias="apiKey")

    class Config:
        populate_by_name = True

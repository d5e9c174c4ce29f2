"""OAuth handoff schemas."""

from pydantic import BaseModel, Field
from typing import Optional


class StoreTokenRequest(BaseModel):
    """Credential submitted from the connect page for an in-flight code."""

    auth_code: Optional[str] = Field(default=None, alias="authCode")
    token: Optional[str] = Field(default=None, description="Slack user token or API key")

    class Config:
        populate_by_name = True


class TokenRequest(BaseModel):
    """Authorization-code exchange (RFC 6749 §4.1.3)."""

    grant_type: Optional[str] = None
    code: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None


class TokenResponse(BaseModel):
    """Access token issued for a redeemed code."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    scope: str

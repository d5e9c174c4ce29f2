"""User record stored in Redis under ``user:<id>``."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class UsageStats(BaseModel):
    """Request counter for a user record."""

    total_requests: int = Field(default=0, alias="totalRequests")
    last_request: Optional[datetime] = Field(default=None, alias="lastRequest")

    class Config:
        populate_by_name = True


class UserRecord(BaseModel):
    """A registered Slack user and the API key that stands in for their token.

    Attributes:
        id: Opaque user ID (usr_<hex>), immutable
        api_key: Current API key (smcp_<hex>), rotatable
        platform_token: The wrapped Slack user token
        platform_token_hash: SHA-256 of platform_token, audit/index only
        active: False once deactivated; the record itself is never deleted
        usage: Request counter, updated on every authenticated call
        user_info: Free-form profile (name, email, Slack team, source)
    """

    id: str
    api_key: str = Field(alias="apiKey")
    platform_token: str = Field(alias="platformToken")
    platform_token_hash: str = Field(alias="platformTokenHash")
    created_at: datetime = Field(alias="createdAt")
    last_used: Optional[datetime] = Field(default=None, alias="lastUsed")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    key_rotated_at: Optional[datetime] = Field(default=None, alias="keyRotatedAt")
    deactivated_at: Optional[datetime] = Field(default=None, alias="deactivatedAt")
    reactivated_at: Optional[datetime] = Field(default=None, alias="reactivatedAt")
    active: bool = True
    usage: UsageStats = Field(default_factory=UsageStats)
    user_info: dict[str, Any] = Field(default_factory=dict, alias="userInfo")

    class Config:
        populate_by_name = True

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "UserRecord":
        return cls.model_validate_json(raw)

    def to_public_dict(self) -> dict[str, Any]:
        """Sanitized view without any credential material."""
        return {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "lastUsed": self.last_used.isoformat() if self.last_used else None,
            "active": self.active,
            "userInfo": {
                "name": self.user_info.get("name"),
                "email": self.user_info.get("email"),
                "slackTeam": self.user_info.get("slackTeam"),
            },
            "usage": self.usage.model_dump(mode="json", by_alias=True),
        }

"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    APP_NAME: str = "Slack MCP Server"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    # Overrides the request host when building connect/OAuth URLs (e.g. behind a proxy)
    PUBLIC_BASE_URL: Optional[str] = None

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"

    # Slack Settings
    SLACK_API_BASE: str = "https://slack.com/api"
    SLACK_TIMEOUT: float = 15.0
    SLACK_TOKEN_PREFIX: str = "xoxp-"
    SLACK_TOKEN_MIN_LENGTH: int = 50

    # Credential Settings
    API_KEY_PREFIX: str = "smcp_"
    # Guards the /admin endpoints; admin routes are disabled while empty
    ADMIN_API_KEY: str = ""

    # OAuth Settings
    OAUTH_CLIENT_ID: str = "slack-mcp-server"
    OAUTH_ALLOWED_CLIENT_IDS: str = ""  # comma-separated; empty accepts any client
    OAUTH_CODE_TTL_SECONDS: int = 600
    OAUTH_TOKEN_EXPIRES_IN: int = 31536000  # 1 year, informational only
    OAUTH_SCOPES: str = "slack:read slack:write"

    # MCP Settings
    MCP_PROTOCOL_VERSION: str = "2024-11-05"
    MCP_SERVER_NAME: str = "slack-mcp-server"

    # CORS Settings
    ALLOWED_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    LOG_COLORS: bool = True  # console renderer only
    LOG_SLACK_LEVEL: str = "INFO"  # Slack Web API client
    LOG_LIBRARY_LEVEL: str = "WARNING"  # httpx, httpcore, redis, uvicorn.access

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def oauth_allowed_client_ids(self) -> list[str]:
        """Parse OAUTH_ALLOWED_CLIENT_IDS string into a list."""
        return [cid.strip() for cid in self.OAUTH_ALLOWED_CLIENT_IDS.split(",") if cid.strip()]

    @property
    def oauth_scope_list(self) -> list[str]:
        return self.OAUTH_SCOPES.split()

    def validate_secrets(self) -> None:
        """Validate that production settings are safe to serve.

        Raises:
            RuntimeError: If production runs with an unset PUBLIC_BASE_URL
        """
        if self.is_production and not self.PUBLIC_BASE_URL:
            raise RuntimeError(
                "CRITICAL: PUBLIC_BASE_URL environment variable must be set in production. "
                "OAuth redirects must not be derived from the request Host header."
            )

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()

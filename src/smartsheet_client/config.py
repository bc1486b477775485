"""Client configuration using pydantic-settings.

Values come from ``SMARTSHEET_*`` environment variables or a ``.env`` file.
Nothing is required up front: a missing access token only matters once a
request is sent, and OAuth settings only when a flow is built.
"""

from functools import lru_cache
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from smartsheet_client.oauth import DEFAULT_AUTHORIZATION_URL, DEFAULT_TOKEN_URL
from smartsheet_client.request import DEFAULT_BASE_URL, DEFAULT_USER_AGENT
from smartsheet_client.retry import (
    BACKOFF_STRATEGIES,
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
)
from smartsheet_client.transport import DEFAULT_TIMEOUT

LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Environment variables:
    - SMARTSHEET_ACCESS_TOKEN: API access token for direct authentication
    - SMARTSHEET_BASE_URL: API root (defaults to the production API)
    - SMARTSHEET_CLIENT_ID / SMARTSHEET_CLIENT_SECRET / SMARTSHEET_REDIRECT_URL:
      OAuth application credentials
    """

    model_config = SettingsConfigDict(
        env_prefix="SMARTSHEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    base_url: str = DEFAULT_BASE_URL
    access_token: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    assume_user: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    # Retry
    max_retries: int = DEFAULT_MAX_ATTEMPTS
    backoff: str = "exponential"
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY

    # OAuth
    client_id: str = ""
    client_secret: str = ""
    redirect_url: str = ""
    authorize_url: str = DEFAULT_AUTHORIZATION_URL
    token_url: str = DEFAULT_TOKEN_URL

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("base_url", "authorize_url", "token_url")
    @classmethod
    def validate_https(cls, v: str) -> str:
        """Require HTTPS except for local test servers."""
        parsed = urlparse(v)
        if parsed.scheme == "https":
            return v
        if parsed.scheme == "http" and parsed.hostname in LOCAL_HOSTS:
            return v
        raise ValueError(f"URL must use https: {v}")

    @field_validator("timeout", "base_delay", "max_delay")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v

    @field_validator("backoff")
    @classmethod
    def validate_backoff(cls, v: str) -> str:
        if v not in BACKOFF_STRATEGIES:
            raise ValueError(f"backoff must be one of: {BACKOFF_STRATEGIES}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    """
    return Settings()

"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from datetime import timedelta
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dspr.models.common import RetryConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Report API
    dspr_api_base_url: str = Field(
        default="https://testapipizza.pnefoods.com/api",
        description="Report API base URL",
    )
    dspr_api_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Report API request timeout"
    )
    dspr_api_token: str = Field(default="", description="Bearer token for the report API")

    # Retry
    retry_max_attempts: int = Field(default=3, ge=1, le=10, description="Max fetch attempts")
    retry_base_delay_ms: int = Field(default=500, ge=0, description="Base backoff delay (ms)")
    retry_max_delay_ms: int = Field(default=10000, ge=0, description="Backoff delay cap (ms)")
    retry_backoff_multiplier: float = Field(
        default=2.0, ge=1.0, description="Exponential backoff multiplier"
    )

    # Cache
    cache_ttl_seconds: int = Field(default=300, ge=1, description="Report cache TTL (5 min)")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    debug: bool = Field(default=False, description="Debug mode")
    testing: bool = Field(default=False, description="Testing mode")

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse comma-separated CORS origins."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def retry_config(self) -> RetryConfig:
        """Retry policy for the report client."""
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
            backoff_multiplier=self.retry_backoff_multiplier,
        )

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()

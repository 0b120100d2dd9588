"""Application configuration using Pydantic Settings.

This module defines all application configuration loaded from environment variables.
Configuration is validated at startup and provides type-safe access throughout the app.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration.

    All configuration is loaded from environment variables or .env file.
    Validation happens automatically via Pydantic.

    Example:
        >>> config = Config()
        >>> print(config.app_name)
        'ClipVault'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Application Settings
    # ============================================
    app_name: str = Field(default="ClipVault", description="Application name")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    # ============================================
    # Record / Authorization API
    # ============================================
    api_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the upload-authorization and record services",
    )
    api_token: str = Field(default="", description="Bearer token sent to the record API")
    http_timeout_seconds: float = Field(
        default=30.0, description="Timeout for metadata API calls", gt=0, le=600
    )

    # ============================================
    # Object Transfer
    # ============================================
    transfer_timeout_seconds: float = Field(
        default=300.0, description="Overall timeout for one blob transfer", gt=0, le=3600
    )

    # ============================================
    # Media Processing
    # ============================================
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")

    @field_validator("api_base_url", mode="before")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Ensure the API base URL is an http(s) URL without trailing slash.

        Args:
            v: Base URL string

        Returns:
            Normalized base URL

        Raises:
            ValueError: If URL is not http(s)
        """
        if isinstance(v, str):
            if not v.startswith(("http://", "https://")):
                raise ValueError("api_base_url must start with http:// or https://")
            return v.rstrip("/")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode.

        Returns:
            True if app_env is 'development'
        """
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode.

        Returns:
            True if app_env is 'production'
        """
        return self.app_env == "production"


# =============================================================================
# Singleton accessor
# =============================================================================

_config: Config | None = None


def get_config() -> Config:
    """Get the global Config singleton.

    This function provides a lazy-loaded singleton instance of Config.

    Returns:
        The global Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config

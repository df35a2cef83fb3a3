"""
Billboard Configuration Management Module

This module provides configuration management for the Billboard ad marketplace
backend using Pydantic Settings. It loads and validates the environment variables
required for:
- Application settings (name, environment, debug mode, logging)
- MongoDB database connection and pooling
- Redis caching (user cache, sessions, generated deals)
- Local JWT authentication
- Stripe payments (secret key, webhook signing secret)
- OpenAI-backed content generation through LangChain
- Referral programme defaults

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration settings for the Billboard backend.

    Values are read from environment variables (case-insensitive) and an
    optional ``.env`` file. Every field has a development-friendly default so
    the API can boot locally without any external credentials; Stripe and
    OpenAI backed endpoints report a configuration error until their keys are
    provided.

    Example usage:
        ```python
        from billboard.config import get_settings

        settings = get_settings()
        print(settings.mongodb_uri, settings.has_stripe_configured)
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="Billboard",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=True, description="Enable debug mode and hot-reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=False, description="Emit JSON log lines instead of human-readable text"
    )

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key for JWT signing. Must be a secure random string.",
        min_length=32,
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server")

    port: int = Field(default=8000, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins for the web client",
    )

    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Public URL of the web client, used for checkout redirects",
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017", description="MongoDB connection URI"
    )

    mongodb_db_name: str = Field(default="billboard", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(default=5, ge=1)

    mongodb_max_pool_size: int = Field(default=50, ge=5)

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    redis_url: str = Field(default="redis://localhost:6379", description="Redis connection URL")

    deals_cache_ttl_seconds: int = Field(
        default=3600, description="TTL for generated daily deals (1 hour)", ge=1
    )

    # =========================================================================
    # Authentication
    # =========================================================================

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24, description="JWT token lifetime in hours", ge=1, le=168
    )

    # =========================================================================
    # Stripe Configuration
    # =========================================================================

    stripe_secret_key: str | None = Field(default=None, description="Stripe secret API key")

    stripe_webhook_secret: str | None = Field(
        default=None, description="Signing secret used to verify Stripe webhook payloads"
    )

    stripe_currency: str = Field(default="usd", description="Currency for charges")

    # =========================================================================
    # AI Generation Configuration
    # =========================================================================

    openai_api_key: str | None = Field(default=None, description="OpenAI API key")

    default_ai_model: str = Field(
        default="gpt-4o", description="Chat model used for copy, deals and surprises"
    )

    image_model: str = Field(default="dall-e-3", description="Model used for ad images")

    # =========================================================================
    # Referral Programme
    # =========================================================================

    referral_base_url: str = Field(
        default="https://billboard.com", description="Base URL for shareable referral links"
    )

    referral_credit_value: float = Field(
        default=10.0, description="Credit in USD granted per successful referral", gt=0
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a known environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only symmetric HMAC algorithms are supported for local tokens."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from a comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("frontend_url", "referral_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def has_stripe_configured(self) -> bool:
        """Check if a Stripe secret key is configured."""
        return bool(self.stripe_secret_key)

    @property
    def has_openai_configured(self) -> bool:
        """Check if an OpenAI API key is configured."""
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    The settings object is built once on first call and reused for the
    lifetime of the process.
    """
    return Settings()

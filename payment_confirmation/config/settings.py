"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./payment_confirmation.db",
        description="Async SQLAlchemy database URL",
    )
    database_pool_size: int = Field(default=20, description="Database connection pool size")
    database_max_overflow: int = Field(default=50, description="Max database connection overflow")
    database_pool_timeout: float = Field(
        default=10.0, description="Seconds to wait for a pooled connection"
    )
    database_command_timeout: float = Field(
        default=5.0, description="Per-statement timeout passed to the driver (seconds)"
    )
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # Transaction Store
    store_timeout_seconds: float = Field(
        default=5.0, description="Upper bound for a single store call (seconds)"
    )

    # Payment Provider
    provider_name: str = Field(default="dana", description="Payment channel identifier")
    provider_webhook_secret: str = Field(..., description="Shared secret for webhook signatures")
    provider_signature_header: str = Field(
        default="X-SIGNATURE", description="Header carrying the webhook HMAC signature"
    )
    default_package_id: str = Field(
        default="basic", description="Package used when a payload carries none"
    )

    # Analytics
    analytics_sink_url: Optional[str] = Field(
        default=None, description="HTTP endpoint receiving analytics events (log sink if unset)"
    )
    event_sink_timeout_seconds: float = Field(
        default=2.0, description="Upper bound for a single event delivery (seconds)"
    )

    # Application Configuration
    app_name: str = Field(default="payment-confirmation", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")
    app_base_url: str = Field(
        default="http://localhost:3000", description="Public URL of the web client"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=4, description="Number of API workers")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="CORS allowed origins (comma-separated)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("provider_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, v: str) -> str:
        """Refuse to start without a usable signing secret."""
        if not v.strip():
            raise ValueError("provider_webhook_secret must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()

"""Configuration management using Pydantic Settings."""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase Configuration (creator_profile storage)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")

    # Upstream enrichment backend
    ENRICHMENT_BACKEND_URL: str = "http://localhost:3001"
    ENRICHMENT_BACKEND_API_KEY: SecretStr | None = None
    ENRICHMENT_STREAM_TIMEOUT_SECONDS: float = 110.0
    ENRICHMENT_CONNECT_TIMEOUT_SECONDS: float = 10.0

    # Application Settings
    APP_ENV: Literal["development", "staging", "production"] = "development"

    # Logging
    LOG_FORMAT: Literal["text", "json"] = "text"
    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("SUPABASE_URL", "ENRICHMENT_BACKEND_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that service URLs use http(s) and drop trailing slashes."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/") if v else v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def backend_api_key(self) -> str | None:
        """Plain upstream API key, or None when not configured."""
        if self.ENRICHMENT_BACKEND_API_KEY is None:
            return None
        return self.ENRICHMENT_BACKEND_API_KEY.get_secret_value() or None

    def validate_startup(self) -> None:
        """Validate that all required secrets are configured.

        Raises:
            ValueError: If any required secret is missing or empty.
        """
        required_secrets = {
            "SUPABASE_URL": self.SUPABASE_URL,
            "SUPABASE_SERVICE_ROLE_KEY": self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
            "ENRICHMENT_BACKEND_URL": self.ENRICHMENT_BACKEND_URL,
        }
        missing = [name for name, value in required_secrets.items() if not value]
        if missing:
            raise ValueError(f"Required secrets are missing or empty: {', '.join(missing)}")
        if self.backend_api_key is None:
            logger.warning("ENRICHMENT_BACKEND_API_KEY not configured - upstream calls are unauthenticated")


@dataclass(frozen=True)
class RelayConfig:
    """Connection settings for the upstream enrichment stream.

    Passed explicitly into ``StreamRelay`` so relays never read global state.
    """

    backend_url: str
    api_key: str | None = None
    timeout_seconds: float = 110.0
    connect_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayConfig":
        return cls(
            backend_url=settings.ENRICHMENT_BACKEND_URL,
            api_key=settings.backend_api_key,
            timeout_seconds=settings.ENRICHMENT_STREAM_TIMEOUT_SECONDS,
            connect_timeout_seconds=settings.ENRICHMENT_CONNECT_TIMEOUT_SECONDS,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Validation of required secrets happens at application startup, so
    importing modules that read settings never fails on a bare environment.
    """
    return Settings()

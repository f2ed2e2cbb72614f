"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Remote data store (PostgREST / Supabase project)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_KEY: str = ""

    # Seconds before a store request is abandoned and treated as failed
    REQUEST_TIMEOUT: float = 10.0

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # Monitoring
    SENTRY_DSN: str = ""

    @property
    def rest_url(self) -> str:
        """Base URL of the PostgREST endpoint, without a trailing slash."""
        return f"{self.SUPABASE_URL.rstrip('/')}/rest/v1"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()

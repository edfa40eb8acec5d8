"""Configuration management for WatchHive."""

from pydantic import PositiveFloat, PositiveInt, SecretStr, field_validator
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from urllib.parse import urlparse


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # TMDB
    tmdb_api_key: str
    metadata_timeout: PositiveFloat = 5.0  # Seconds per metadata fetch
    metadata_cache_ttl: PositiveInt = 1800

    # Database
    database_url: str = "sqlite:///./watchhive.db"

    # Recommendations
    recommendation_limit: PositiveInt = 20

    # Auth collaborator admin API, used to delete identities on account removal
    auth_admin_url: str | None = None
    auth_service_key: SecretStr | None = None

    @field_validator("auth_admin_url")
    @classmethod
    def validate_auth_admin_url(cls, v: str | None) -> str | None:
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            raise ValueError("Auth admin URL must use http or https")
        if not parsed.netloc:
            raise ValueError("Auth admin URL must have a host")
        return v.rstrip("/")

    # App settings
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""
Configuration and settings for the wishwall service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Storage service (Supabase-style: S3 endpoint + public object URLs)
    storage_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("STORAGE_URL", "SUPABASE_URL"),
    )
    storage_bucket: str = Field(default="wishes", validation_alias="STORAGE_BUCKET")
    storage_region: str = Field(
        default="us-east-1", validation_alias="STORAGE_REGION"
    )
    storage_access_key_id: Optional[str] = Field(
        default=None, validation_alias="STORAGE_ACCESS_KEY_ID"
    )
    storage_secret_access_key: Optional[str] = Field(
        default=None, validation_alias="STORAGE_SECRET_ACCESS_KEY"
    )
    service_credential: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SERVICE_CREDENTIAL", "SUPABASE_SERVICE_ROLE"),
    )

    # Database
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Abuse mitigation
    rate_limit_per_min: int = Field(default=3, validation_alias="RATE_LIMIT_PER_MIN")
    rate_limit_per_day: int = Field(default=25, validation_alias="RATE_LIMIT_PER_DAY")
    hash_salt: str = Field(default="salt", validation_alias="HASH_SALT")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="WISHWALL_USE_IN_MEMORY_BACKENDS"
    )

    @property
    def storage_endpoint(self) -> Optional[str]:
        """S3-compatible endpoint derived from the storage base URL."""
        if not self.storage_url:
            return None
        return f"{self.storage_url.rstrip('/')}/storage/v1/s3"

    @property
    def public_base_url(self) -> Optional[str]:
        if not self.storage_url:
            return None
        return (
            f"{self.storage_url.rstrip('/')}/storage/v1/object/public/"
            f"{self.storage_bucket}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

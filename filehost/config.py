"""
Configuration and settings for the file hosting service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL accepted)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage (Cloudflare R2)
    r2_endpoint: Optional[str] = Field(default=None)
    r2_region: str = Field(default="auto")
    r2_bucket: Optional[str] = Field(default=None)
    r2_access_key_id: Optional[str] = Field(default=None)
    r2_secret_access_key: Optional[str] = Field(default=None)

    # Public URLs handed back to the browser
    public_base_url: str = Field(default="https://files.example.test")
    cdn_base_url: Optional[str] = Field(default=None)

    # Upload limits
    max_upload_bytes: int = Field(default=1024 * 1024)
    storage_quota_bytes: int = Field(default=1024 * 1024 * 1024)
    max_name_length: int = Field(default=64)
    allow_anonymous_uploads: bool = Field(default=True)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Change feed (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None)
    change_feed_prefix: str = Field(default="filehost:files")

    # Orphaned blob sweep
    orphan_grace_seconds: int = Field(default=3600)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

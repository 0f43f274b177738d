"""
Configuration and settings for the blog backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from blog_shared.constants import MAX_UPLOAD_BYTES


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service.

    Field names double as (case-insensitive) environment variable names,
    e.g. `DATABASE_URL` or `S3_BUCKET`.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "BLOG_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Key-value store. A database URL (Postgres expected) wins over Redis.
    database_url: Optional[str] = Field(default=None)
    redis_url: Optional[str] = Field(default=None)
    redis_key_prefix: str = Field(default="blog:")

    # Identity provider (Firebase Auth)
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_web_api_key: Optional[str] = Field(default=None)

    # S3-compatible storage for images
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    # SigV4 presigned URLs are capped at seven days.
    signed_url_ttl_seconds: int = Field(default=7 * 24 * 3600)
    max_upload_bytes: int = Field(default=MAX_UPLOAD_BYTES)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

"""
Application settings and configuration management.

This module handles all environment variables, storage credentials, and
feed defaults using Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from feedgen.models.schemas import FeedOptions


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Credentials are stored as SecretStr to prevent accidental logging.
    Settings are validated on load and cached for performance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Application Configuration
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Record and catalog database
    database_url: str = Field(default="sqlite:///feeds.db", alias="DATABASE_URL")

    # Cloudflare R2 (S3-compatible) blob storage
    r2_account_id: Optional[str] = Field(default=None, alias="R2_ACCOUNT_ID")
    r2_access_key_id: Optional[SecretStr] = Field(default=None, alias="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[SecretStr] = Field(default=None, alias="R2_SECRET_ACCESS_KEY")
    r2_bucket_name: Optional[str] = Field(default=None, alias="R2_BUCKET_NAME")
    r2_public_domain: Optional[str] = Field(default=None, alias="R2_PUBLIC_DOMAIN")
    r2_endpoint_url: Optional[str] = Field(default=None, alias="R2_ENDPOINT_URL")
    feed_cache_control: str = Field(default="max-age=3600", alias="FEED_CACHE_CONTROL")

    # Feed defaults
    default_currency_code: str = Field(default="BRL", alias="DEFAULT_CURRENCY_CODE")
    default_primary_domain: str = Field(
        default="defaultdomain.com",
        alias="DEFAULT_PRIMARY_DOMAIN"
    )
    default_language: str = Field(default="pt-BR", alias="DEFAULT_LANGUAGE")

    # Run deadline; processing records older than this are reconciled as abandoned
    run_timeout_seconds: int = Field(default=600, gt=0, alias="RUN_TIMEOUT_SECONDS")

    @field_validator("default_currency_code", mode="before")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are upper-case ISO 4217."""
        if not v or not str(v).strip():
            raise ValueError("Currency code must not be empty")
        return str(v).strip().upper()

    @field_validator("r2_public_domain", mode="before")
    @classmethod
    def strip_public_domain(cls, v: Optional[str]) -> Optional[str]:
        """Accept the public domain with or without scheme and trailing slash."""
        if not v:
            return None
        domain = str(v).strip()
        if "://" in domain:
            domain = domain.split("://", 1)[1]
        return domain.rstrip("/") or None

    def r2_endpoint(self) -> Optional[str]:
        """Resolve the S3 endpoint for the configured R2 account."""
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        if self.r2_account_id:
            return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"
        return None

    def storage_configured(self) -> bool:
        """Check that every credential needed for blob writes is present."""
        return all([
            self.r2_endpoint(),
            self.r2_access_key_id,
            self.r2_secret_access_key,
            self.r2_bucket_name,
        ])

    def default_feed_options(self) -> FeedOptions:
        """Feed options used when a request leaves them out."""
        return FeedOptions(
            primary_domain=self.default_primary_domain,
            currency_code=self.default_currency_code,
            language=self.default_language,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

"""Job configuration settings."""

from functools import lru_cache
from typing import Optional
from urllib.parse import urljoin

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CURSOR_BLOB_NAME = "meta/cursor.json"


class SupabaseSettings(BaseSettings):
    """Supabase Storage credentials for the cloud blob backend."""

    url: str = Field(default="")
    service_role_key: str = Field(default="")

    model_config = SettingsConfigDict(env_prefix="SUPABASE_", extra="ignore")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")


class JobSettings(BaseSettings):
    """Validated arguments of the resolver collector job."""

    # Mandatory addresses
    target_base_address: str = Field(..., description="Address the resolver blobs are served from")
    cdn_base_address: str = Field(..., description="External CDN address")
    gallery_base_address: str = Field(..., description="External gallery address")

    # Destination
    target_storage_path: Optional[str] = Field(None, description="bucket[/prefix] for cloud storage")
    target_local_directory: Optional[str] = Field(None, description="Local directory for blobs")

    # Source
    catalog_index_url: Optional[str] = Field(None, description="Feed root URL")
    catalog_index_path: Optional[str] = Field(None, description="Feed root path served from disk")
    catalog_local_root: str = Field(default="./data/site", description="Directory backing local feed mode")
    catalog_local_base_address: str = Field(default="http://localhost:8000/")

    # Behaviour
    dont_store_cursor: bool = Field(default=False, description="Never write the checkpoint")
    collector: str = Field(default="mirror", description="Registered collector name")
    batch_size: int = Field(default=200, ge=1)
    max_pages: Optional[int] = Field(default=None, ge=1, description="Soft ceiling of pages per run")
    fetch_concurrency: int = Field(default=4, ge=1)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    interval_minutes: Optional[int] = Field(default=None, ge=1)

    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="COLLECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("target_base_address", "catalog_local_base_address")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        if not v:
            raise ValueError("Address must not be empty")
        return v if v.endswith("/") else v + "/"

    @field_validator("cdn_base_address", "gallery_base_address")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v:
            raise ValueError("Address must not be empty")
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_source_and_destination(self) -> "JobSettings":
        if not self.catalog_index_url and not self.catalog_index_path:
            raise ValueError("Either catalog_index_url or catalog_index_path is required")
        if not self.target_local_directory and not self.target_storage_path:
            raise ValueError("Either target_local_directory or target_storage_path is required")
        return self

    @property
    def uses_local_feed(self) -> bool:
        """Whether the feed is served from disk instead of the network."""
        return bool(self.catalog_index_path)

    @property
    def feed_root(self) -> str:
        """Address of the feed index."""
        if self.uses_local_feed:
            return urljoin(self.catalog_local_base_address, self.catalog_index_path.lstrip("/"))
        return self.catalog_index_url

    @property
    def cursor_uri(self) -> str:
        """Fixed location of the checkpoint document."""
        return urljoin(self.target_base_address, CURSOR_BLOB_NAME)


@lru_cache()
def get_settings() -> JobSettings:
    """Get job settings from the environment."""
    return JobSettings()

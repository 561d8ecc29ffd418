"""
Configuration settings for the feed inference toolkit.
Uses pydantic-settings for environment variable management.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.constants import (
    DEFAULT_ARRAY_SAMPLE_SIZE,
    DEFAULT_ENUM_THRESHOLD,
    DEFAULT_EXAMPLE_MAX_LENGTH,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_SLEEP_MS,
    DEFAULT_RETRY_TIMES,
    DEFAULT_USER_AGENT,
)


class HttpSettings(BaseSettings):
    """HTTP transport configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_HTTP_")

    timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, description="Request timeout in seconds")
    retry_times: int = Field(default=DEFAULT_RETRY_TIMES, ge=1, description="Attempts per URL")
    retry_sleep_ms: int = Field(
        default=DEFAULT_RETRY_SLEEP_MS, ge=0, description="Base backoff delay in milliseconds"
    )
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header")


class AuthSettings(BaseSettings):
    """Feed authentication configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_AUTH_")

    mode: Literal["none", "bearer", "basic", "query"] = Field(
        default="none", description="Authentication scheme"
    )
    token: str = Field(default="", description="Token for bearer or query auth")
    username: str = Field(default="", description="Username for basic auth")
    password: str = Field(default="", description="Password for basic auth")
    param: str = Field(default="token", description="Query parameter name for query auth")


class SchemaSettings(BaseSettings):
    """Schema mapper configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_SCHEMA_")

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0, description="Maximum traversal depth")
    array_sample_size: int = Field(
        default=DEFAULT_ARRAY_SAMPLE_SIZE, ge=1, description="List items sampled per list"
    )
    example_max_length: int = Field(
        default=DEFAULT_EXAMPLE_MAX_LENGTH, ge=1, description="Example value truncation length"
    )
    enum_threshold: int = Field(
        default=DEFAULT_ENUM_THRESHOLD, ge=2, description="Maximum distinct values for an enum"
    )


class DiscoverySettings(BaseSettings):
    """Endpoint discovery configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_DISCOVERY_")

    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1, description="Pagination page limit")
    probe_entities: bool = Field(default=True, description="Probe known entity sub-endpoints")
    detect_region: bool = Field(default=True, description="Detect region filtering")


class StorageSettings(BaseSettings):
    """Raw payload and artifact storage configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_STORAGE_")

    base_dir: str = Field(default="data/feed", description="Root directory for feed data")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FEED_",
        extra="ignore",
    )

    endpoints: List[str] = Field(default_factory=list, description="Primary feed URLs")
    log_level: str = Field(default="INFO", description="Logging level")
    max_workers: int = Field(default=4, ge=1, description="Threads used for schema mapping")

    # Sub-configurations
    http: HttpSettings = Field(default_factory=HttpSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    schema_mapping: SchemaSettings = Field(default_factory=SchemaSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

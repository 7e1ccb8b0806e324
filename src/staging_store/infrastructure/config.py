"""Configuration management for Staging Store using Pydantic Settings."""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseSettings):
    """Resource store configuration."""

    model_config = SettingsConfigDict(env_prefix="STAGING_STORE_STORAGE_")

    backend: str = "file"  # file, memory
    cache_path: str = "torrentcache"
    completed_prefix: str = "completed"
    incomplete_prefix: str = "incompleted"


class UploadConfig(BaseSettings):
    """Remote upload configuration."""

    model_config = SettingsConfigDict(env_prefix="STAGING_STORE_UPLOAD_")

    api_base_url: str = "https://www.googleapis.com"
    parent_container: str = "root"
    access_token: str = ""
    window_size: int = 16 * 1024 * 1024
    queue_capacity: int = 1
    request_timeout: float = 300.0  # 0 disables
    max_retries: int = 3
    generate_ids: bool = True
    folder_per_object: bool = False


class ObservabilityConfig(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="STAGING_STORE_OBSERVABILITY_")

    log_level: str = "info"
    log_format: str = "json"
    trace_sample_ratio: float = 1.0
    metrics_port: int = 8007
    otlp_endpoint: str = ""
    environment: str = "development"


class Config(BaseSettings):
    """Root configuration for Staging Store."""

    model_config = SettingsConfigDict(
        env_prefix="STAGING_STORE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config()

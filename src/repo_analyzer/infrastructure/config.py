"""Application configuration, loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    http_timeout_seconds: float = 30.0

    # Cache lifetimes: the quota window moves quickly, file content rarely.
    rate_limit_cache_ttl_seconds: float = 30.0
    repo_cache_ttl_seconds: float = 600.0
    content_cache_ttl_seconds: float = 1800.0
    cache_max_size: int = 100

    tree_max_depth: int = 3
    tree_directory_cap: int = 25
    max_rate_limit_retries: int = 2
    max_retry_wait_seconds: int = 30
    stats_max_retries: int = 3
    stats_retry_delay_seconds: float = 3.0
    max_file_size_bytes: int = 2 * 1024 * 1024
    commit_fallback_days: int = 30
    single_flight: bool = True

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()

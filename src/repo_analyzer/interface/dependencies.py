"""FastAPI dependency injection wiring."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from repo_analyzer.domain.entities import RateLimitSnapshot
from repo_analyzer.domain.exceptions import InvalidInputError
from repo_analyzer.infrastructure.config import Settings, get_settings
from repo_analyzer.infrastructure.credentials import CredentialManager
from repo_analyzer.infrastructure.github_rest_adapter import GitHubRestAdapter
from repo_analyzer.services.rate_limit import RateLimitTracker
from repo_analyzer.services.repo_data import RepoDataService
from repo_analyzer.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

_http_client: httpx.AsyncClient | None = None
_service: RepoDataService | None = None


def build_service(client: httpx.AsyncClient, settings: Settings) -> RepoDataService:
    """Assemble the adapter, caches, tracker and service around *client*."""
    token = settings.github_token.get_secret_value() if settings.github_token else None
    credentials = CredentialManager()
    if token:
        try:
            credentials.set_credential(token)
        except InvalidInputError as exc:
            logger.warning("Ignoring configured GitHub token, running unauthenticated: %s", exc)

    rate_limit_cache: TTLCache[RateLimitSnapshot] = TTLCache(
        default_ttl=settings.rate_limit_cache_ttl_seconds,
        max_size=settings.cache_max_size,
        name="rate-limit",
    )
    repo_cache: TTLCache[Any] = TTLCache(
        default_ttl=settings.repo_cache_ttl_seconds,
        max_size=settings.cache_max_size,
        name="repo",
    )
    content_cache: TTLCache[Any] = TTLCache(
        default_ttl=settings.content_cache_ttl_seconds,
        max_size=settings.cache_max_size,
        name="content",
    )

    adapter = GitHubRestAdapter(client, credentials, base_url=settings.github_api_url)
    tracker = RateLimitTracker(adapter, rate_limit_cache)
    adapter.add_rate_limit_listener(tracker.observe)

    return RepoDataService(
        gateway=adapter,
        credentials=credentials,
        rate_limits=tracker,
        repo_cache=repo_cache,
        content_cache=content_cache,
        max_depth=settings.tree_max_depth,
        directory_cap=settings.tree_directory_cap,
        max_rate_limit_retries=settings.max_rate_limit_retries,
        max_retry_wait_seconds=settings.max_retry_wait_seconds,
        stats_max_retries=settings.stats_max_retries,
        stats_retry_delay_seconds=settings.stats_retry_delay_seconds,
        max_file_size_bytes=settings.max_file_size_bytes,
        commit_fallback_days=settings.commit_fallback_days,
        single_flight=settings.single_flight,
    )


async def startup() -> None:
    """Initialise shared resources; called from the lifespan context manager."""
    global _http_client, _service  # noqa: PLW0603

    settings = get_settings()
    _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
    _service = build_service(_http_client, settings)


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _service  # noqa: PLW0603

    if _http_client:
        await _http_client.aclose()
        _http_client = None
    _service = None


def get_service() -> RepoDataService:
    """Return the process-wide service built at startup."""
    assert _service is not None, "startup() was not called"
    return _service


def get_app_settings() -> Settings:
    return get_settings()

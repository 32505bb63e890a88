"""Rate-limit tracker: keeps a short-lived snapshot of the GitHub quota."""

from __future__ import annotations

import logging
import time
from typing import Callable

from repo_analyzer.domain.entities import RateLimitSnapshot
from repo_analyzer.domain.exceptions import FetchFailedError, RepoAnalyzerError
from repo_analyzer.domain.ports.github_gateway import GitHubGateway
from repo_analyzer.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

_CACHE_KEY = "rate-limit"
_LOW_QUOTA_FRACTION = 0.1


def is_approaching_limit(remaining: int, limit: int) -> bool:
    """True when less than 10 % of the quota window is left."""
    return remaining < limit * _LOW_QUOTA_FRACTION


class RateLimitTracker:
    """Caches the latest :class:`RateLimitSnapshot`.

    The snapshot is refreshed from ``/rate_limit`` when the cached one has
    expired, and overwritten whenever another response reports fresher
    headers via :meth:`observe`.
    """

    def __init__(
        self,
        gateway: GitHubGateway,
        cache: TTLCache[RateLimitSnapshot],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._cache = cache
        self._clock = clock

    async def get_rate_limit(self) -> RateLimitSnapshot:
        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            snapshot = await self._gateway.get_rate_limit()
        except RepoAnalyzerError as exc:
            logger.error("Error fetching rate limit: %s", exc)
            raise FetchFailedError("Failed to fetch rate limit information.") from exc

        self._cache.set(_CACHE_KEY, snapshot)
        if is_approaching_limit(snapshot.remaining, snapshot.limit):
            logger.warning(
                "Approaching GitHub API rate limit: %d of %d requests left",
                snapshot.remaining,
                snapshot.limit,
            )
        return snapshot

    def observe(self, snapshot: RateLimitSnapshot) -> None:
        """Record quota headers piggybacked on any other response."""
        self._cache.set(_CACHE_KEY, snapshot)

    def invalidate(self) -> None:
        self._cache.delete(_CACHE_KEY)

    async def seconds_until_reset(self) -> int:
        snapshot = await self.get_rate_limit()
        return max(snapshot.reset_at - int(self._clock()), 0)

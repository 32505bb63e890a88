"""Port: GitHub gateway, defined by the domain, implemented by infrastructure.

Methods return the provider's decoded JSON payloads; normalisation into
domain entities, caching and retry policy live in the service layer.
Failures are raised as domain exceptions (``NotFoundError``,
``RateLimitedError``, ``FetchFailedError``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from repo_analyzer.domain.entities import RateLimitSnapshot
from repo_analyzer.domain.value_objects import RepoIdentity


class GitHubGateway(Protocol):
    """Abstract contract for raw GitHub REST calls."""

    async def get_repository(self, repo: RepoIdentity) -> dict[str, Any]:
        """GET /repos/{owner}/{repo}."""
        ...

    async def list_contributors(self, repo: RepoIdentity) -> list[dict[str, Any]]:
        """GET /repos/{owner}/{repo}/contributors (first page of 100)."""
        ...

    async def get_commit_activity(self, repo: RepoIdentity) -> list[dict[str, Any]] | None:
        """GET /repos/{owner}/{repo}/stats/commit_activity.

        Returns ``None`` while GitHub is still computing the statistic (202).
        """
        ...

    async def list_commits(
        self, repo: RepoIdentity, since: datetime
    ) -> list[dict[str, Any]]:
        """GET /repos/{owner}/{repo}/commits?since=... (first page of 100)."""
        ...

    async def get_contents(
        self, repo: RepoIdentity, path: str
    ) -> list[dict[str, Any]] | dict[str, Any]:
        """GET /repos/{owner}/{repo}/contents/{path}: a list for directories."""
        ...

    async def get_rate_limit(self) -> RateLimitSnapshot:
        """GET /rate_limit (does not count against the quota)."""
        ...

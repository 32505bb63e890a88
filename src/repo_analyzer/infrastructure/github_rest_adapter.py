"""GitHub REST API adapter: implements the GitHubGateway port."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable
from urllib.parse import quote

import httpx

from repo_analyzer.domain.entities import RateLimitSnapshot
from repo_analyzer.domain.exceptions import (
    FetchFailedError,
    NotFoundError,
    RateLimitedError,
)
from repo_analyzer.domain.value_objects import RepoIdentity
from repo_analyzer.infrastructure.credentials import CredentialManager

logger = logging.getLogger(__name__)

_GITHUB_API = "https://api.github.com"
_USER_AGENT = "repo-analyzer/1.0"
_PAGE_SIZE = 100

RateLimitListener = Callable[[RateLimitSnapshot], None]


class GitHubRestAdapter:
    """Concrete GitHubGateway backed by the GitHub v3 REST API.

    Every response carrying ``x-ratelimit-*`` headers is forwarded to the
    registered listeners, so the quota snapshot stays fresh without extra
    calls to ``/rate_limit``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialManager,
        base_url: str = _GITHUB_API,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._base_url = base_url.rstrip("/")
        self._listeners: list[RateLimitListener] = []

    def add_rate_limit_listener(self, listener: RateLimitListener) -> None:
        self._listeners.append(listener)

    # ── Endpoints ───────────────────────────────────────────────────────

    async def get_repository(self, repo: RepoIdentity) -> dict[str, Any]:
        resp = await self._api_get(f"/repos/{repo.owner}/{repo.name}")
        data: dict[str, Any] = resp.json()
        return data

    async def list_contributors(self, repo: RepoIdentity) -> list[dict[str, Any]]:
        resp = await self._api_get(
            f"/repos/{repo.owner}/{repo.name}/contributors",
            params={"per_page": str(_PAGE_SIZE)},
        )
        # GitHub answers 204 for repositories without commits.
        if resp.status_code == 204 or not resp.content:
            return []
        return _expect_list(resp.json())

    async def get_commit_activity(self, repo: RepoIdentity) -> list[dict[str, Any]] | None:
        resp = await self._api_get(f"/repos/{repo.owner}/{repo.name}/stats/commit_activity")
        if resp.status_code == 202:
            return None
        if resp.status_code == 204 or not resp.content:
            return []
        return _expect_list(resp.json())

    async def list_commits(
        self, repo: RepoIdentity, since: datetime
    ) -> list[dict[str, Any]]:
        resp = await self._api_get(
            f"/repos/{repo.owner}/{repo.name}/commits",
            params={
                "since": since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                "per_page": str(_PAGE_SIZE),
            },
        )
        return _expect_list(resp.json())

    async def get_contents(
        self, repo: RepoIdentity, path: str
    ) -> list[dict[str, Any]] | dict[str, Any]:
        endpoint = f"/repos/{repo.owner}/{repo.name}/contents"
        if path:
            endpoint = f"{endpoint}/{quote(path, safe='/')}"
        resp = await self._api_get(endpoint)
        data: list[dict[str, Any]] | dict[str, Any] = resp.json()
        return data

    async def get_rate_limit(self) -> RateLimitSnapshot:
        resp = await self._api_get("/rate_limit")
        rate = resp.json().get("rate", {})
        snapshot = RateLimitSnapshot(
            limit=int(rate.get("limit", 0)),
            remaining=int(rate.get("remaining", 0)),
            reset_at=int(rate.get("reset", 0)),
            authenticated=self._credentials.is_authenticated(),
            used=rate.get("used"),
        )
        return snapshot

    # ── HTTP plumbing ───────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": _USER_AGENT,
        }
        token = self._credentials.current_credential()
        if token is not None:
            headers["Authorization"] = f"Bearer {token.value}"
        return headers

    async def _api_get(
        self,
        endpoint: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform a GitHub API GET request with error translation."""
        url = f"{self._base_url}{endpoint}"
        try:
            resp = await self._client.get(url, headers=self._headers(), params=params)
        except httpx.HTTPError as exc:
            raise FetchFailedError(f"Network error fetching {endpoint}: {exc}") from exc

        self._publish_rate_limit(resp)

        if resp.status_code in (200, 202, 204):
            return resp

        if resp.status_code == 404:
            raise NotFoundError(
                "The requested resource could not be found. "
                "The repository may be private or does not exist."
            )

        if resp.status_code in (403, 429) and _is_rate_limited(resp):
            reset_at = _int_header(resp, "x-ratelimit-reset")
            raise RateLimitedError(
                f"GitHub API rate limit exceeded. Resets at {_format_reset(reset_at)}.",
                reset_at=reset_at,
            )

        if resp.status_code in (401, 403):
            raise NotFoundError(
                "Access denied. The repository may be private or the token may be invalid."
            )

        raise FetchFailedError(f"GitHub API returned HTTP {resp.status_code} for {endpoint}")

    def _publish_rate_limit(self, resp: httpx.Response) -> None:
        limit = _int_header(resp, "x-ratelimit-limit")
        remaining = _int_header(resp, "x-ratelimit-remaining")
        reset_at = _int_header(resp, "x-ratelimit-reset")
        if limit is None or remaining is None or reset_at is None:
            return
        snapshot = RateLimitSnapshot(
            limit=limit,
            remaining=remaining,
            reset_at=reset_at,
            authenticated=self._credentials.is_authenticated(),
            used=_int_header(resp, "x-ratelimit-used"),
        )
        for listener in self._listeners:
            listener(snapshot)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _is_rate_limited(resp: httpx.Response) -> bool:
    if resp.status_code == 429:
        return True
    if resp.headers.get("x-ratelimit-remaining") == "0":
        return True
    try:
        message = str(resp.json().get("message", ""))
    except (ValueError, AttributeError):
        return False
    # Secondary (abuse) limits keep remaining > 0 but say so in the body.
    return "rate limit" in message.lower()


def _int_header(resp: httpx.Response, name: str) -> int | None:
    raw = resp.headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _format_reset(reset_at: int | None) -> str:
    if reset_at is None:
        return "an unknown time"
    try:
        return datetime.fromtimestamp(reset_at, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S UTC"
        )
    except (ValueError, OSError, OverflowError):
        return str(reset_at)


def _expect_list(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        raise FetchFailedError("GitHub API returned an unexpected payload shape.")
    return data

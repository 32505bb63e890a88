"""Repository data use case: cache-aware, quota-aware resource fetchers.

This is the single entry point the interface layer talks to.  It depends
only on the :class:`GitHubGateway` port, the credential manager, the
rate-limit tracker and two :class:`TTLCache` instances (repository metadata
and file/tree content).

Every fetcher follows the same shape: build a cache key, return a cache hit
immediately, skip known-binary paths, call GitHub with the active
credential, normalise the payload into domain entities and cache it.  Rate
limiting is retried a bounded number of times; listing operations degrade to
empty results on other failures, single-resource operations raise.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, TypeVar

from repo_analyzer.domain.entities import (
    CommitActivity,
    Contributor,
    FileNode,
    NodeKind,
    RateLimitSnapshot,
    RepoDetails,
)
from repo_analyzer.domain.exceptions import (
    FetchFailedError,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    RepoAnalyzerError,
    StillComputingError,
)
from repo_analyzer.domain.ports.github_gateway import GitHubGateway
from repo_analyzer.domain.value_objects import AccessToken, RepoIdentity, normalize_path
from repo_analyzer.infrastructure.credentials import CredentialManager
from repo_analyzer.services.metrics import bucket_commits_by_week
from repo_analyzer.services.path_classifier import should_skip
from repo_analyzer.services.rate_limit import RateLimitTracker
from repo_analyzer.services.ttl_cache import CacheStats, TTLCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EMPTY_WEEK = (0, 0, 0, 0, 0, 0, 0)
_DEFAULT_AVATAR = "https://avatars.githubusercontent.com/u/0"

UNAUTHENTICATED_LIMIT = 60


class RepoDataService:
    """Fetches repository data from GitHub through the caches.

    Parameters
    ----------
    gateway:
        Adapter that performs the raw GitHub REST calls.
    credentials:
        Holder of the active access token (read by the gateway per call).
    rate_limits:
        Tracker used to decide whether a rate-limited call is worth retrying.
    repo_cache:
        Cache for repository details, contributors and commit activity.
    content_cache:
        Cache for directory listings, file contents and file trees.
    max_depth:
        Default recursion depth for :meth:`build_file_tree`.
    directory_cap:
        Maximum number of sibling directories expanded per tree level.
    max_rate_limit_retries:
        Retries after a rate-limit rejection before giving up.
    max_retry_wait_seconds:
        A rate-limited call is only retried if the quota resets sooner.
    stats_max_retries / stats_retry_delay_seconds:
        Polling budget while GitHub computes commit statistics.
    max_file_size_bytes:
        Files above this size are replaced by a placeholder text.
    commit_fallback_days:
        Window of raw commits bucketed when the statistics endpoint fails.
    single_flight:
        Share one in-flight request between concurrent identical misses.
    sleep / now:
        Injectable for tests.
    """

    def __init__(
        self,
        gateway: GitHubGateway,
        credentials: CredentialManager,
        rate_limits: RateLimitTracker,
        repo_cache: TTLCache[Any],
        content_cache: TTLCache[Any],
        *,
        max_depth: int = 3,
        directory_cap: int = 25,
        max_rate_limit_retries: int = 2,
        max_retry_wait_seconds: int = 30,
        stats_max_retries: int = 3,
        stats_retry_delay_seconds: float = 3.0,
        max_file_size_bytes: int = 2 * 1024 * 1024,
        commit_fallback_days: int = 30,
        single_flight: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._rate_limits = rate_limits
        self._repo_cache = repo_cache
        self._content_cache = content_cache
        self._max_depth = max_depth
        self._directory_cap = directory_cap
        self._max_retries = max_rate_limit_retries
        self._max_retry_wait = max_retry_wait_seconds
        self._stats_max_retries = stats_max_retries
        self._stats_delay = stats_retry_delay_seconds
        self._max_file_size = max_file_size_bytes
        self._fallback_days = commit_fallback_days
        self._single_flight_enabled = single_flight
        self._sleep = sleep
        self._now = now
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    # ── Repository metadata ─────────────────────────────────────────────

    async def get_repo_details(self, owner: str, repo: str) -> RepoDetails:
        identity = RepoIdentity.from_parts(owner, repo)
        key = f"repo-details:{identity.full_name}"

        async def load() -> RepoDetails:
            data = await self._with_rate_limit_retry(
                lambda: self._gateway.get_repository(identity)
            )
            return _to_repo_details(data)

        try:
            return await self._cached(self._repo_cache, key, load)
        except NotFoundError as exc:
            raise NotFoundError(
                "The requested repository details could not be found. "
                "The repository may be private or does not exist."
            ) from exc
        except FetchFailedError as exc:
            logger.error("Error fetching repository details for %s: %s", identity.full_name, exc)
            raise FetchFailedError(
                "Unable to fetch repository details. GitHub API may be unavailable."
            ) from exc

    async def get_contributors(self, owner: str, repo: str) -> list[Contributor]:
        identity = RepoIdentity.from_parts(owner, repo)
        key = f"contributors:{identity.full_name}"

        async def load() -> list[Contributor]:
            data = await self._with_rate_limit_retry(
                lambda: self._gateway.list_contributors(identity)
            )
            return [_to_contributor(item, identity) for item in data]

        try:
            return await self._cached(self._repo_cache, key, load, keep=bool)
        except (NotFoundError, FetchFailedError) as exc:
            logger.warning(
                "Returning empty contributors for %s due to API error: %s",
                identity.full_name,
                exc,
            )
            return []

    # ── Commit activity ─────────────────────────────────────────────────

    async def get_commit_activity(self, owner: str, repo: str) -> list[CommitActivity]:
        identity = RepoIdentity.from_parts(owner, repo)
        key = f"commit-activity:{identity.full_name}"

        async def load() -> list[CommitActivity]:
            try:
                return await self._poll_commit_activity(identity)
            except FetchFailedError as exc:
                logger.warning(
                    "Commit statistics failed for %s (%s); bucketing recent commits instead",
                    identity.full_name,
                    exc,
                )
            try:
                return await self._commit_activity_from_commits(identity)
            except (NotFoundError, FetchFailedError) as exc:
                logger.warning(
                    "Alternative commit fetching also failed for %s: %s",
                    identity.full_name,
                    exc,
                )
                return []

        try:
            return await self._cached(self._repo_cache, key, load, keep=bool)
        except NotFoundError as exc:
            raise NotFoundError(
                "Repository not found or you don't have access to it."
            ) from exc

    async def _poll_commit_activity(self, identity: RepoIdentity) -> list[CommitActivity]:
        """Call the statistics endpoint until GitHub stops answering 202."""
        for attempt in range(self._stats_max_retries + 1):
            data = await self._with_rate_limit_retry(
                lambda: self._gateway.get_commit_activity(identity),
                context=" when fetching commit activity",
            )
            if data is not None:
                return [_to_commit_activity(week) for week in data]

            if attempt < self._stats_max_retries:
                logger.info(
                    "GitHub is computing commit activity for %s, retrying in %.0f seconds (%d/%d)",
                    identity.full_name,
                    self._stats_delay,
                    attempt + 1,
                    self._stats_max_retries,
                )
                await self._sleep(self._stats_delay)

        raise StillComputingError(
            "GitHub is still computing commit activity statistics. "
            "Please try again in a few moments."
        )

    async def _commit_activity_from_commits(self, identity: RepoIdentity) -> list[CommitActivity]:
        now = self._now()
        since = now - timedelta(days=self._fallback_days)
        commits = await self._with_rate_limit_retry(
            lambda: self._gateway.list_commits(identity, since),
            context=" when fetching commit activity",
        )
        if not commits:
            return []

        moments = [m for m in (_commit_time(c) for c in commits) if m is not None]
        return bucket_commits_by_week(moments, now=now)

    # ── Contents and trees ──────────────────────────────────────────────

    async def get_repo_contents(self, owner: str, repo: str, path: str = "") -> list[FileNode]:
        """List a directory, or return the single file node at *path*."""
        identity = RepoIdentity.from_parts(owner, repo)
        path = normalize_path(path)
        key = f"repo-contents:{identity.full_name}:{path}"

        if should_skip(path):
            logger.warning("Skipping path %s as it likely contains binary or large files", path)
            return []

        async def load() -> list[FileNode]:
            data = await self._with_rate_limit_retry(
                lambda: self._gateway.get_contents(identity, path),
                context=f" when fetching contents for path: {path or '/'}",
            )
            if isinstance(data, list):
                return [_to_file_node(item, with_content=False) for item in data]
            return [_to_file_node(data, with_content=True)]

        try:
            return await self._cached(self._content_cache, key, load)
        except NotFoundError:
            logger.warning("Path %s not found in %s, returning empty list", path or "/", identity.full_name)
            return []
        except FetchFailedError as exc:
            logger.warning("Error fetching contents for %s, returning empty list: %s", path or "/", exc)
            return []

    async def get_file_content(self, owner: str, repo: str, path: str) -> str:
        identity = RepoIdentity.from_parts(owner, repo)
        path = normalize_path(path)
        if not path:
            raise InvalidInputError("A file path is required.")
        key = f"file-content:{identity.full_name}:{path}"

        if should_skip(path):
            return f"// File skipped: {path} (likely binary or too large)"

        async def load() -> str:
            data = await self._with_rate_limit_retry(
                lambda: self._gateway.get_contents(identity, path),
                context=" when fetching file content",
            )
            if isinstance(data, list):
                raise InvalidInputError("Path points to a directory, not a file.")

            size = int(data.get("size") or 0)
            if size > self._max_file_size:
                return (
                    f"// File too large to display: {path} ({format_size(size)}). "
                    f"Maximum size limit is {self._max_file_size / (1024 * 1024):g}MB."
                )

            if "content" not in data:
                raise FetchFailedError("File content not available.")
            return _decode_content(data.get("content"), data.get("encoding"))

        try:
            return await self._cached(self._content_cache, key, load)
        except NotFoundError as exc:
            raise NotFoundError(f"File not found: {path}") from exc
        except FetchFailedError as exc:
            logger.error("Error fetching file content for %s: %s", path, exc)
            raise FetchFailedError(f"Error loading file content for {path}: {exc}") from exc

    async def build_file_tree(
        self,
        owner: str,
        repo: str,
        path: str = "",
        max_depth: int | None = None,
        current_depth: int = 0,
    ) -> list[FileNode]:
        """Return the entries under *path* with directories expanded recursively.

        A directory at the depth boundary gets ``children=[]``; directories
        past :attr:`directory_cap` at one level are returned unexpanded
        (``children=None``); a directory whose expansion failed gets
        ``children=[]``.
        """
        identity = RepoIdentity.from_parts(owner, repo)
        path = normalize_path(path)
        depth_limit = self._max_depth if max_depth is None else max_depth
        if depth_limit < 0 or current_depth < 0:
            raise InvalidInputError("Tree depth must not be negative.")
        key = f"file-tree:{identity.full_name}:{path}:{depth_limit}:{current_depth}"

        if current_depth >= depth_limit:
            logger.debug("Reached maximum depth %d at %s, not fetching children", depth_limit, path)
            return []

        incomplete = False

        async def load() -> list[FileNode]:
            nonlocal incomplete
            contents = await self.get_repo_contents(owner, repo, path)
            directories = [item.path for item in contents if item.is_directory]
            expandable = set(directories[: self._directory_cap])
            if len(directories) > self._directory_cap:
                logger.info(
                    "Expanding %d of %d directories under %s",
                    self._directory_cap,
                    len(directories),
                    path or "/",
                )

            result: list[FileNode] = []
            for item in contents:
                if item.path not in expandable:
                    result.append(item)
                    continue
                try:
                    children = await self.build_file_tree(
                        owner, repo, item.path, depth_limit, current_depth + 1
                    )
                except RepoAnalyzerError as exc:
                    logger.warning("Error processing directory %s: %s", item.path, exc)
                    children = []
                    incomplete = True
                result.append(replace(item, children=children))
            return result

        return await self._cached(self._content_cache, key, load, keep=lambda _: not incomplete)

    # ── Quota and credentials ───────────────────────────────────────────

    async def get_rate_limit(self) -> RateLimitSnapshot:
        return await self._rate_limits.get_rate_limit()

    def set_credential(self, token: str) -> bool:
        """Activate *token* for all subsequent calls and forget the old quota snapshot."""
        authenticated = self._credentials.set_credential(token)
        self._rate_limits.invalidate()
        return authenticated

    async def apply_credential(self, token: str) -> RateLimitSnapshot:
        """Activate *token* and confirm GitHub granted the authenticated quota.

        On failure the previously active credential is restored.
        """
        previous = self._credentials.current_credential()
        self.set_credential(token)
        try:
            snapshot = await self._rate_limits.get_rate_limit()
        except RepoAnalyzerError as exc:
            self._restore_credential(previous)
            raise FetchFailedError(
                "Token verification failed - the token may be invalid "
                "or GitHub API may be unavailable."
            ) from exc

        if snapshot.limit <= UNAUTHENTICATED_LIMIT:
            self._restore_credential(previous)
            raise InvalidInputError("Token verification failed - it did not increase the API rate limit.")
        return snapshot

    def _restore_credential(self, token: AccessToken | None) -> None:
        self._credentials.restore(token)
        self._rate_limits.invalidate()

    def is_authenticated(self) -> bool:
        return self._credentials.is_authenticated()

    def current_credential(self) -> AccessToken | None:
        return self._credentials.current_credential()

    def clear_caches(self) -> None:
        self._repo_cache.clear()
        self._content_cache.clear()
        self._rate_limits.invalidate()

    def cache_stats(self) -> dict[str, CacheStats]:
        return {
            self._repo_cache.name: self._repo_cache.stats(),
            self._content_cache.name: self._content_cache.stats(),
        }

    # ── Caching and retry plumbing ──────────────────────────────────────

    async def _cached(
        self,
        cache: TTLCache[Any],
        key: str,
        load: Callable[[], Awaitable[T]],
        keep: Callable[[T], bool] | None = None,
    ) -> T:
        hit = cache.get(key)
        if hit is not None:
            logger.debug("Cache hit for %s", key)
            return hit  # type: ignore[no-any-return]

        async def load_and_store() -> T:
            value = await load()
            if keep is None or keep(value):
                cache.set(key, value)
            return value

        if not self._single_flight_enabled:
            return await load_and_store()
        return await self._single_flight(key, load_and_store)

    async def _single_flight(self, key: str, load: Callable[[], Awaitable[T]]) -> T:
        """Let concurrent callers for *key* await one shared task.

        The task is shielded: a caller that gives up does not cancel it, so
        the result still lands in the cache.
        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(load())
            self._in_flight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        else:
            logger.debug("Joining in-flight request for %s", key)
        return await asyncio.shield(task)  # type: ignore[no-any-return]

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception as retrieved when every caller went away.
            task.exception()

    async def _with_rate_limit_retry(
        self,
        call: Callable[[], Awaitable[T]],
        context: str = "",
    ) -> T:
        retries = 0
        while True:
            try:
                return await call()
            except RateLimitedError as exc:
                wait = await self._retry_wait(retries)
                if wait is None:
                    raise self._rate_limited(context, exc.reset_at) from exc
                retries += 1
                logger.info(
                    "Rate limited%s, retrying in %d seconds (retry %d/%d)",
                    context,
                    wait,
                    retries,
                    self._max_retries,
                )
                await self._sleep(wait)

    async def _retry_wait(self, retries: int) -> int | None:
        """Seconds to wait before the next attempt, or ``None`` to give up."""
        if retries >= self._max_retries:
            return None
        try:
            seconds = await self._rate_limits.seconds_until_reset()
        except RepoAnalyzerError as exc:
            logger.error("Failed to get rate limit info for retry: %s", exc)
            return None
        if seconds >= self._max_retry_wait:
            return None
        return seconds + 1

    def _rate_limited(self, context: str, reset_at: int | None) -> RateLimitedError:
        if self._credentials.is_authenticated():
            advice = "Try again later."
        else:
            advice = (
                "Add a GitHub token to increase your rate limit "
                "from 60 to 5,000 requests per hour."
            )
        return RateLimitedError(
            f"GitHub API rate limit exceeded{context}. {advice}", reset_at=reset_at
        )


# ── Normalisation helpers ───────────────────────────────────────────────────


def _to_repo_details(data: dict[str, Any]) -> RepoDetails:
    owner = data.get("owner") or {}
    license_info = data.get("license") or {}
    return RepoDetails(
        owner=owner.get("login", ""),
        name=data.get("name", ""),
        full_name=data.get("full_name", ""),
        description=data.get("description") or "",
        stars=int(data.get("stargazers_count") or 0),
        forks=int(data.get("forks_count") or 0),
        watchers=int(data.get("watchers_count") or 0),
        primary_language=data.get("language") or "Not specified",
        license=license_info.get("name") or "No license",
        updated_at=data.get("updated_at") or "",
        created_at=data.get("created_at") or "",
        url=data.get("html_url") or "",
        default_branch=data.get("default_branch") or "main",
        size=int(data.get("size") or 0),
        open_issues_count=int(data.get("open_issues_count") or 0),
    )


def _to_contributor(item: dict[str, Any], identity: RepoIdentity) -> Contributor:
    return Contributor(
        login=item.get("login") or "anonymous",
        id=int(item.get("id") or 0),
        avatar_url=item.get("avatar_url") or _DEFAULT_AVATAR,
        url=item.get("html_url") or f"https://github.com/{identity.owner}",
        contributions=int(item.get("contributions") or 0),
    )


def _to_commit_activity(week: Any) -> CommitActivity:
    if not isinstance(week, dict):
        logger.warning("Invalid week data in commit activity: %r", week)
        return CommitActivity(week=0, total=0, days=list(_EMPTY_WEEK))

    days = week.get("days")
    if not isinstance(days, list) or len(days) != 7:
        days = list(_EMPTY_WEEK)
    return CommitActivity(
        week=week["week"] if isinstance(week.get("week"), int) else 0,
        total=week["total"] if isinstance(week.get("total"), int) else 0,
        days=[d if isinstance(d, int) else 0 for d in days],
    )


def _to_file_node(item: dict[str, Any], *, with_content: bool) -> FileNode:
    kind = NodeKind.DIRECTORY if item.get("type") == "dir" else NodeKind.FILE
    content = None
    if with_content and kind is NodeKind.FILE and item.get("content"):
        content = _decode_content(item["content"], item.get("encoding"))
    return FileNode(
        name=item.get("name", ""),
        path=item.get("path", ""),
        kind=kind,
        size=int(item.get("size") or 0),
        url=item.get("html_url") or "#",
        content=content,
    )


def _decode_content(raw: str | None, encoding: str | None = "base64") -> str:
    if not raw:
        return ""
    if encoding not in (None, "base64"):
        return raw
    try:
        return base64.b64decode(raw).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as exc:
        raise FetchFailedError("File content could not be decoded.") from exc


def _commit_time(commit: dict[str, Any]) -> datetime | None:
    raw = ((commit.get("commit") or {}).get("author") or {}).get("date")
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring commit with unparseable date %r", raw)
        return None


def format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} bytes"

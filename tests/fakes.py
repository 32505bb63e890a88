"""Test doubles shared by the service and interface tests."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from repo_analyzer.domain.entities import RateLimitSnapshot
from repo_analyzer.domain.value_objects import RepoIdentity
from repo_analyzer.infrastructure.credentials import CredentialManager
from repo_analyzer.services.rate_limit import RateLimitTracker
from repo_analyzer.services.repo_data import RepoDataService
from repo_analyzer.services.ttl_cache import TTLCache

START = 1_700_000_000.0  # 2023-11-14 22:13:20 UTC

CLASSIC_TOKEN = "a" * 40


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def repo_payload(owner: str = "octo", name: str = "demo") -> dict[str, Any]:
    return {
        "owner": {"login": owner},
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": None,
        "stargazers_count": 42,
        "forks_count": 7,
        "watchers_count": 42,
        "language": "Python",
        "license": {"name": "MIT License"},
        "updated_at": "2024-01-02T00:00:00Z",
        "created_at": "2020-01-01T00:00:00Z",
        "html_url": f"https://github.com/{owner}/{name}",
        "default_branch": "main",
        "size": 1234,
        "open_issues_count": 3,
    }


def entry(path: str, kind: str = "file", size: int = 10) -> dict[str, Any]:
    return {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "type": kind,
        "size": size,
        "html_url": f"https://github.com/octo/demo/blob/main/{path}",
    }


class FakeGateway:
    """Scripted :class:`GitHubGateway`.

    ``script(method, *outcomes)`` queues results for a method; each call
    consumes one outcome and the last one repeats.  An exception instance is
    raised instead of returned.  Directory contents are keyed by path in
    :attr:`contents`.
    """

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self.content_calls: list[str] = []
        self.outcomes: dict[str, list[Any]] = {
            "get_repository": [repo_payload()],
            "list_contributors": [[]],
            "get_commit_activity": [[]],
            "list_commits": [[]],
        }
        self.contents: dict[str, Any] = {}
        self.rate_limit = RateLimitSnapshot(
            limit=60, remaining=60, reset_at=int(START) + 3600, authenticated=False
        )
        self.gate: asyncio.Event | None = None

    def script(self, method: str, *outcomes: Any) -> None:
        self.outcomes[method] = list(outcomes)

    async def _respond(self, method: str) -> Any:
        self.calls[method] += 1
        if self.gate is not None:
            await self.gate.wait()
        queue = self.outcomes[method]
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def get_repository(self, repo: RepoIdentity) -> dict[str, Any]:
        return await self._respond("get_repository")

    async def list_contributors(self, repo: RepoIdentity) -> list[dict[str, Any]]:
        return await self._respond("list_contributors")

    async def get_commit_activity(self, repo: RepoIdentity) -> list[dict[str, Any]] | None:
        return await self._respond("get_commit_activity")

    async def list_commits(self, repo: RepoIdentity, since: datetime) -> list[dict[str, Any]]:
        self.since = since
        return await self._respond("list_commits")

    async def get_contents(self, repo: RepoIdentity, path: str) -> Any:
        self.calls["get_contents"] += 1
        self.content_calls.append(path)
        outcome = self.contents.get(path, [])
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def get_rate_limit(self) -> RateLimitSnapshot:
        self.calls["get_rate_limit"] += 1
        return self.rate_limit


@dataclass
class Harness:
    service: RepoDataService
    gateway: FakeGateway
    clock: FakeClock
    credentials: CredentialManager
    tracker: RateLimitTracker
    sleeps: list[float] = field(default_factory=list)


def make_harness(token: str | None = None, **service_kwargs: Any) -> Harness:
    gateway = FakeGateway()
    clock = FakeClock()
    credentials = CredentialManager(token)
    tracker = RateLimitTracker(
        gateway, TTLCache(30, clock=clock, name="rate-limit"), clock=clock
    )
    sleeps: list[float] = []

    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    service = RepoDataService(
        gateway,
        credentials,
        tracker,
        TTLCache(600, clock=clock, name="repo"),
        TTLCache(1800, clock=clock, name="content"),
        sleep=record_sleep,
        now=lambda: datetime.fromtimestamp(clock(), tz=timezone.utc),
        **service_kwargs,
    )
    return Harness(service, gateway, clock, credentials, tracker, sleeps)

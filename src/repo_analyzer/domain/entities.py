"""Domain entities: pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class NodeKind(str, Enum):
    """Whether a repository entry is a file or a directory."""

    FILE = "file"
    DIRECTORY = "directory"


class Trend(str, Enum):
    """Direction of recent commit activity."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True, slots=True)
class FileNode:
    """A single entry of a repository listing or tree.

    ``children`` is only meaningful for directories: ``None`` means the
    directory was not expanded, an empty list means it was expanded (or its
    expansion failed) and yielded nothing.
    """

    name: str
    path: str
    kind: NodeKind
    size: int = 0
    url: str = "#"
    content: str | None = None
    children: list[FileNode] | None = None

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY


@dataclass(frozen=True, slots=True)
class RepoDetails:
    """High-level metadata about a GitHub repository."""

    owner: str
    name: str
    full_name: str
    description: str
    stars: int
    forks: int
    watchers: int
    primary_language: str
    license: str
    updated_at: str
    created_at: str
    url: str
    default_branch: str
    size: int
    open_issues_count: int


@dataclass(frozen=True, slots=True)
class Contributor:
    login: str
    id: int
    avatar_url: str
    url: str
    contributions: int


@dataclass(frozen=True, slots=True)
class CommitActivity:
    """Commits in one week; ``days[0]`` is Sunday."""

    week: int  # unix seconds, start of week
    total: int
    days: list[int] = field(default_factory=lambda: [0] * 7)


@dataclass(frozen=True, slots=True)
class RateLimitSnapshot:
    """The current quota window as last reported by GitHub."""

    limit: int
    remaining: int
    reset_at: int  # unix seconds
    authenticated: bool
    used: int | None = None


@dataclass(frozen=True, slots=True)
class ActivityTrend:
    trend: Trend
    change_percent: float


@dataclass(frozen=True, slots=True)
class RepoMetrics:
    """Statistics derived from commit activity and contributors."""

    average_commits_per_week: float
    total_commits: int
    most_active_contributors: list[Contributor]
    activity_trend: ActivityTrend

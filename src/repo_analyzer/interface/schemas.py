"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from pydantic import BaseModel, field_validator

from repo_analyzer.domain.entities import (
    CommitActivity,
    Contributor,
    FileNode,
    RateLimitSnapshot,
    RepoDetails,
    RepoMetrics,
)
from repo_analyzer.services.rate_limit import is_approaching_limit
from repo_analyzer.services.ttl_cache import CacheStats


class ParseUrlRequest(BaseModel):
    """Request body for ``POST /repos/parse``."""

    url: str

    @field_validator("url")
    @classmethod
    def _must_not_be_empty(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "url must not be empty."
            raise ValueError(msg)
        return stripped


class RepoIdentityResponse(BaseModel):
    owner: str
    repo: str


class RepoDetailsResponse(BaseModel):
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

    @classmethod
    def from_entity(cls, details: RepoDetails) -> RepoDetailsResponse:
        return cls.model_validate(details, from_attributes=True)


class ContributorResponse(BaseModel):
    login: str
    id: int
    avatar_url: str
    url: str
    contributions: int

    @classmethod
    def from_entity(cls, contributor: Contributor) -> ContributorResponse:
        return cls.model_validate(contributor, from_attributes=True)


class CommitActivityResponse(BaseModel):
    week: int
    total: int
    days: list[int]

    @classmethod
    def from_entity(cls, week: CommitActivity) -> CommitActivityResponse:
        return cls(week=week.week, total=week.total, days=list(week.days))


class FileNodeResponse(BaseModel):
    name: str
    path: str
    type: str
    size: int
    url: str
    content: str | None = None
    children: list[FileNodeResponse] | None = None

    @classmethod
    def from_entity(cls, node: FileNode) -> FileNodeResponse:
        children = None
        if node.children is not None:
            children = [cls.from_entity(child) for child in node.children]
        return cls(
            name=node.name,
            path=node.path,
            type=node.kind.value,
            size=node.size,
            url=node.url,
            content=node.content,
            children=children,
        )


FileNodeResponse.model_rebuild()


class FileContentResponse(BaseModel):
    path: str
    content: str


class ActivityTrendResponse(BaseModel):
    trend: str
    change_percent: float


class MetricsResponse(BaseModel):
    average_commits_per_week: float
    total_commits: int
    most_active_contributors: list[ContributorResponse]
    activity_trend: ActivityTrendResponse

    @classmethod
    def from_entity(cls, metrics: RepoMetrics) -> MetricsResponse:
        return cls(
            average_commits_per_week=metrics.average_commits_per_week,
            total_commits=metrics.total_commits,
            most_active_contributors=[
                ContributorResponse.from_entity(c) for c in metrics.most_active_contributors
            ],
            activity_trend=ActivityTrendResponse(
                trend=metrics.activity_trend.trend.value,
                change_percent=metrics.activity_trend.change_percent,
            ),
        )


class RateLimitResponse(BaseModel):
    limit: int
    remaining: int
    reset: int
    used: int | None = None
    is_authenticated: bool
    approaching_limit: bool

    @classmethod
    def from_entity(cls, snapshot: RateLimitSnapshot) -> RateLimitResponse:
        return cls(
            limit=snapshot.limit,
            remaining=snapshot.remaining,
            reset=snapshot.reset_at,
            used=snapshot.used,
            is_authenticated=snapshot.authenticated,
            approaching_limit=is_approaching_limit(snapshot.remaining, snapshot.limit),
        )


class TokenRequest(BaseModel):
    """Request body for ``POST /token``; ``ENV_TOKEN`` selects the configured token."""

    token: str


class TokenResponse(BaseModel):
    success: bool = True
    authenticated: bool
    rate_limit: RateLimitResponse


class TokenStatusResponse(BaseModel):
    token_found: bool
    token_length: int
    token_pattern: str | None = None


class CacheStatsResponse(BaseModel):
    total_entries: int
    expired_entries: int
    valid_entries: int

    @classmethod
    def from_entity(cls, stats: CacheStats) -> CacheStatsResponse:
        return cls.model_validate(stats, from_attributes=True)


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str

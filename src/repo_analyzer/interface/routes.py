"""API routes: thin controllers that delegate to the repository data service."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Query

from repo_analyzer.domain.exceptions import InvalidInputError
from repo_analyzer.domain.value_objects import RepoIdentity
from repo_analyzer.infrastructure.config import Settings
from repo_analyzer.interface.dependencies import get_app_settings, get_service
from repo_analyzer.interface.schemas import (
    CacheStatsResponse,
    CommitActivityResponse,
    ContributorResponse,
    ErrorResponse,
    FileContentResponse,
    FileNodeResponse,
    MetricsResponse,
    ParseUrlRequest,
    RateLimitResponse,
    RepoDetailsResponse,
    RepoIdentityResponse,
    TokenRequest,
    TokenResponse,
    TokenStatusResponse,
)
from repo_analyzer.services.metrics import calculate_metrics
from repo_analyzer.services.repo_data import RepoDataService

router = APIRouter()

_ENV_TOKEN = "ENV_TOKEN"
_TOKEN_PLACEHOLDER = "your_personal_access_token_here"

_REPO_ERRORS = {
    404: {"model": ErrorResponse, "description": "Repository or path not found"},
    422: {"model": ErrorResponse, "description": "Invalid owner, repository or path"},
    429: {"model": ErrorResponse, "description": "GitHub API rate limit exceeded"},
    502: {"model": ErrorResponse, "description": "GitHub API failure"},
}


# ── Repository data ─────────────────────────────────────────────────────────


@router.post("/repos/parse", response_model=RepoIdentityResponse)
async def parse_repo_url(body: ParseUrlRequest) -> RepoIdentityResponse:
    """Extract owner and repository name from a GitHub URL."""
    identity = RepoIdentity.from_url(body.url)
    return RepoIdentityResponse(owner=identity.owner, repo=identity.name)


@router.get("/repos/{owner}/{repo}", response_model=RepoDetailsResponse, responses=_REPO_ERRORS)
async def repo_details(
    owner: str,
    repo: str,
    service: RepoDataService = Depends(get_service),
) -> RepoDetailsResponse:
    details = await service.get_repo_details(owner, repo)
    return RepoDetailsResponse.from_entity(details)


@router.get(
    "/repos/{owner}/{repo}/contributors",
    response_model=list[ContributorResponse],
    responses=_REPO_ERRORS,
)
async def contributors(
    owner: str,
    repo: str,
    service: RepoDataService = Depends(get_service),
) -> list[ContributorResponse]:
    result = await service.get_contributors(owner, repo)
    return [ContributorResponse.from_entity(c) for c in result]


@router.get(
    "/repos/{owner}/{repo}/commit-activity",
    response_model=list[CommitActivityResponse],
    responses={**_REPO_ERRORS, 503: {"description": "GitHub is still computing statistics"}},
)
async def commit_activity(
    owner: str,
    repo: str,
    service: RepoDataService = Depends(get_service),
) -> list[CommitActivityResponse]:
    result = await service.get_commit_activity(owner, repo)
    return [CommitActivityResponse.from_entity(w) for w in result]


@router.get("/repos/{owner}/{repo}/metrics", response_model=MetricsResponse, responses=_REPO_ERRORS)
async def metrics(
    owner: str,
    repo: str,
    service: RepoDataService = Depends(get_service),
) -> MetricsResponse:
    activity, people = await asyncio.gather(
        service.get_commit_activity(owner, repo),
        service.get_contributors(owner, repo),
    )
    return MetricsResponse.from_entity(calculate_metrics(activity, people))


@router.get(
    "/repos/{owner}/{repo}/contents",
    response_model=list[FileNodeResponse],
    responses=_REPO_ERRORS,
)
async def contents(
    owner: str,
    repo: str,
    path: str = "",
    service: RepoDataService = Depends(get_service),
) -> list[FileNodeResponse]:
    nodes = await service.get_repo_contents(owner, repo, path)
    return [FileNodeResponse.from_entity(n) for n in nodes]


@router.get("/repos/{owner}/{repo}/file", response_model=FileContentResponse, responses=_REPO_ERRORS)
async def file_content(
    owner: str,
    repo: str,
    path: str = Query(..., min_length=1),
    service: RepoDataService = Depends(get_service),
) -> FileContentResponse:
    content = await service.get_file_content(owner, repo, path)
    return FileContentResponse(path=path, content=content)


@router.get(
    "/repos/{owner}/{repo}/tree",
    response_model=list[FileNodeResponse],
    responses=_REPO_ERRORS,
)
async def file_tree(
    owner: str,
    repo: str,
    path: str = "",
    max_depth: int | None = Query(None, ge=0, le=10),
    service: RepoDataService = Depends(get_service),
) -> list[FileNodeResponse]:
    nodes = await service.build_file_tree(owner, repo, path, max_depth=max_depth)
    return [FileNodeResponse.from_entity(n) for n in nodes]


# ── Quota and credentials ───────────────────────────────────────────────────


@router.get("/rate-limit", response_model=RateLimitResponse)
async def rate_limit(service: RepoDataService = Depends(get_service)) -> RateLimitResponse:
    snapshot = await service.get_rate_limit()
    return RateLimitResponse.from_entity(snapshot)


@router.post("/token", response_model=TokenResponse, responses={422: {"description": "Invalid token"}})
async def set_token(
    body: TokenRequest,
    service: RepoDataService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> TokenResponse:
    """Activate a GitHub token for every subsequent API call."""
    token = body.token
    if token == _ENV_TOKEN:
        if settings.github_token is None:
            raise InvalidInputError("No token found in environment variables.")
        token = settings.github_token.get_secret_value()
        if token == _TOKEN_PLACEHOLDER:
            raise InvalidInputError(
                "The token in the environment is still the placeholder value. "
                "Please replace it with your actual GitHub token."
            )

    snapshot = await service.apply_credential(token)
    return TokenResponse(
        authenticated=service.is_authenticated(),
        rate_limit=RateLimitResponse.from_entity(snapshot),
    )


@router.get("/token/status", response_model=TokenStatusResponse)
async def token_status(service: RepoDataService = Depends(get_service)) -> TokenStatusResponse:
    """Report whether a token is active, without revealing it."""
    token = service.current_credential()
    if token is None:
        return TokenStatusResponse(token_found=False, token_length=0)
    return TokenStatusResponse(
        token_found=True,
        token_length=len(token.value),
        token_pattern=token.masked,
    )


# ── Cache administration ────────────────────────────────────────────────────


@router.get("/cache/stats", response_model=dict[str, CacheStatsResponse])
async def cache_stats(
    service: RepoDataService = Depends(get_service),
) -> dict[str, CacheStatsResponse]:
    return {name: CacheStatsResponse.from_entity(s) for name, s in service.cache_stats().items()}


@router.delete("/cache", status_code=204)
async def clear_cache(service: RepoDataService = Depends(get_service)) -> None:
    service.clear_caches()

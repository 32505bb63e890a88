"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the outermost error-handler translates them.
Messages are meant to be shown to the user as-is.
"""

from __future__ import annotations


class RepoAnalyzerError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidInputError(RepoAnalyzerError):
    """Malformed identifier, path, URL or credential (rejected before any call)."""


# ── GitHub API errors ───────────────────────────────────────────────────────


class NotFoundError(RepoAnalyzerError):
    """The resource does not exist or is not accessible with the current credential."""


class RateLimitedError(RepoAnalyzerError):
    """GitHub API quota exhausted (403 with rate-limit header, or 429)."""

    def __init__(self, message: str, reset_at: int | None = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class StillComputingError(RepoAnalyzerError):
    """GitHub is still preparing a statistic (HTTP 202); retry later."""


class FetchFailedError(RepoAnalyzerError):
    """Any other transport or provider failure."""

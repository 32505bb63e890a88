"""Value objects: self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from repo_analyzer.domain.exceptions import InvalidInputError

_NAME_RE = re.compile(r"^[A-Za-z0-9\-_.]+$")
_GITHUB_HOSTS = frozenset({"github.com", "www.github.com"})

_TOKEN_PLACEHOLDER = "your_personal_access_token_here"
_CLASSIC_TOKEN_LENGTH = 40
_PAT_PREFIX = "ghp_"


@dataclass(frozen=True, slots=True)
class RepoIdentity:
    """Validated ``owner/name`` pair of a GitHub repository.

    Built either from a URL like ``https://github.com/psf/requests`` or from
    the two parts directly.  Rejects anything that does not match the
    expected shape.
    """

    owner: str
    name: str

    @classmethod
    def from_parts(cls, owner: str, name: str) -> RepoIdentity:
        """Validate a bare owner / repository name pair."""
        owner = owner.strip()
        name = name.strip()
        for label, value in (("owner", owner), ("repository", name)):
            if not value:
                raise InvalidInputError(f"Repository {label} must not be empty.")
            if not _NAME_RE.match(value) or value in (".", ".."):
                raise InvalidInputError(f"Invalid repository {label}: '{value}'.")
        return cls(owner=owner, name=name)

    @classmethod
    def from_url(cls, url: str) -> RepoIdentity:
        """Parse and validate a raw URL string."""
        url = url.strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or parsed.hostname not in _GITHUB_HOSTS:
            raise InvalidInputError(
                f"Not a valid GitHub URL: '{url}'. "
                "Expected format: https://github.com/<owner>/<repo>"
            )

        parts = [p for p in parsed.path.split("/") if p]
        if len(parts) < 2:
            raise InvalidInputError(
                f"Invalid GitHub repository URL: '{url}'. "
                "Expected format: https://github.com/<owner>/<repo>"
            )

        name = parts[1]
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return cls.from_parts(parts[0], name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True, slots=True)
class AccessToken:
    """A GitHub credential whose *format* has been checked.

    Classic tokens are exactly 40 characters; fine-grained personal access
    tokens start with ``ghp_``.  Whether the token is actually valid is only
    known after GitHub accepts or rejects a call made with it.
    """

    value: str

    @classmethod
    def from_string(cls, token: str | None) -> AccessToken:
        token = (token or "").strip()
        if not token:
            raise InvalidInputError("Token is empty.")
        if token == _TOKEN_PLACEHOLDER:
            raise InvalidInputError(
                "Please replace the placeholder with your actual GitHub token."
            )
        if len(token) != _CLASSIC_TOKEN_LENGTH and not token.startswith(_PAT_PREFIX):
            if len(token) < 10:
                raise InvalidInputError(
                    "Token is too short - GitHub tokens are 40 characters or start with ghp_."
                )
            raise InvalidInputError("Invalid token format.")
        return cls(value=token)

    @property
    def masked(self) -> str:
        """Pattern safe to show to users (never the token itself)."""
        return f"{_PAT_PREFIX}***" if self.value.startswith(_PAT_PREFIX) else "***"

    def __repr__(self) -> str:
        return f"AccessToken({self.masked})"


def normalize_path(path: str | None) -> str:
    """Return a repository-relative path without leading / trailing slashes.

    The empty string denotes the repository root.
    """
    cleaned = (path or "").strip().strip("/")
    if any(part in ("..", ".") for part in cleaned.split("/") if cleaned):
        raise InvalidInputError(f"Invalid repository path: '{path}'.")
    if "//" in cleaned:
        raise InvalidInputError(f"Invalid repository path: '{path}'.")
    return cleaned

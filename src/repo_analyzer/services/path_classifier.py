"""Path classification: decide which paths are not worth a GitHub call.

Directory listings and file contents under these paths are either binary,
generated or huge, so fetching them only burns quota.
"""

from __future__ import annotations

SKIP_DIRS: frozenset[str] = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "__pycache__",
        ".next",
        ".venv",
        "venv",
    }
)

# Vector images (.svg) are text and stay visible.
SKIP_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".jpg", ".jpeg", ".png", ".gif", ".ico", ".bmp", ".webp",
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        ".mp4", ".webm", ".ogg", ".mp3", ".wav", ".mov", ".avi",
        ".pdf", ".zip", ".tar", ".gz", ".tgz", ".rar", ".7z",
        ".dll", ".exe", ".so", ".dylib", ".bin", ".class", ".jar", ".pyc",
    }
)

SKIP_FILENAMES: frozenset[str] = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
    }
)


def _segments(path: str) -> list[str]:
    return [part for part in path.lower().split("/") if part]


def _has_skip_extension(name: str) -> bool:
    return any(name.endswith(ext) for ext in SKIP_EXTENSIONS)


def should_skip(path: str) -> bool:
    """Return *True* if *path* likely holds binary or oversized content."""
    parts = _segments(path)
    if not parts:
        return False

    if any(part in SKIP_DIRS for part in parts):
        return True

    name = parts[-1]
    if name in SKIP_FILENAMES:
        return True
    return _has_skip_extension(name)

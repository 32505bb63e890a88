"""FastAPI application factory."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import FastAPI

from repo_analyzer.interface.dependencies import shutdown, startup
from repo_analyzer.interface.error_handlers import register_error_handlers
from repo_analyzer.interface.routes import router

_VERSION = "1.0.0"


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup / shutdown of shared resources."""
    await startup()
    yield
    await shutdown()


def create_app() -> FastAPI:
    """Build and wire the FastAPI application."""
    app = FastAPI(
        title="GitHub Repo Analyzer",
        version=_VERSION,
        description=(
            "Fetches metadata, contributors, commit activity and file trees "
            "of GitHub repositories, caching aggressively to stay within the "
            "GitHub API rate limit."
        ),
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.include_router(router)

    started = time.monotonic()

    # ── Health check (simple liveness probe) ────────────────────────────

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
            "version": _VERSION,
        }

    return app

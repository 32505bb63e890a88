from __future__ import annotations

import pytest

from repo_analyzer.services.path_classifier import should_skip


@pytest.mark.parametrize(
    "path",
    [
        "src/app.png",
        "assets/Logo.JPG",
        "node_modules/x/y.js",
        "packages/web/node_modules",
        "dist",
        "build/output.js",
        ".git/config",
        "fonts/Inter.woff2",
        "media/intro.mp4",
        "release.tar.gz",
        "bin/tool.exe",
        "package-lock.json",
        "web/yarn.lock",
    ],
)
def test_binary_generated_and_bulky_paths_are_skipped(path: str) -> None:
    assert should_skip(path)


@pytest.mark.parametrize(
    "path",
    [
        "",
        "src/app.svg",
        "src/app.py",
        "README.md",
        "docs/building.md",
        "src/distance.ts",
        "package.json",
        ".github/workflows/ci.yml",
    ],
)
def test_source_paths_are_kept(path: str) -> None:
    assert not should_skip(path)

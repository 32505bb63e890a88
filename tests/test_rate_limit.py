from __future__ import annotations

import pytest

from fakes import START, FakeClock, FakeGateway
from repo_analyzer.domain.entities import RateLimitSnapshot
from repo_analyzer.domain.exceptions import FetchFailedError
from repo_analyzer.services.rate_limit import RateLimitTracker, is_approaching_limit
from repo_analyzer.services.ttl_cache import TTLCache


class FailingGateway(FakeGateway):
    async def get_rate_limit(self) -> RateLimitSnapshot:
        self.calls["get_rate_limit"] += 1
        raise FetchFailedError("GitHub API returned HTTP 500 for /rate_limit")


def _tracker(gateway: FakeGateway, clock: FakeClock) -> RateLimitTracker:
    return RateLimitTracker(gateway, TTLCache(30, clock=clock), clock=clock)


@pytest.mark.parametrize(
    "remaining,limit,expected",
    [(5, 60, True), (6, 60, False), (499, 5000, True), (500, 5000, False), (0, 0, False)],
)
def test_is_approaching_limit(remaining: int, limit: int, expected: bool) -> None:
    assert is_approaching_limit(remaining, limit) is expected


@pytest.mark.asyncio
async def test_snapshot_is_cached_for_its_ttl() -> None:
    gateway, clock = FakeGateway(), FakeClock()
    tracker = _tracker(gateway, clock)

    first = await tracker.get_rate_limit()
    clock.advance(29)
    assert await tracker.get_rate_limit() is first
    assert gateway.calls["get_rate_limit"] == 1

    clock.advance(2)
    await tracker.get_rate_limit()
    assert gateway.calls["get_rate_limit"] == 2


@pytest.mark.asyncio
async def test_observed_headers_replace_the_snapshot() -> None:
    gateway, clock = FakeGateway(), FakeClock()
    tracker = _tracker(gateway, clock)
    observed = RateLimitSnapshot(limit=5000, remaining=4999, reset_at=int(START) + 60, authenticated=True)

    tracker.observe(observed)

    assert await tracker.get_rate_limit() == observed
    assert gateway.calls["get_rate_limit"] == 0


@pytest.mark.asyncio
async def test_invalidate_forces_refresh() -> None:
    gateway, clock = FakeGateway(), FakeClock()
    tracker = _tracker(gateway, clock)

    await tracker.get_rate_limit()
    tracker.invalidate()
    await tracker.get_rate_limit()

    assert gateway.calls["get_rate_limit"] == 2


@pytest.mark.asyncio
async def test_seconds_until_reset_is_never_negative() -> None:
    gateway, clock = FakeGateway(), FakeClock()
    gateway.rate_limit = RateLimitSnapshot(
        limit=60, remaining=0, reset_at=int(START) + 100, authenticated=False
    )
    tracker = _tracker(gateway, clock)

    assert await tracker.seconds_until_reset() == 100

    clock.advance(250)
    tracker.invalidate()
    assert await tracker.seconds_until_reset() == 0


@pytest.mark.asyncio
async def test_gateway_failure_surfaces_as_fetch_failed() -> None:
    gateway, clock = FailingGateway(), FakeClock()
    tracker = _tracker(gateway, clock)

    with pytest.raises(FetchFailedError, match="rate limit information"):
        await tracker.get_rate_limit()

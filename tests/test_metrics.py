from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from repo_analyzer.domain.entities import CommitActivity, Contributor, Trend
from repo_analyzer.services.metrics import (
    bucket_commits_by_week,
    calculate_metrics,
    week_start,
)

DAY = 86400
WEEK = 7 * DAY
# Sunday 2023-11-12 00:00:00 UTC
SUNDAY = 1_699_747_200


def _weeks(*totals: int) -> list[CommitActivity]:
    return [CommitActivity(week=SUNDAY + i * WEEK, total=t) for i, t in enumerate(totals)]


def _contributor(login: str, contributions: int) -> Contributor:
    return Contributor(
        login=login,
        id=ord(login[0]),
        avatar_url="https://avatars.githubusercontent.com/u/0",
        url=f"https://github.com/{login}",
        contributions=contributions,
    )


# ── Weekly bucketing ────────────────────────────────────────────────────────


def test_week_start_is_sunday_midnight() -> None:
    tuesday_evening = 1_700_000_000
    assert week_start(tuesday_evening) == SUNDAY
    assert week_start(SUNDAY) == SUNDAY
    assert week_start(SUNDAY - 1) == SUNDAY - WEEK
    assert datetime.fromtimestamp(SUNDAY, tz=timezone.utc).weekday() == 6


def test_three_weeks_of_commits_are_bucketed_exactly() -> None:
    now = datetime.fromtimestamp(SUNDAY + 2 * DAY + 3600, tz=timezone.utc)
    start = now - timedelta(days=21)
    moments = [start + timedelta(hours=7 * i) for i in range(72)]

    weeks = bucket_commits_by_week(moments, now=now)

    assert [w.week for w in weeks] == sorted(w.week for w in weeks)
    assert sum(w.total for w in weeks) == len(moments)
    for w in weeks:
        assert week_start(w.week) == w.week
        in_range = [m for m in moments if w.week <= m.timestamp() < w.week + WEEK]
        assert w.total == len(in_range)
        assert sum(w.days) == w.total
        assert len(w.days) == 7


def test_day_index_zero_is_sunday() -> None:
    sunday_noon = datetime.fromtimestamp(SUNDAY + 12 * 3600, tz=timezone.utc)
    saturday_night = datetime.fromtimestamp(SUNDAY + 7 * DAY - 1, tz=timezone.utc)

    weeks = bucket_commits_by_week([sunday_noon, saturday_night], now=saturday_night)

    assert weeks[-1].week == SUNDAY
    assert weeks[-1].days == [1, 0, 0, 0, 0, 0, 1]


def test_recent_weeks_are_present_without_commits() -> None:
    now = datetime.fromtimestamp(SUNDAY + DAY, tz=timezone.utc)

    weeks = bucket_commits_by_week([], now=now)

    assert [w.week for w in weeks] == [SUNDAY - 3 * WEEK, SUNDAY - 2 * WEEK, SUNDAY - WEEK, SUNDAY]
    assert all(w.total == 0 for w in weeks)


# ── Metrics ─────────────────────────────────────────────────────────────────


def test_totals_and_average() -> None:
    metrics = calculate_metrics(_weeks(1, 2, 3, 6), [])

    assert metrics.total_commits == 12
    assert metrics.average_commits_per_week == 3.0


def test_empty_input_yields_zeroes() -> None:
    metrics = calculate_metrics([], [])

    assert metrics.total_commits == 0
    assert metrics.average_commits_per_week == 0.0
    assert metrics.most_active_contributors == []
    assert metrics.activity_trend.trend is Trend.STABLE
    assert metrics.activity_trend.change_percent == 0.0


@pytest.mark.parametrize(
    "recent,trend",
    [(15, Trend.INCREASING), (11, Trend.STABLE), (9, Trend.STABLE), (5, Trend.DECREASING)],
)
def test_trend_compares_last_four_weeks_to_previous_four(recent: int, trend: Trend) -> None:
    metrics = calculate_metrics(_weeks(10, 10, 10, 10, recent, recent, recent, recent), [])

    assert metrics.activity_trend.trend is trend
    assert metrics.activity_trend.change_percent == pytest.approx((recent - 10) / 10 * 100)


def test_trend_is_stable_without_older_activity() -> None:
    metrics = calculate_metrics(_weeks(0, 0, 0, 0, 50, 50, 50, 50), [])
    assert metrics.activity_trend.trend is Trend.STABLE
    assert metrics.activity_trend.change_percent == 0.0

    short = calculate_metrics(_weeks(1, 2, 3), [])
    assert short.activity_trend.trend is Trend.STABLE


def test_top_five_contributors_keep_input_order_on_ties() -> None:
    people = [
        _contributor("a", 3),
        _contributor("b", 10),
        _contributor("c", 3),
        _contributor("d", 7),
        _contributor("e", 3),
        _contributor("f", 1),
        _contributor("g", 3),
    ]

    metrics = calculate_metrics(_weeks(1), people)

    assert [c.login for c in metrics.most_active_contributors] == ["b", "d", "a", "c", "e"]

"""Derived repository statistics: pure functions, no I/O."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from repo_analyzer.domain.entities import (
    ActivityTrend,
    CommitActivity,
    Contributor,
    RepoMetrics,
    Trend,
)

_DAY = 24 * 60 * 60
_WEEK = 7 * _DAY
# 1970-01-04 00:00 UTC, the first Sunday after the unix epoch.
_SUNDAY_EPOCH = 3 * _DAY

_TREND_WINDOW = 4
_TREND_THRESHOLD_PERCENT = 20.0
_TOP_CONTRIBUTORS = 5


# ── Weekly bucketing ────────────────────────────────────────────────────────


def week_start(timestamp: int) -> int:
    """Start (Sunday 00:00 UTC) of the week containing *timestamp*."""
    return timestamp - ((timestamp - _SUNDAY_EPOCH) % _WEEK)


def bucket_commits_by_week(
    commit_times: Iterable[datetime],
    now: datetime | None = None,
    recent_weeks: int = 4,
) -> list[CommitActivity]:
    """Group commit timestamps into weekly totals with a per-day breakdown.

    Weeks start on Sunday, matching GitHub's own commit-activity statistic,
    so bucket boundaries do not move between calls.  The *recent_weeks*
    weeks up to *now* are always present, with zero totals if empty.
    Returned oldest to newest.
    """
    now = now or datetime.now(timezone.utc)
    now_ts = int(now.timestamp())

    buckets: dict[int, list[int]] = {}
    for i in range(recent_weeks):
        buckets.setdefault(week_start(now_ts - i * _WEEK), [0] * 7)

    for moment in commit_times:
        ts = int(moment.timestamp())
        start = week_start(ts)
        days = buckets.setdefault(start, [0] * 7)
        days[(ts - start) // _DAY] += 1

    return [
        CommitActivity(week=start, total=sum(days), days=days)
        for start, days in sorted(buckets.items())
    ]


# ── Metrics ─────────────────────────────────────────────────────────────────


def _mean(weeks: Sequence[CommitActivity]) -> float:
    if not weeks:
        return 0.0
    return sum(w.total for w in weeks) / len(weeks)


def _activity_trend(commit_activity: Sequence[CommitActivity]) -> ActivityTrend:
    recent = commit_activity[-_TREND_WINDOW:]
    older = commit_activity[-2 * _TREND_WINDOW : -_TREND_WINDOW]

    recent_avg = _mean(recent)
    older_avg = _mean(older)
    if older_avg <= 0:
        return ActivityTrend(trend=Trend.STABLE, change_percent=0.0)

    change = (recent_avg - older_avg) / older_avg * 100
    if change > _TREND_THRESHOLD_PERCENT:
        trend = Trend.INCREASING
    elif change < -_TREND_THRESHOLD_PERCENT:
        trend = Trend.DECREASING
    else:
        trend = Trend.STABLE
    return ActivityTrend(trend=trend, change_percent=change)


def calculate_metrics(
    commit_activity: Sequence[CommitActivity],
    contributors: Sequence[Contributor],
) -> RepoMetrics:
    """Summarise activity and contributors for the dashboard.

    ``most_active_contributors`` keeps the input order for equal counts.
    """
    total = sum(w.total for w in commit_activity)
    average = total / len(commit_activity) if commit_activity else 0.0

    top = sorted(contributors, key=lambda c: c.contributions, reverse=True)

    return RepoMetrics(
        average_commits_per_week=average,
        total_commits=total,
        most_active_contributors=top[:_TOP_CONTRIBUTORS],
        activity_trend=_activity_trend(commit_activity),
    )

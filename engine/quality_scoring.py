import math
from datetime import datetime

from engine.types import ObservableSignals, parse_iso

# Points per component; the maxima sum to 100.
_VIEW_POINTS_PER_DECADE = 5.0
_MAX_VIEW_POINTS = 40.0
_MAX_REPUTATION_POINTS = 20.0
_EMBEDDABLE_POINTS = 10.0
_MAX_RECENCY_POINTS = 20.0
_RECENCY_POINTS_PER_YEAR = 10.0
_MAX_COMPLETENESS_POINTS = 10.0

# Unknown channels count as average until channel reputation is tracked.
DEFAULT_CHANNEL_REPUTATION = 0.5


def clamp01(value):
    if value < 0:
        return 0.0
    if value > 1:
        return 1.0
    return float(value)


def view_points(view_count):
    """0-40 points on a log10 scale: 1M views is 30, 100M views caps at 40."""
    if not view_count or view_count <= 1:
        return 0.0
    return min(math.log10(view_count) * _VIEW_POINTS_PER_DECADE, _MAX_VIEW_POINTS)


def reputation_points(channel_reputation):
    if channel_reputation is None:
        channel_reputation = DEFAULT_CHANNEL_REPUTATION
    return clamp01(channel_reputation) * _MAX_REPUTATION_POINTS


def recency_points(published_at, now):
    """20 points for a fresh upload, 10 after a year, 0 after two."""
    published = parse_iso(published_at)
    reference = parse_iso(now)
    if published is None or reference is None:
        return 0.0
    years = max(0.0, (reference - published).total_seconds() / (365 * 24 * 60 * 60))
    return max(_MAX_RECENCY_POINTS - years * _RECENCY_POINTS_PER_YEAR, 0.0)


def completeness_points(signals, *, catalog_id=None, release_year=None):
    present = [
        bool(catalog_id),
        release_year is not None,
        bool(signals.duration_seconds),
    ]
    return _MAX_COMPLETENESS_POINTS * sum(present) / len(present)


def score_breakdown(signals: ObservableSignals, *, now, catalog_id=None, release_year=None):
    return {
        "views": view_points(signals.view_count),
        "reputation": reputation_points(signals.channel_reputation),
        "embeddable": _EMBEDDABLE_POINTS if signals.embeddable else 0.0,
        "recency": recency_points(signals.published_at, now),
        "completeness": completeness_points(signals, catalog_id=catalog_id, release_year=release_year),
    }


def score_candidate(
    signals: ObservableSignals,
    *,
    now: datetime | str,
    catalog_id: str | None = None,
    release_year: int | None = None,
) -> int:
    """Quality score in [0, 100] for ranking duplicate versions.

    Deterministic for the same signals and reference time ``now``; the
    reference time only matters for upload recency.
    """
    breakdown = score_breakdown(signals, now=now, catalog_id=catalog_id, release_year=release_year)
    total = sum(breakdown.values())
    return int(max(0, min(100, round(total))))

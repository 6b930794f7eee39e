from __future__ import annotations

from datetime import datetime, timezone

import pytest

from engine.quality_scoring import recency_points, score_breakdown, score_candidate, view_points
from engine.types import ObservableSignals

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _signals(**overrides) -> ObservableSignals:
    values = {
        "view_count": 250_000,
        "published_at": "2025-06-01T00:00:00+00:00",
        "embeddable": True,
        "channel_id": "UC123",
        "channel_reputation": 0.6,
        "duration_seconds": 5400,
    }
    values.update(overrides)
    return ObservableSignals(**values)


def test_score_is_deterministic_for_same_inputs() -> None:
    signals = _signals()
    first = score_candidate(signals, now=NOW, catalog_id="tt1", release_year=1999)
    second = score_candidate(signals, now=NOW, catalog_id="tt1", release_year=1999)
    assert first == second
    assert 0 <= first <= 100


@pytest.mark.parametrize("views", [(10, 1_000), (1_000, 1_000_000), (1_000_000, 50_000_000)])
def test_more_views_never_lower_the_score(views) -> None:
    low, high = views
    assert score_candidate(_signals(view_count=high), now=NOW) >= score_candidate(_signals(view_count=low), now=NOW)


def test_embeddable_never_lowers_the_score() -> None:
    embeddable = score_candidate(_signals(embeddable=True), now=NOW)
    blocked = score_candidate(_signals(embeddable=False), now=NOW)
    assert embeddable - blocked == 10


def test_view_points_cap_at_forty() -> None:
    assert view_points(None) == 0.0
    assert view_points(1_000_000) == pytest.approx(30.0)
    assert view_points(10**12) == 40.0


def test_recency_decays_over_two_years() -> None:
    assert recency_points("2026-01-01T00:00:00+00:00", NOW) == pytest.approx(20.0)
    assert recency_points("2025-01-01T00:00:00+00:00", NOW) == pytest.approx(10.0)
    assert recency_points("2020-01-01T00:00:00+00:00", NOW) == 0.0
    assert recency_points(None, NOW) == 0.0


def test_missing_signals_still_score_within_bounds() -> None:
    score = score_candidate(ObservableSignals(), now=NOW)
    # Only the neutral channel reputation contributes.
    assert score == 10


def test_breakdown_components_sum_to_at_most_one_hundred() -> None:
    breakdown = score_breakdown(
        _signals(view_count=10**10, channel_reputation=1.0, published_at=NOW),
        now=NOW,
        catalog_id="tt1",
        release_year=2000,
    )
    assert sum(breakdown.values()) == pytest.approx(100.0)
    assert score_candidate(
        _signals(view_count=10**10, channel_reputation=1.0, published_at=NOW),
        now=NOW,
        catalog_id="tt1",
        release_year=2000,
    ) == 100

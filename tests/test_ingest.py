from __future__ import annotations

from engine.group_resolver import GroupResolver
from engine.ingest import ingest_candidate
from engine.types import CandidateIdentity, ObservableSignals

NOW = "2026-03-01T00:00:00+00:00"


def _identity(external_id: str) -> CandidateIdentity:
    return CandidateIdentity(external_id, "His Girl Friday (1940)", catalog_id="tt0032599", release_year=1940)


def test_ingest_in_descending_score_order_keeps_first_primary(store) -> None:
    resolver = GroupResolver(store)
    created = [
        ingest_candidate(store, _identity(external_id), ObservableSignals(view_count=views), resolver=resolver, now=NOW)
        for external_id, views in (("yt-a", 100_000_000), ("yt-b", 1_000_000), ("yt-c", 1_000))
    ]

    scores = [candidate.quality_score for candidate in created]
    assert scores == sorted(scores, reverse=True)
    assert len(set(scores)) == 3
    assert len({candidate.group_id for candidate in created}) == 1
    versions = store.list_group_versions(created[0].group_id)
    assert [(c.external_id, c.is_primary) for c in versions] == [("yt-a", True), ("yt-b", False), ("yt-c", False)]


def test_better_candidate_arriving_later_takes_primary(store) -> None:
    resolver = GroupResolver(store)
    low = ingest_candidate(store, _identity("yt-low"), ObservableSignals(view_count=10), resolver=resolver, now=NOW)
    high = ingest_candidate(
        store,
        _identity("yt-high"),
        ObservableSignals(view_count=5_000_000, embeddable=True),
        resolver=resolver,
        now=NOW,
    )

    assert high.is_primary is True
    assert store.get_candidate(low.id).is_primary is False


def test_reingest_refreshes_signals_without_rearbitration(store) -> None:
    resolver = GroupResolver(store)
    primary = ingest_candidate(store, _identity("yt-1"), ObservableSignals(view_count=1_000_000), resolver=resolver, now=NOW)
    backup = ingest_candidate(store, _identity("yt-2"), ObservableSignals(view_count=100), resolver=resolver, now=NOW)

    refreshed = ingest_candidate(
        store,
        _identity("yt-2"),
        ObservableSignals(view_count=900_000_000, embeddable=True),
        resolver=resolver,
        now=NOW,
    )

    assert refreshed.id == backup.id
    assert refreshed.quality_score > primary.quality_score
    assert refreshed.is_primary is False
    assert store.get_primary(primary.group_id).id == primary.id


def test_reingest_with_same_signals_changes_nothing(store) -> None:
    resolver = GroupResolver(store)
    signals = ObservableSignals(view_count=1234, channel_id="UC1")
    first = ingest_candidate(store, _identity("yt-1"), signals, resolver=resolver, now=NOW)
    again = ingest_candidate(store, _identity("yt-1"), signals, resolver=resolver, now="2027-01-01T00:00:00+00:00")

    assert again == first

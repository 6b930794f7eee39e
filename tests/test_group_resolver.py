from __future__ import annotations

from engine.group_resolver import GroupResolver, years_compatible
from engine.title_similarity import title_similarity
from engine.types import CandidateIdentity, MatchType


def test_catalog_id_match_wins_over_title(store) -> None:
    resolver = GroupResolver(store)
    first = resolver.resolve(CandidateIdentity("yt-1", "Alien", catalog_id="tt0078748", release_year=1979))
    second = resolver.resolve(
        CandidateIdentity("yt-2", "Completely Different Upload Name", catalog_id="tt0078748", release_year=1979)
    )

    assert first.match_type == MatchType.NEW_GROUP
    assert second.match_type == MatchType.CATALOG_ID
    assert second.group.id == first.group.id
    assert second.confidence == 1.0


def test_fuzzy_title_match_within_year_tolerance(store) -> None:
    resolver = GroupResolver(store)
    created = resolver.resolve(
        CandidateIdentity("yt-1", "Nosferatu: A Symphony of Horror (Full Movie)", release_year=1922)
    )
    matched = resolver.resolve(CandidateIdentity("yt-2", "NOSFERATU, Symphony of Horrors HD", release_year=1923))

    assert matched.match_type == MatchType.FUZZY
    assert matched.group.id == created.group.id
    assert matched.confidence >= 0.7


def test_year_outside_tolerance_creates_new_group(store) -> None:
    resolver = GroupResolver(store)
    original = resolver.resolve(CandidateIdentity("yt-1", "Scarface", release_year=1932))
    remake = resolver.resolve(CandidateIdentity("yt-2", "Scarface", release_year=1983))

    assert remake.match_type == MatchType.NEW_GROUP
    assert remake.group.id != original.group.id


def test_unrelated_titles_below_threshold_each_create_a_group(store) -> None:
    resolver = GroupResolver(store)
    resolver.resolve(CandidateIdentity("yt-0", "The Cabinet of Dr. Caligari", release_year=1920))

    first = resolver.resolve(CandidateIdentity("yt-1", "The Cabinet of Dr. Mabuse", release_year=1920))
    second = resolver.resolve(CandidateIdentity("yt-2", "Cabinet Makers", release_year=1920))

    assert title_similarity("The Cabinet of Dr. Caligari", "The Cabinet of Dr. Mabuse") < 0.7
    assert first.match_type == MatchType.NEW_GROUP
    assert second.match_type == MatchType.NEW_GROUP
    assert len({first.group.id, second.group.id}) == 2
    assert len(store.list_groups_for_matching(None, 1)) == 3


def test_matching_never_modifies_the_matched_group(store) -> None:
    resolver = GroupResolver(store)
    created = resolver.resolve(CandidateIdentity("yt-1", "Metropolis", catalog_id="tt0017136", release_year=1927))
    resolver.resolve(CandidateIdentity("yt-2", "Metropolis Restored", catalog_id="tt0017136", release_year=1927))

    assert store.get_group(created.group.id) == created.group


def test_years_compatible_treats_missing_year_as_compatible() -> None:
    assert years_compatible(None, 1999, 1)
    assert years_compatible(2000, 1999, 1)
    assert not years_compatible(2001, 1999, 1)

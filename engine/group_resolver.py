"""Find or create the canonical group a new candidate belongs to."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from config.settings import SIMILARITY_THRESHOLD, YEAR_TOLERANCE
from engine.title_similarity import normalize_title, title_similarity
from engine.types import CandidateIdentity, MatchType, MediaGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupMatch:
    group: MediaGroup
    match_type: MatchType
    confidence: float


def years_compatible(left: int | None, right: int | None, tolerance: int) -> bool:
    if left is None or right is None:
        return True
    return abs(int(left) - int(right)) <= int(tolerance)


class GroupResolver:
    """Match a candidate to a group by catalog id, then fuzzy title, else create one.

    Matched groups are never modified; only a brand-new group is written.
    """

    def __init__(
        self,
        store,
        *,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        year_tolerance: int = YEAR_TOLERANCE,
    ) -> None:
        self.store = store
        self.similarity_threshold = float(similarity_threshold)
        self.year_tolerance = int(year_tolerance)

    def resolve(self, identity: CandidateIdentity, *, now: str | None = None) -> GroupMatch:
        if identity.catalog_id:
            group = self.store.find_group_by_catalog_id(identity.catalog_id)
            if group is not None:
                logger.debug("Catalog id match catalog_id=%s group=%s", identity.catalog_id, group.id)
                return GroupMatch(group=group, match_type=MatchType.CATALOG_ID, confidence=1.0)

        normalized = normalize_title(identity.title)
        fuzzy = self.best_fuzzy_match(normalized, identity.release_year)
        if fuzzy is not None:
            group, similarity = fuzzy
            logger.debug(
                "Fuzzy title match title=%r group=%s similarity=%.3f",
                normalized,
                group.id,
                similarity,
            )
            return GroupMatch(group=group, match_type=MatchType.FUZZY, confidence=similarity)

        group, created = self.store.create_group(
            canonical_title=identity.title,
            normalized_title=normalized,
            catalog_id=identity.catalog_id,
            release_year=identity.release_year,
            now=now,
        )
        if not created:
            # Lost a race with another writer for the same catalog id.
            return GroupMatch(group=group, match_type=MatchType.CATALOG_ID, confidence=1.0)
        logger.info("Created new group %s for %r (catalog_id=%s)", group.id, identity.title, identity.catalog_id)
        return GroupMatch(group=group, match_type=MatchType.NEW_GROUP, confidence=1.0)

    def best_fuzzy_match(self, normalized_title: str, release_year: int | None) -> tuple[MediaGroup, float] | None:
        """Highest-similarity qualifying group; ties go to the oldest group."""
        if not normalized_title:
            return None
        best: tuple[MediaGroup, float] | None = None
        for group in self.store.list_groups_for_matching(release_year, self.year_tolerance):
            if not years_compatible(release_year, group.release_year, self.year_tolerance):
                continue
            similarity = title_similarity(normalized_title, group.normalized_title)
            if similarity < self.similarity_threshold:
                continue
            if best is None or similarity > best[1]:
                best = (group, similarity)
        return best

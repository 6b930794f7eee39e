from __future__ import annotations

import logging
from dataclasses import dataclass

from engine.types import Candidate, MediaGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrimaryDecision:
    is_primary: bool
    demote: int | None = None


def decide_primary(
    group: MediaGroup | None,
    candidate: object,
    candidate_score: int,
    current_primary: Candidate | None,
) -> PrimaryDecision:
    """Decide whether a newly ingested candidate becomes the group's primary.

    A group without a primary takes the candidate unconditionally. Otherwise
    the candidate must score strictly higher than the current primary; equal
    scores never promote, so equally ranked duplicates cannot flap. The caller
    applies the decision atomically.
    """
    if current_primary is None:
        return PrimaryDecision(is_primary=True, demote=None)

    promote = int(candidate_score) > int(current_primary.quality_score)
    logger.debug(
        "Primary comparison group=%s candidate=%s new_score=%s existing_score=%s promote=%s",
        getattr(group, "id", None),
        getattr(candidate, "external_id", None),
        candidate_score,
        current_primary.quality_score,
        promote,
    )
    if promote:
        return PrimaryDecision(is_primary=True, demote=current_primary.id)
    return PrimaryDecision(is_primary=False, demote=None)

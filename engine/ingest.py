from __future__ import annotations

import logging
from dataclasses import fields

from engine.primary_arbiter import decide_primary
from engine.quality_scoring import score_candidate
from engine.types import Candidate, CandidateIdentity, ObservableSignals, utc_now

logger = logging.getLogger(__name__)


def _refresh_existing(store, existing: Candidate, signals: ObservableSignals, now: str) -> Candidate:
    updates = {f.name: getattr(signals, f.name) for f in fields(signals)}
    merged = existing.signals.merged(**updates)
    if merged == existing.signals:
        return existing
    score = score_candidate(
        merged,
        now=now,
        catalog_id=existing.catalog_id,
        release_year=existing.release_year,
    )
    store.update_signals(existing.id, merged, score, now=now)
    logger.info(
        "Refreshed signals for known candidate %s (score %s -> %s)",
        existing.external_id,
        existing.quality_score,
        score,
    )
    return store.get_candidate(existing.id)


def ingest_candidate(
    store,
    identity: CandidateIdentity,
    signals: ObservableSignals | None = None,
    *,
    resolver,
    now: str | None = None,
) -> Candidate:
    """Group, score and arbitrate one newly discovered video.

    Re-ingesting a known external id only refreshes its signals and score;
    it never moves the candidate between groups or re-runs arbitration.
    """
    now = now or utc_now()
    signals = signals or ObservableSignals()

    existing = store.get_candidate_by_external_id(identity.external_id)
    if existing is not None:
        return _refresh_existing(store, existing, signals, now)

    match = resolver.resolve(identity, now=now)
    score = score_candidate(
        signals,
        now=now,
        catalog_id=identity.catalog_id,
        release_year=identity.release_year,
    )
    candidate, decision = store.insert_candidate(
        identity,
        signals,
        group_id=match.group.id,
        quality_score=score,
        decide=lambda current: decide_primary(match.group, identity, score, current),
        now=now,
    )
    logger.info(
        "Ingested %s into group %s via %s (confidence %.2f, score %s, primary=%s, demoted=%s)",
        candidate.external_id,
        match.group.id,
        match.match_type.value,
        match.confidence,
        score,
        decision.is_primary,
        decision.demote,
    )
    return candidate

import sys
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from db.catalog_store import CatalogStore  # noqa: E402
from engine.primary_arbiter import decide_primary  # noqa: E402
from engine.title_similarity import normalize_title  # noqa: E402
from engine.types import (  # noqa: E402
    AvailabilityResult,
    AvailabilityStatus,
    CandidateIdentity,
    ObservableSignals,
    UnavailableReason,
)

AVAILABLE = AvailabilityResult(status=AvailabilityStatus.AVAILABLE)


def unavailable(reason: UnavailableReason = UnavailableReason.NOT_FOUND) -> AvailabilityResult:
    return AvailabilityResult(status=AvailabilityStatus.UNAVAILABLE, reason=reason)


class MockChecker:
    """Availability checker double: per-id results, queued batch errors, recorded calls."""

    max_batch_size = 50

    def __init__(self, results=None, errors=None):
        self.results = dict(results or {})
        self.errors = list(errors or [])
        self.calls: list[list[str]] = []

    def check_batch(self, external_ids):
        ids = list(external_ids)
        self.calls.append(ids)
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return {external_id: self.results.get(external_id, AVAILABLE) for external_id in ids}


@pytest.fixture
def store(tmp_path) -> CatalogStore:
    catalog = CatalogStore(str(tmp_path / "catalog.sqlite3"))
    catalog.ensure_schema()
    return catalog


@pytest.fixture
def seed(store):
    """Insert a candidate with an explicit quality score, arbitrated like ingest does."""

    def _seed(external_id, score, *, catalog_id="tt0017136", title="Metropolis", release_year=1927, now=None):
        group, _created = store.create_group(
            canonical_title=title,
            normalized_title=normalize_title(title),
            catalog_id=catalog_id,
            release_year=release_year,
        )
        candidate, _decision = store.insert_candidate(
            CandidateIdentity(external_id, title, catalog_id=catalog_id, release_year=release_year),
            ObservableSignals(),
            group_id=group.id,
            quality_score=score,
            decide=lambda current: decide_primary(group, None, score, current),
            now=now,
        )
        return candidate

    return _seed


@pytest.fixture
def mock_checker_cls():
    return MockChecker


@pytest.fixture
def unavailable_result():
    return unavailable

"""Daily availability validation pass over the candidate catalog."""

from __future__ import annotations

import logging
import os
import socket
import threading
import time
import uuid
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Callable

from config.settings import ValidationSettings
from db.catalog_store import (
    RUN_STATUS_COMPLETED,
    RUN_STATUS_FAILED,
    RUN_STATUS_QUOTA_EXHAUSTED,
    VALIDATION_LEASE_NAME,
)
from engine.errors import AvailabilityCheckError, PersistenceError, QuotaExhausted, ValidationRunActive
from engine.json_utils import safe_json_dumps
from engine.quality_scoring import score_candidate
from engine.quota import OPERATION_VIDEOS_LIST
from engine.types import AvailabilityResult, Candidate, RunCounters, format_iso

logger = logging.getLogger(__name__)

# Upper bound on groups repaired per run; the remainder waits for the next run.
REPAIR_GROUP_LIMIT = 100


def _log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logging.log(level, safe_json_dumps(payload, sort_keys=True))
    except Exception as exc:
        logging.log(level, f"log_event_serialization_failed: {exc} message={message}")


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


def _default_holder() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def chunked(items: list, size: int) -> list[list]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


@dataclass
class ValidationRunSummary:
    run_id: int
    status: str
    selected: int
    validated: int
    failed: int
    failovers_triggered: int
    quota_used: int
    duration_seconds: int
    transient_errors: int = 0
    deferred: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class _StopRun(Exception):
    """Internal signal: the day's quota ran out mid-run."""


class ValidationScheduler:
    """Run one validation pass: repair, select, batch, apply, finalize.

    Only one run may be active across every process sharing the database.
    The in-process lock covers threads of this instance; the sqlite lease
    covers other instances and processes. A lease left behind by a crashed
    run expires after ``lease_ttl_seconds``.
    """

    def __init__(
        self,
        store,
        checker,
        budget,
        cascade,
        settings: ValidationSettings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_clock,
        holder: str | None = None,
    ) -> None:
        self.store = store
        self.checker = checker
        self.budget = budget
        self.cascade = cascade
        self.settings = settings or ValidationSettings()
        self._sleep = sleep
        self._clock = clock
        self.holder = holder or _default_holder()
        self._lock = threading.Lock()

    def _now(self) -> str:
        return format_iso(self._clock())

    @property
    def batch_size(self) -> int:
        limit = int(getattr(self.checker, "max_batch_size", self.settings.batch_size) or self.settings.batch_size)
        return max(1, min(int(self.settings.batch_size), limit))

    def run(self, trigger: str = "scheduled") -> ValidationRunSummary:
        if not self._lock.acquire(blocking=False):
            raise ValidationRunActive("a validation run is already in progress")
        try:
            acquired = self.store.acquire_lease(
                VALIDATION_LEASE_NAME,
                self.holder,
                ttl_seconds=self.settings.lease_ttl_seconds,
                now=self._now(),
            )
            if not acquired:
                raise ValidationRunActive("another process holds the validation run lease")
            try:
                return self._run_locked(trigger)
            finally:
                self.store.release_lease(VALIDATION_LEASE_NAME, self.holder)
        finally:
            self._lock.release()

    def _run_locked(self, trigger: str) -> ValidationRunSummary:
        started = time.monotonic()
        run_id = self.store.start_run(trigger, now=self._now())
        counters = RunCounters()
        status = RUN_STATUS_COMPLETED
        _log_event(logging.INFO, "validation_run_started", run_id=run_id, trigger=trigger)

        try:
            try:
                self._repair(run_id, counters)
                candidates = self._select(run_id, counters)
                for index, batch in enumerate(chunked(candidates, self.batch_size)):
                    if index > 0 and self.settings.batch_delay_seconds > 0:
                        self._sleep(self.settings.batch_delay_seconds)
                    self._process_batch(run_id, index, batch, counters)
            except _StopRun:
                status = RUN_STATUS_QUOTA_EXHAUSTED
                _log_event(
                    logging.WARNING,
                    "validation_run_quota_exhausted",
                    run_id=run_id,
                    validated=counters.validated,
                    quota_used=counters.quota_used,
                )
        except Exception:
            logger.exception("Validation run %s failed", run_id)
            self._finalize_best_effort(run_id, counters, started)
            raise

        duration = int(round(time.monotonic() - started))
        self.store.finish_run(
            run_id,
            status=status,
            counters=counters,
            finished_at=self._now(),
            duration_seconds=duration,
        )
        summary = ValidationRunSummary(
            run_id=run_id,
            status=status,
            selected=counters.selected,
            validated=counters.validated,
            failed=counters.failed,
            failovers_triggered=counters.failovers,
            quota_used=counters.quota_used,
            duration_seconds=duration,
            transient_errors=counters.transient_errors,
            deferred=counters.deferred,
        )
        _log_event(logging.INFO, "validation_run_finished", **summary.to_dict())
        return summary

    def _finalize_best_effort(self, run_id: int, counters: RunCounters, started: float) -> None:
        try:
            self.store.finish_run(
                run_id,
                status=RUN_STATUS_FAILED,
                counters=counters,
                finished_at=self._now(),
                duration_seconds=int(round(time.monotonic() - started)),
            )
        except PersistenceError:
            logger.exception("Could not finalize failed validation run %s", run_id)

    def _repair(self, run_id: int, counters: RunCounters) -> None:
        """Fail over groups left without an available primary by an earlier run."""
        orphaned = self.store.list_groups_missing_primary(REPAIR_GROUP_LIMIT)
        if not orphaned:
            return
        _log_event(logging.INFO, "validation_repair_started", run_id=run_id, groups=len(orphaned))
        for group_id, stale_primary_id in orphaned:
            self._failover(run_id, group_id, stale_primary_id, counters)

    def _select(self, run_id: int, counters: RunCounters) -> list[Candidate]:
        remaining = self.budget.remaining()
        limit = min(int(self.settings.max_daily_checks), remaining)
        candidates = self.store.select_due_candidates(limit)
        counters.selected = len(candidates)
        _log_event(
            logging.INFO,
            "validation_candidates_selected",
            run_id=run_id,
            selected=len(candidates),
            max_daily_checks=self.settings.max_daily_checks,
            quota_remaining=remaining,
        )
        return candidates

    def _process_batch(self, run_id: int, index: int, batch: list[Candidate], counters: RunCounters) -> None:
        try:
            self.budget.consume(self.settings.cost_per_call, OPERATION_VIDEOS_LIST)
        except QuotaExhausted:
            raise _StopRun() from None
        counters.quota_used += self.settings.cost_per_call

        try:
            results = self.checker.check_batch([candidate.external_id for candidate in batch])
        except QuotaExhausted:
            raise _StopRun() from None
        except AvailabilityCheckError as exc:
            counters.transient_errors += 1
            _log_event(
                logging.WARNING,
                "validation_batch_error",
                run_id=run_id,
                batch=index,
                size=len(batch),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        for candidate in batch:
            result = results.get(candidate.external_id)
            if result is None:
                logger.warning("No result returned for %s", candidate.external_id)
                continue
            self._apply_result(run_id, candidate, result, counters)

        _log_event(
            logging.INFO,
            "validation_batch_applied",
            run_id=run_id,
            batch=index,
            size=len(batch),
            validated=counters.validated,
            failed=counters.failed,
        )

    def _apply_result(
        self,
        run_id: int,
        candidate: Candidate,
        result: AvailabilityResult,
        counters: RunCounters,
    ) -> None:
        # Earlier failovers in this run may have changed the flags.
        current = self.store.get_candidate(candidate.id)
        if current is None or not current.is_available:
            return
        now = self._now()

        if result.available:
            counters.validated += 1
            signals = current.signals.merged(view_count=result.view_count, embeddable=result.embeddable)
            if signals != current.signals:
                score = score_candidate(
                    signals,
                    now=now,
                    catalog_id=current.catalog_id,
                    release_year=current.release_year,
                )
                self.store.update_signals(current.id, signals, score, now=now)
            self.store.mark_checked(current.id, now=now)
            return

        counters.failed += 1
        reason = result.reason.value
        self.store.mark_unavailable(current.id, reason, now=now)
        _log_event(
            logging.WARNING,
            "candidate_unavailable",
            run_id=run_id,
            candidate_id=current.id,
            external_id=current.external_id,
            group_id=current.group_id,
            reason=reason,
            was_primary=current.is_primary,
        )
        if current.is_primary:
            self._failover(run_id, current.group_id, current.id, counters)

    def _failover(self, run_id: int, group_id: int, failed_primary_id: int | None, counters: RunCounters) -> None:
        outcome = self.cascade.failover(group_id, failed_primary_id)
        counters.quota_used += outcome.quota_used
        if outcome.promoted is not None:
            counters.failovers += 1
        if outcome.alert_id is not None:
            counters.alerts.append(outcome.alert_id)
        _log_event(
            logging.INFO if outcome.promoted is not None else logging.WARNING,
            "failover_finished",
            run_id=run_id,
            group_id=group_id,
            failed_primary_id=failed_primary_id,
            promoted=outcome.promoted,
            checked=outcome.checked,
            confirmed_failures=outcome.confirmed_failures,
            exhausted=outcome.exhausted,
            deferred=outcome.deferred,
            quota_exhausted=outcome.quota_exhausted,
        )
        if outcome.deferred:
            counters.deferred += 1
        if outcome.quota_exhausted:
            raise _StopRun()

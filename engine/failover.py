"""Promote the best verified backup when a group's primary fails."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from config.settings import COST_PER_CALL, FAILOVER_BREADTH
from db.catalog_store import ALERT_ALL_BACKUPS_FAILED, ALERT_FAILOVER_DEFERRED
from engine.errors import AvailabilityCheckError, QuotaExhausted
from engine.quota import OPERATION_VIDEOS_LIST
from engine.types import AdminAlert

logger = logging.getLogger(__name__)


@dataclass
class FailoverOutcome:
    group_id: int
    failed_primary_id: int | None
    promoted: int | None = None
    checked: int = 0
    confirmed_failures: list[int] = field(default_factory=list)
    inconclusive: list[int] = field(default_factory=list)
    quota_used: int = 0
    exhausted: bool = False
    deferred: bool = False
    quota_exhausted: bool = False
    alert_id: int | None = None


class FailoverCascade:
    """Walk ranked backups, re-verify each, promote the first that is available.

    A backup's stored availability can be stale, so every backup gets its own
    single-id check before promotion. If every backup is confirmed gone, the
    group is left without a primary and one critical alert is raised.
    """

    def __init__(
        self,
        store,
        checker,
        budget,
        *,
        breadth: int = FAILOVER_BREADTH,
        cost_per_call: int = COST_PER_CALL,
        notifier: Callable[[AdminAlert], object] | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.checker = checker
        self.budget = budget
        self.breadth = max(1, int(breadth))
        self.cost_per_call = int(cost_per_call)
        self.notifier = notifier
        self._clock = clock

    def _now(self) -> str | None:
        return self._clock() if self._clock else None

    def failover(self, group_id: int, failed_primary_id: int | None) -> FailoverOutcome:
        outcome = FailoverOutcome(group_id=group_id, failed_primary_id=failed_primary_id)
        logger.info("Attempting failover for group %s (failed primary %s)", group_id, failed_primary_id)

        backups = self.store.list_backups(group_id, self.breadth)
        for backup in backups:
            try:
                self.budget.consume(self.cost_per_call, OPERATION_VIDEOS_LIST)
            except QuotaExhausted:
                self._defer_for_quota(outcome)
                return outcome
            outcome.quota_used += self.cost_per_call
            outcome.checked += 1

            try:
                results = self.checker.check_batch([backup.external_id])
            except QuotaExhausted:
                self._defer_for_quota(outcome)
                return outcome
            except AvailabilityCheckError as exc:
                # Could not tell; neither trusted nor marked.
                logger.warning("Backup %s re-check inconclusive: %s", backup.external_id, exc)
                outcome.inconclusive.append(backup.id)
                continue

            result = results.get(backup.external_id)
            if result is not None and result.available:
                event = self.store.promote_backup(group_id, backup.id, failed_primary_id, now=self._now())
                outcome.promoted = backup.id
                logger.info(
                    "Failover successful: group=%s old_primary=%s new_primary=%s quality_score=%s event=%s",
                    group_id,
                    failed_primary_id,
                    backup.id,
                    backup.quality_score,
                    event.id,
                )
                return outcome

            reason = result.reason.value if result is not None else "not_found"
            logger.warning("Backup %s (%s) also unavailable: %s", backup.id, backup.title, reason)
            self.store.mark_unavailable(backup.id, reason, now=self._now())
            outcome.confirmed_failures.append(backup.id)

        if outcome.inconclusive:
            # Unconfirmed backups are not failures; the next run's repair retries them.
            self._defer(
                outcome,
                f"Failover for group {outcome.group_id} deferred: "
                f"{len(outcome.inconclusive)} backup(s) could not be verified",
            )
            return outcome
        self._exhaust(outcome)
        return outcome

    def _release_failed_primary(self, outcome: FailoverOutcome) -> None:
        if outcome.failed_primary_id is not None:
            self.store.clear_primary(outcome.group_id, outcome.failed_primary_id, now=self._now())

    def _exhaust(self, outcome: FailoverOutcome) -> None:
        self._release_failed_primary(outcome)
        outcome.exhausted = True
        group = self.store.get_group(outcome.group_id)
        title = group.canonical_title if group is not None else "Unknown"
        message = f'All versions of "{title}" (group {outcome.group_id}) are unavailable'
        logger.error("ALERT: %s", message)
        outcome.alert_id = self._raise_alert(ALERT_ALL_BACKUPS_FAILED, outcome.group_id, message, "critical")

    def _defer_for_quota(self, outcome: FailoverOutcome) -> None:
        outcome.quota_exhausted = True
        self._defer(
            outcome,
            f"Failover for group {outcome.group_id} deferred: quota budget exhausted "
            "before a backup could be verified",
        )

    def _defer(self, outcome: FailoverOutcome, message: str) -> None:
        self._release_failed_primary(outcome)
        outcome.deferred = True
        logger.warning(message)
        outcome.alert_id = self._raise_alert(ALERT_FAILOVER_DEFERRED, outcome.group_id, message, "warning")

    def _raise_alert(self, alert_type: str, group_id: int, message: str, severity: str) -> int:
        alert, created = self.store.create_alert(
            alert_type=alert_type,
            group_id=group_id,
            message=message,
            severity=severity,
            now=self._now(),
        )
        if created and self.notifier is not None:
            try:
                self.notifier(alert)
            except Exception:
                logger.exception("Alert delivery failed for alert %s", alert.id)
        return alert.id

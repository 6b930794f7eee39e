"""Composition root tying the catalog store, checker, quota and runs together."""

from __future__ import annotations

import logging
from typing import Any

from config.settings import ValidationSettings
from db.catalog_store import CatalogStore
from engine.availability import YouTubeAvailabilityChecker
from engine.failover import FailoverCascade
from engine.group_resolver import GroupResolver
from engine.ingest import ingest_candidate
from engine.notify import TelegramAlertSink
from engine.quota import QuotaBudget
from engine.types import AdminAlert, Candidate, CandidateIdentity, ObservableSignals, format_iso
from engine.validation import ValidationRunSummary, ValidationScheduler

logger = logging.getLogger(__name__)


class CatalogService:
    """Entry points for ingestion, validation runs and operator queries."""

    def __init__(
        self,
        store: CatalogStore,
        checker,
        settings: ValidationSettings,
        *,
        budget: QuotaBudget | None = None,
        notifier=None,
        sleep=None,
        clock=None,
    ) -> None:
        self.store = store
        self.checker = checker
        self.settings = settings
        self.notifier = notifier
        self.budget = budget or QuotaBudget(store, settings.daily_quota_budget)
        self.resolver = GroupResolver(
            store,
            similarity_threshold=settings.similarity_threshold,
            year_tolerance=settings.year_tolerance,
        )
        self.cascade = FailoverCascade(
            store,
            checker,
            self.budget,
            breadth=settings.failover_breadth,
            cost_per_call=settings.cost_per_call,
            notifier=notifier,
            clock=(lambda: format_iso(clock())) if clock is not None else None,
        )
        scheduler_kwargs: dict[str, Any] = {}
        if sleep is not None:
            scheduler_kwargs["sleep"] = sleep
        if clock is not None:
            scheduler_kwargs["clock"] = clock
        self.scheduler = ValidationScheduler(
            store,
            checker,
            self.budget,
            self.cascade,
            settings,
            **scheduler_kwargs,
        )

    def ingest_candidate(self, identity: CandidateIdentity, signals: ObservableSignals | None = None) -> Candidate:
        return ingest_candidate(self.store, identity, signals, resolver=self.resolver)

    def trigger_validation_run(self, trigger: str = "manual") -> ValidationRunSummary:
        summary = self.scheduler.run(trigger)
        send_summary = getattr(self.notifier, "send_run_summary", None)
        if send_summary is not None:
            send_summary(summary)
        return summary

    def validation_stats(self, limit: int = 30) -> dict[str, Any]:
        stats = self.store.validation_stats(limit)
        stats["quota"] = {
            "daily_budget": self.budget.daily_budget,
            "used_today": self.budget.used_today(),
            "remaining": self.budget.remaining(),
        }
        return stats

    def list_group_versions(self, group_id: int) -> list[Candidate]:
        return self.store.list_group_versions(group_id)

    def backup_count(self, group_id: int) -> int:
        return self.store.backup_count(group_id)

    def list_alerts(self, *, resolved: bool | None = False, limit: int = 100) -> list[AdminAlert]:
        return self.store.list_alerts(resolved=resolved, limit=limit)

    def resolve_alert(self, alert_id: int) -> AdminAlert | None:
        return self.store.resolve_alert(alert_id)

    def prune_history(self, **kwargs) -> dict[str, int]:
        result = self.store.prune_history(**kwargs)
        logger.info(
            "Pruned history: failures=%s runs=%s alerts=%s",
            result["failures_deleted"],
            result["runs_deleted"],
            result["alerts_deleted"],
        )
        return result


def build_service(settings: ValidationSettings, *, checker=None) -> CatalogService:
    store = CatalogStore(settings.db_path)
    store.ensure_schema()
    if checker is None:
        checker = YouTubeAvailabilityChecker(
            api_key=settings.youtube_api_key,
            token_path=settings.youtube_token_path,
        )
    notifier = TelegramAlertSink(settings.telegram)
    return CatalogService(store, checker, settings, notifier=notifier)

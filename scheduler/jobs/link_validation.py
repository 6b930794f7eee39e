"""Scheduler jobs for the daily validation run and weekly history pruning."""

from __future__ import annotations

import logging
from typing import Any

from apscheduler.triggers.cron import CronTrigger

from engine.errors import PersistenceError, ValidationRunActive

VALIDATION_JOB_ID = "link_validation_daily"
PRUNE_JOB_ID = "validation_history_prune_weekly"


def run_link_validation_job(service, *, trigger: str = "scheduled") -> dict[str, Any]:
    """Run one validation pass and report its outcome as a status dict."""
    try:
        summary = service.trigger_validation_run(trigger)
    except ValidationRunActive as exc:
        logging.info("Skipping scheduled validation: %s", exc)
        return {"status": "skipped", "reason": str(exc)}
    except PersistenceError as exc:
        logging.exception("Scheduled validation failed on storage")
        return {"status": "error", "error": f"persistence_failed: {exc}"}
    return {"status": summary.status, **summary.to_dict()}


def run_history_prune_job(service) -> dict[str, Any]:
    try:
        result = service.prune_history()
    except PersistenceError as exc:
        logging.exception("History prune failed")
        return {"status": "error", "error": f"prune_failed: {exc}"}
    return {"status": "ok", **result}


def register_validation_jobs(scheduler, service, settings) -> list[str]:
    """Add the daily validation and weekly prune jobs; returns the job ids added."""
    if not settings.schedule_enabled:
        logging.info("Validation schedule disabled")
        return []
    scheduler.add_job(
        run_link_validation_job,
        trigger=CronTrigger(hour=settings.validation_hour_utc, minute=0, timezone="UTC"),
        args=[service],
        id=VALIDATION_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=30,
    )
    scheduler.add_job(
        run_history_prune_job,
        trigger=CronTrigger(day_of_week="sun", hour=2, minute=0, timezone="UTC"),
        args=[service],
        id=PRUNE_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=30,
    )
    return [VALIDATION_JOB_ID, PRUNE_JOB_ID]

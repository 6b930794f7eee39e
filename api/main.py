#!/usr/bin/env python3
import logging
import os

import anyio
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from config.settings import load_config, load_settings
from engine.errors import PersistenceError, ValidationRunActive
from engine.service import build_service
from engine.types import CandidateIdentity, ObservableSignals
from scheduler.jobs.link_validation import register_validation_jobs

APP_NAME = "Canonwatch API"
CONFIG_ENV = "CANONWATCH_CONFIG"
LOG_DIR_ENV = "CANONWATCH_LOG_DIR"
DEFAULT_LOG_DIR = os.path.join(os.getcwd(), "logs")

app = FastAPI(title=APP_NAME)
app.state.service = None
app.state.scheduler = None


class CandidateRequest(BaseModel):
    external_id: str
    title: str
    catalog_id: str | None = None
    release_year: int | None = None
    view_count: int | None = None
    published_at: str | None = None
    embeddable: bool | None = None
    channel_id: str | None = None
    channel_reputation: float | None = None
    duration_seconds: int | None = None


class ValidationRunRequest(BaseModel):
    trigger: str = "manual"


def _setup_logging(log_dir):
    os.makedirs(log_dir, exist_ok=True)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, "canonwatch.log")
    root.setLevel(logging.INFO)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            if os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path):
                return
    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    file_handler.setLevel(logging.INFO)
    root.addHandler(file_handler)


def _read_config():
    path = os.environ.get(CONFIG_ENV)
    if not path:
        return {}
    if not os.path.exists(path):
        logging.warning("Config file %s not found; using defaults", path)
        return {}
    return load_config(path)


def _service():
    service = app.state.service
    if service is None:
        raise HTTPException(status_code=503, detail="Catalog service not initialized")
    return service


@app.on_event("startup")
async def startup():
    _setup_logging(os.environ.get(LOG_DIR_ENV) or DEFAULT_LOG_DIR)
    settings = load_settings(_read_config())
    app.state.settings = settings
    app.state.service = build_service(settings)
    logging.info("Catalog DB path: %s", settings.db_path)
    app.state.scheduler = BackgroundScheduler(timezone="UTC")
    job_ids = register_validation_jobs(app.state.scheduler, app.state.service, settings)
    app.state.scheduler.start()
    if job_ids:
        logging.info("Scheduler active: %s", ", ".join(job_ids))


@app.on_event("shutdown")
async def shutdown():
    scheduler = app.state.scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)


@app.post("/api/candidates", status_code=201)
async def api_ingest_candidate(request: CandidateRequest):
    service = _service()
    try:
        identity = CandidateIdentity(
            external_id=request.external_id,
            title=request.title,
            catalog_id=request.catalog_id,
            release_year=request.release_year,
        )
        signals = ObservableSignals(
            view_count=request.view_count,
            published_at=request.published_at,
            embeddable=request.embeddable,
            channel_id=request.channel_id,
            channel_reputation=request.channel_reputation,
            duration_seconds=request.duration_seconds,
        )
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    try:
        candidate = await anyio.to_thread.run_sync(service.ingest_candidate, identity, signals)
    except PersistenceError as exc:
        logging.exception("Candidate ingest failed for %s", identity.external_id)
        raise HTTPException(status_code=500, detail=f"persistence_failed: {exc}")
    return candidate.to_dict()


@app.post("/api/validation/run")
async def api_validation_run(request: ValidationRunRequest | None = None):
    service = _service()
    trigger = (request.trigger if request else None) or "manual"
    logging.info("Manual validation run requested (trigger=%s)", trigger)
    try:
        summary = await anyio.to_thread.run_sync(service.trigger_validation_run, trigger)
    except ValidationRunActive:
        raise HTTPException(status_code=409, detail="Validation run already in progress")
    except PersistenceError as exc:
        logging.exception("Validation run failed")
        raise HTTPException(status_code=500, detail=f"persistence_failed: {exc}")
    return summary.to_dict()


@app.get("/api/validation/stats")
async def api_validation_stats(limit: int = Query(30, ge=1, le=365)):
    return _service().validation_stats(limit)


@app.get("/api/groups/{group_id}/versions")
async def api_group_versions(group_id: int):
    service = _service()
    group = service.store.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    versions = service.list_group_versions(group_id)
    return {
        "group_id": group.id,
        "canonical_title": group.canonical_title,
        "catalog_id": group.catalog_id,
        "release_year": group.release_year,
        "backup_count": service.backup_count(group_id),
        "versions": [candidate.to_dict() for candidate in versions],
    }


@app.get("/api/alerts")
async def api_alerts(resolved: bool = False, limit: int = Query(100, ge=1, le=1000)):
    alerts = _service().list_alerts(resolved=resolved, limit=limit)
    return {"alerts": [alert.to_dict() for alert in alerts]}


@app.post("/api/alerts/{alert_id}/resolve")
async def api_resolve_alert(alert_id: int):
    alert = _service().resolve_alert(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert.to_dict()


if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("CANONWATCH_HOST") or "127.0.0.1"
    port = int(os.environ.get("CANONWATCH_PORT") or "8000")
    uvicorn.run("api.main:app", host=host, port=port, reload=False)

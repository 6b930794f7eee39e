from __future__ import annotations

import importlib
import sys

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from config.settings import ValidationSettings
from engine.errors import ValidationRunActive
from engine.service import CatalogService


def _build_client(monkeypatch, store, checker):
    sys.modules.pop("api.main", None)
    module = importlib.import_module("api.main")
    module.app.router.on_startup.clear()
    module.app.router.on_shutdown.clear()
    settings = ValidationSettings(db_path=store.db_path, batch_delay_seconds=0.0)
    service = CatalogService(store, checker, settings)
    monkeypatch.setattr(module.app.state, "service", service, raising=False)
    return module, service, TestClient(module.app)


def _post_candidate(client, external_id, views):
    return client.post(
        "/api/candidates",
        json={
            "external_id": external_id,
            "title": "Sunrise: A Song of Two Humans",
            "catalog_id": "tt0018455",
            "release_year": 1927,
            "view_count": views,
        },
    )


def test_ingest_and_list_versions(monkeypatch, store, mock_checker_cls) -> None:
    _module, _service, client = _build_client(monkeypatch, store, mock_checker_cls())

    first = _post_candidate(client, "yt-a", 10_000_000)
    second = _post_candidate(client, "yt-b", 100)

    assert first.status_code == 201
    assert first.json()["is_primary"] is True
    assert second.json()["is_primary"] is False

    group_id = first.json()["group_id"]
    versions = client.get(f"/api/groups/{group_id}/versions")
    assert versions.status_code == 200
    body = versions.json()
    assert body["backup_count"] == 1
    assert [v["external_id"] for v in body["versions"]] == ["yt-a", "yt-b"]


def test_invalid_candidate_is_rejected(monkeypatch, store, mock_checker_cls) -> None:
    _module, _service, client = _build_client(monkeypatch, store, mock_checker_cls())
    response = client.post("/api/candidates", json={"external_id": "  ", "title": "x"})
    assert response.status_code == 400


def test_unknown_group_returns_404(monkeypatch, store, mock_checker_cls) -> None:
    _module, _service, client = _build_client(monkeypatch, store, mock_checker_cls())
    assert client.get("/api/groups/999/versions").status_code == 404


def test_manual_run_and_stats(monkeypatch, store, mock_checker_cls, unavailable_result) -> None:
    checker = mock_checker_cls({"yt-a": unavailable_result()})
    _module, _service, client = _build_client(monkeypatch, store, checker)
    _post_candidate(client, "yt-a", 10_000_000)
    _post_candidate(client, "yt-b", 100)

    response = client.post("/api/validation/run")

    assert response.status_code == 200
    summary = response.json()
    assert summary["status"] == "completed"
    assert summary["failed"] == 1
    assert summary["failovers_triggered"] == 1

    stats = client.get("/api/validation/stats").json()
    assert stats["totals"]["total_failovers"] == 1
    assert stats["recent_runs"][0]["trigger"] == "manual"
    assert stats["quota"]["used_today"] == summary["quota_used"]


def test_concurrent_run_returns_409(monkeypatch, store, mock_checker_cls) -> None:
    _module, service, client = _build_client(monkeypatch, store, mock_checker_cls())

    def _busy(trigger="manual"):
        raise ValidationRunActive("busy")

    monkeypatch.setattr(service, "trigger_validation_run", _busy)
    assert client.post("/api/validation/run").status_code == 409


def test_alerts_listing_and_resolution(monkeypatch, store, mock_checker_cls, unavailable_result) -> None:
    checker = mock_checker_cls({"yt-a": unavailable_result()})
    _module, _service, client = _build_client(monkeypatch, store, checker)
    _post_candidate(client, "yt-a", 10_000_000)
    client.post("/api/validation/run")

    alerts = client.get("/api/alerts").json()["alerts"]
    assert len(alerts) == 1
    assert alerts[0]["severity"] == "critical"

    resolved = client.post(f"/api/alerts/{alerts[0]['id']}/resolve")
    assert resolved.status_code == 200
    assert resolved.json()["resolved"] is True
    assert client.get("/api/alerts").json()["alerts"] == []
    assert client.post("/api/alerts/999/resolve").status_code == 404

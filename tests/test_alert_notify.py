from __future__ import annotations

from types import SimpleNamespace

import requests

from engine.notify import TelegramAlertSink, format_run_summary, telegram_notify


class _Response:
    def __init__(self, ok=True, text=""):
        self.ok = ok
        self.text = text


def _summary(**overrides):
    values = {
        "status": "completed",
        "selected": 3,
        "validated": 2,
        "failed": 1,
        "failovers_triggered": 1,
        "quota_used": 2,
        "duration_seconds": 4,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_alert_is_posted_to_configured_chat(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(
        "engine.notify.requests.post",
        lambda url, json, timeout: calls.append((url, json)) or _Response(),
    )
    sink = TelegramAlertSink({"bot_token": "abc", "chat_id": "42"})

    sent = sink(SimpleNamespace(severity="critical", message='All versions of "Metropolis" are unavailable'))

    assert sent is True
    assert calls == [
        (
            "https://api.telegram.org/botabc/sendMessage",
            {"chat_id": "42", "text": '[CRITICAL] All versions of "Metropolis" are unavailable'},
        )
    ]


def test_unconfigured_sink_sends_nothing(monkeypatch) -> None:
    def _unexpected(*_args, **_kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr("engine.notify.requests.post", _unexpected)
    sink = TelegramAlertSink(None)
    assert sink.enabled is False
    assert sink(SimpleNamespace(severity="warning", message="x")) is False
    assert sink.send_run_summary(_summary()) is False


def test_delivery_failure_is_logged_not_raised(monkeypatch) -> None:
    def _fail(*_args, **_kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr("engine.notify.requests.post", _fail)
    assert telegram_notify({"telegram": {"bot_token": "a", "chat_id": "b"}}, "hi") is False


def test_empty_run_summary_is_not_sent(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr("engine.notify.requests.post", lambda url, json, timeout: calls.append(json) or _Response())
    sink = TelegramAlertSink({"bot_token": "a", "chat_id": "b"})

    assert sink.send_run_summary(_summary(selected=0)) is False
    assert sink.send_run_summary(_summary()) is True
    assert len(calls) == 1


def test_run_summary_lists_counts() -> None:
    text = format_run_summary(_summary())
    assert "Validated: 2" in text
    assert "Failovers: 1" in text
    assert "Quota used: 2" in text

"""Alert and run-summary delivery to Telegram."""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)


def telegram_notify(config, message):
    telegram = config.get("telegram") if isinstance(config, dict) else None
    if not telegram or not message:
        return False
    bot_token = telegram.get("bot_token")
    chat_id = telegram.get("chat_id")
    if not bot_token or not chat_id:
        return False
    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
    payload = {"chat_id": chat_id, "text": message}
    try:
        resp = requests.post(url, json=payload, timeout=15)
        if resp.ok:
            return True
        logger.warning("Telegram notify failed: %s", resp.text)
    except requests.RequestException:
        logger.exception("Telegram notify failed")
    return False


def format_alert_message(alert) -> str:
    return f"[{str(alert.severity).upper()}] {alert.message}"


def format_run_summary(summary) -> str:
    return (
        "Link Validation Summary\n"
        f"Status: {summary.status}\n"
        f"Validated: {summary.validated}\n"
        f"Failed: {summary.failed}\n"
        f"Failovers: {summary.failovers_triggered}\n"
        f"Quota used: {summary.quota_used}\n"
        f"Duration: {summary.duration_seconds}s"
    )


class TelegramAlertSink:
    """Deliver persisted admin alerts; delivery failures are logged, never raised."""

    def __init__(self, config: dict | None) -> None:
        self.config = {"telegram": dict(config)} if config else {}

    @property
    def enabled(self) -> bool:
        telegram = self.config.get("telegram") or {}
        return bool(telegram.get("bot_token") and telegram.get("chat_id"))

    def __call__(self, alert) -> bool:
        if not self.enabled:
            return False
        return telegram_notify(self.config, format_alert_message(alert))

    def send_run_summary(self, summary) -> bool:
        if not self.enabled or summary.selected <= 0:
            return False
        return telegram_notify(self.config, format_run_summary(summary))

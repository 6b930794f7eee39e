"""Daily API quota budget backed by the catalog store's quota ledger."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from engine.errors import QuotaExhausted

logger = logging.getLogger(__name__)

OPERATION_VIDEOS_LIST = "videos.list"


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class QuotaBudget:
    """Track units spent against a per-UTC-day budget.

    The ledger row for the day is only mutated inside the store's write
    transaction, so separate processes sharing one database see one counter.
    """

    def __init__(self, store, daily_budget: int, *, clock: Callable[[], datetime] = _utc_clock) -> None:
        self.store = store
        self.daily_budget = int(daily_budget)
        self._clock = clock
        self._lock = threading.Lock()

    def _today(self) -> str:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc).date().isoformat()

    def used_today(self) -> int:
        return self.store.quota_used(self._today())

    def remaining(self) -> int:
        return max(0, self.daily_budget - self.used_today())

    def consume(self, units: int, operation: str = OPERATION_VIDEOS_LIST) -> int:
        """Record ``units`` for today; raises QuotaExhausted if they do not fit."""
        with self._lock:
            consumed, used = self.store.try_consume_quota(self._today(), operation, int(units), self.daily_budget)
        if not consumed:
            remaining = max(0, self.daily_budget - used)
            logger.warning(
                "Quota budget exhausted: requested=%s remaining=%s budget=%s",
                units,
                remaining,
                self.daily_budget,
            )
            raise QuotaExhausted(requested=int(units), remaining=remaining)
        return used

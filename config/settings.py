"""Application settings constants and the validation settings loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

# YouTube Data API v3 allows 10,000 units per day; videos.list costs 1 unit.
DAILY_QUOTA_BUDGET = 10000
COST_PER_CALL = 1

# Leave 1,000 units for operations outside the daily validation pass.
MAX_DAILY_CHECKS = 9000

# videos.list accepts at most 50 ids per request.
MAX_BATCH_SIZE = 50
BATCH_SIZE = 50
BATCH_DELAY_SECONDS = 1.0

SIMILARITY_THRESHOLD = 0.7
YEAR_TOLERANCE = 1
FAILOVER_BREADTH = 3

# A run lease older than this is considered abandoned.
LEASE_TTL_SECONDS = 6 * 60 * 60

VALIDATION_HOUR_UTC = 3

ENV_PREFIX = "CANONWATCH_"
DEFAULT_DB_PATH = os.path.join(os.getcwd(), "canonwatch.sqlite3")

_INT_OPTIONS = (
    "daily_quota_budget",
    "max_daily_checks",
    "batch_size",
    "year_tolerance",
    "failover_breadth",
    "cost_per_call",
    "lease_ttl_seconds",
)
_FLOAT_OPTIONS = ("batch_delay_seconds", "similarity_threshold")
_STR_OPTIONS = ("youtube_api_key", "youtube_token_path", "db_path")


@dataclass(frozen=True)
class ValidationSettings:
    daily_quota_budget: int = DAILY_QUOTA_BUDGET
    max_daily_checks: int = MAX_DAILY_CHECKS
    batch_size: int = BATCH_SIZE
    batch_delay_seconds: float = BATCH_DELAY_SECONDS
    similarity_threshold: float = SIMILARITY_THRESHOLD
    year_tolerance: int = YEAR_TOLERANCE
    failover_breadth: int = FAILOVER_BREADTH
    cost_per_call: int = COST_PER_CALL
    lease_ttl_seconds: int = LEASE_TTL_SECONDS
    youtube_api_key: str | None = None
    youtube_token_path: str | None = None
    db_path: str = DEFAULT_DB_PATH
    schedule_enabled: bool = True
    validation_hour_utc: int = VALIDATION_HOUR_UTC
    telegram: dict | None = None


def load_config(path):
    with open(path, "r") as f:
        return json.load(f)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config):
    errors = []
    if not isinstance(config, dict):
        return ["config must be a JSON object"]

    for key in _INT_OPTIONS:
        value = config.get(key)
        if value is None:
            continue
        if not _is_int(value):
            errors.append(f"{key} must be an integer")
        elif value < 0:
            errors.append(f"{key} must be >= 0")

    batch_size = config.get("batch_size")
    if _is_int(batch_size) and not (1 <= batch_size <= MAX_BATCH_SIZE):
        errors.append(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")

    failover_breadth = config.get("failover_breadth")
    if _is_int(failover_breadth) and failover_breadth < 1:
        errors.append("failover_breadth must be >= 1")

    cost_per_call = config.get("cost_per_call")
    if _is_int(cost_per_call) and cost_per_call < 1:
        errors.append("cost_per_call must be >= 1")

    for key in _FLOAT_OPTIONS:
        value = config.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(f"{key} must be a number")
        elif value < 0:
            errors.append(f"{key} must be >= 0")

    threshold = config.get("similarity_threshold")
    if isinstance(threshold, (int, float)) and not isinstance(threshold, bool) and threshold > 1:
        errors.append("similarity_threshold must be between 0 and 1")

    for key in _STR_OPTIONS:
        value = config.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{key} must be a string")

    schedule = config.get("schedule")
    if schedule is not None:
        if not isinstance(schedule, dict):
            errors.append("schedule must be an object")
        else:
            enabled = schedule.get("enabled")
            if enabled is not None and not isinstance(enabled, bool):
                errors.append("schedule.enabled must be true/false")
            hour = schedule.get("hour_utc")
            if hour is not None:
                if not _is_int(hour):
                    errors.append("schedule.hour_utc must be an integer")
                elif not (0 <= hour <= 23):
                    errors.append("schedule.hour_utc must be between 0 and 23")

    telegram = config.get("telegram")
    if telegram is not None and not isinstance(telegram, dict):
        errors.append("telegram must be an object")

    return errors


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key in _INT_OPTIONS:
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None or not raw.strip():
            continue
        try:
            overrides[key] = int(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{key.upper()} must be an integer") from None
    for key in _FLOAT_OPTIONS:
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None or not raw.strip():
            continue
        try:
            overrides[key] = float(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{key.upper()} must be a number") from None
    for key in _STR_OPTIONS:
        raw = env.get(ENV_PREFIX + key.upper())
        if raw and raw.strip():
            overrides[key] = raw.strip()
    return overrides


def load_settings(config: dict | None = None, env: Mapping[str, str] | None = None) -> ValidationSettings:
    """Build settings from a config object, letting environment variables win."""
    cfg = dict(config or {})
    errors = validate_config(cfg)
    if errors:
        raise ValueError("; ".join(errors))

    values: dict[str, Any] = {}
    for key in (*_INT_OPTIONS, *_FLOAT_OPTIONS, *_STR_OPTIONS):
        if cfg.get(key) is not None:
            values[key] = cfg[key]
    values.update(_env_overrides(os.environ if env is None else env))

    schedule = cfg.get("schedule") or {}
    if schedule.get("enabled") is not None:
        values["schedule_enabled"] = bool(schedule["enabled"])
    if schedule.get("hour_utc") is not None:
        values["validation_hour_utc"] = int(schedule["hour_utc"])
    if cfg.get("telegram"):
        values["telegram"] = dict(cfg["telegram"])

    settings = replace(ValidationSettings(), **values)
    if not (1 <= settings.batch_size <= MAX_BATCH_SIZE):
        raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
    return settings

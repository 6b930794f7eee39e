from __future__ import annotations

import json

import pytest

from config.settings import (
    DAILY_QUOTA_BUDGET,
    MAX_BATCH_SIZE,
    ValidationSettings,
    load_config,
    load_settings,
    validate_config,
)


def test_defaults_match_platform_limits() -> None:
    settings = load_settings({}, env={})
    assert settings == ValidationSettings()
    assert settings.daily_quota_budget == DAILY_QUOTA_BUDGET == 10000
    assert settings.max_daily_checks == 9000
    assert settings.batch_size == MAX_BATCH_SIZE == 50
    assert settings.failover_breadth == 3
    assert settings.similarity_threshold == 0.7


def test_config_file_values_are_applied(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "daily_quota_budget": 500,
                "batch_size": 25,
                "batch_delay_seconds": 0.5,
                "schedule": {"enabled": False, "hour_utc": 4},
                "telegram": {"bot_token": "t", "chat_id": "c"},
            }
        )
    )

    settings = load_settings(load_config(str(path)), env={})

    assert settings.daily_quota_budget == 500
    assert settings.batch_size == 25
    assert settings.batch_delay_seconds == 0.5
    assert settings.schedule_enabled is False
    assert settings.validation_hour_utc == 4
    assert settings.telegram == {"bot_token": "t", "chat_id": "c"}


def test_environment_overrides_config() -> None:
    settings = load_settings(
        {"max_daily_checks": 100},
        env={"CANONWATCH_MAX_DAILY_CHECKS": "42", "CANONWATCH_DB_PATH": "/tmp/x.sqlite3"},
    )
    assert settings.max_daily_checks == 42
    assert settings.db_path == "/tmp/x.sqlite3"


def test_bad_environment_value_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_settings({}, env={"CANONWATCH_BATCH_SIZE": "many"})


def test_batch_size_above_platform_maximum_is_rejected() -> None:
    assert validate_config({"batch_size": 51}) == ["batch_size must be between 1 and 50"]
    with pytest.raises(ValueError):
        load_settings({}, env={"CANONWATCH_BATCH_SIZE": "80"})


def test_validate_config_collects_every_error() -> None:
    errors = validate_config(
        {
            "daily_quota_budget": "lots",
            "similarity_threshold": 1.5,
            "failover_breadth": 0,
            "schedule": {"hour_utc": 25},
            "telegram": "nope",
        }
    )
    assert "daily_quota_budget must be an integer" in errors
    assert "similarity_threshold must be between 0 and 1" in errors
    assert "failover_breadth must be >= 1" in errors
    assert "schedule.hour_utc must be between 0 and 23" in errors
    assert "telegram must be an object" in errors


def test_non_object_config_is_rejected() -> None:
    assert validate_config([]) == ["config must be a JSON object"]

"""SQLite migrations for catalog, validation and failover storage."""

from __future__ import annotations

import sqlite3


def ensure_catalog_tables(conn: sqlite3.Connection) -> None:
    """Ensure group and candidate tables and indexes exist."""
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS media_groups (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            canonical_title TEXT NOT NULL,
            normalized_title TEXT NOT NULL,
            catalog_id TEXT UNIQUE,
            release_year INTEGER,
            created_at TEXT NOT NULL
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_media_groups_release_year "
        "ON media_groups (release_year)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS candidates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            external_id TEXT NOT NULL UNIQUE,
            title TEXT NOT NULL,
            catalog_id TEXT,
            release_year INTEGER,
            view_count INTEGER,
            published_at TEXT,
            embeddable INTEGER,
            channel_id TEXT,
            channel_reputation REAL,
            duration_seconds INTEGER,
            quality_score INTEGER NOT NULL DEFAULT 0,
            is_available INTEGER NOT NULL DEFAULT 1,
            last_checked_at TEXT,
            validation_error TEXT,
            group_id INTEGER NOT NULL,
            is_primary INTEGER NOT NULL DEFAULT 0,
            ingested_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (group_id) REFERENCES media_groups(id)
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_candidates_group_primary "
        "ON candidates (group_id, is_primary)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_candidates_group_quality "
        "ON candidates (group_id, is_available, quality_score DESC)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_candidates_validation_due "
        "ON candidates (is_available, last_checked_at, id)"
    )
    # Second line of defence for the one-primary-per-group invariant.
    cur.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_candidates_one_primary "
        "ON candidates (group_id) WHERE is_primary = 1"
    )
    conn.commit()


def ensure_validation_tables(conn: sqlite3.Connection) -> None:
    """Ensure run, failure, failover, alert, quota and lease tables exist."""
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS validation_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            trigger TEXT NOT NULL,
            status TEXT NOT NULL,
            started_at TEXT NOT NULL,
            finished_at TEXT,
            duration_seconds INTEGER,
            selected_count INTEGER NOT NULL DEFAULT 0,
            validated_count INTEGER NOT NULL DEFAULT 0,
            failed_count INTEGER NOT NULL DEFAULT 0,
            failover_count INTEGER NOT NULL DEFAULT 0,
            transient_error_count INTEGER NOT NULL DEFAULT 0,
            deferred_count INTEGER NOT NULL DEFAULT 0,
            quota_used INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_validation_runs_started "
        "ON validation_runs (started_at DESC)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS validation_failures (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            candidate_id INTEGER NOT NULL,
            external_id TEXT NOT NULL,
            failure_reason TEXT,
            was_primary INTEGER NOT NULL,
            detected_at TEXT NOT NULL,
            FOREIGN KEY (candidate_id) REFERENCES candidates(id)
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_validation_failures_detected "
        "ON validation_failures (detected_at)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS failover_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            group_id INTEGER NOT NULL,
            old_primary_id INTEGER,
            new_primary_id INTEGER NOT NULL,
            triggered_at TEXT NOT NULL,
            FOREIGN KEY (group_id) REFERENCES media_groups(id)
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_failover_events_group "
        "ON failover_events (group_id, triggered_at)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS admin_alerts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL,
            group_id INTEGER,
            message TEXT NOT NULL,
            severity TEXT NOT NULL DEFAULT 'warning',
            resolved INTEGER NOT NULL DEFAULT 0,
            resolved_at TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY (group_id) REFERENCES media_groups(id)
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_admin_alerts_unresolved "
        "ON admin_alerts (resolved, created_at DESC)"
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS api_quota_usage (
            date TEXT NOT NULL,
            operation TEXT NOT NULL,
            units INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (date, operation)
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS validation_lease (
            name TEXT PRIMARY KEY,
            holder TEXT NOT NULL,
            acquired_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
        """
    )
    conn.commit()

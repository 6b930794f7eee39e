"""SQLite persistence for candidates, groups, validation runs and alerts."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Iterator

from db.migrations import ensure_catalog_tables, ensure_validation_tables
from engine.errors import PersistenceError
from engine.types import (
    AdminAlert,
    Candidate,
    CandidateIdentity,
    FailoverEvent,
    MediaGroup,
    ObservableSignals,
    RunCounters,
    ValidationRunRecord,
    format_iso,
    parse_iso,
    utc_now,
)

logger = logging.getLogger(__name__)

RUN_STATUS_RUNNING = "running"
RUN_STATUS_COMPLETED = "completed"
RUN_STATUS_QUOTA_EXHAUSTED = "quota_exhausted"
RUN_STATUS_FAILED = "failed"

ALERT_ALL_BACKUPS_FAILED = "all_backups_failed"
ALERT_FAILOVER_DEFERRED = "failover_deferred"

VALIDATION_LEASE_NAME = "validation_run"

_CANDIDATE_COLUMNS = (
    "id, external_id, title, catalog_id, release_year, view_count, published_at, "
    "embeddable, channel_id, channel_reputation, duration_seconds, quality_score, "
    "is_available, last_checked_at, validation_error, group_id, is_primary, "
    "ingested_at, updated_at"
)


def _optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    return bool(value)


def _bool_to_int(value: bool | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


class CatalogStore:
    """Store for the catalog tables; every write runs in its own transaction."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _session(self, *, immediate: bool = False) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot open catalog database: {exc}") from exc
        try:
            cur = conn.cursor()
            if immediate:
                cur.execute("BEGIN IMMEDIATE")
            yield cur
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        """Ensure catalog and validation schema exists."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot open catalog database: {exc}") from exc
        try:
            ensure_catalog_tables(conn)
            ensure_validation_tables(conn)
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    # Row mapping

    @staticmethod
    def _row_to_group(row) -> MediaGroup | None:
        if not row:
            return None
        return MediaGroup(
            id=int(row["id"]),
            canonical_title=row["canonical_title"],
            normalized_title=row["normalized_title"],
            catalog_id=row["catalog_id"],
            release_year=row["release_year"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_candidate(row) -> Candidate | None:
        if not row:
            return None
        signals = ObservableSignals(
            view_count=row["view_count"],
            published_at=row["published_at"],
            embeddable=_optional_bool(row["embeddable"]),
            channel_id=row["channel_id"],
            channel_reputation=row["channel_reputation"],
            duration_seconds=row["duration_seconds"],
        )
        return Candidate(
            id=int(row["id"]),
            external_id=row["external_id"],
            title=row["title"],
            catalog_id=row["catalog_id"],
            release_year=row["release_year"],
            signals=signals,
            quality_score=int(row["quality_score"]),
            is_available=bool(row["is_available"]),
            last_checked_at=row["last_checked_at"],
            validation_error=row["validation_error"],
            group_id=int(row["group_id"]),
            is_primary=bool(row["is_primary"]),
            ingested_at=row["ingested_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_alert(row) -> AdminAlert | None:
        if not row:
            return None
        return AdminAlert(
            id=int(row["id"]),
            type=row["type"],
            group_id=row["group_id"],
            message=row["message"],
            severity=row["severity"],
            resolved=bool(row["resolved"]),
            resolved_at=row["resolved_at"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_run(row) -> ValidationRunRecord | None:
        if not row:
            return None
        return ValidationRunRecord(
            id=int(row["id"]),
            trigger=row["trigger"],
            status=row["status"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            duration_seconds=row["duration_seconds"],
            selected_count=int(row["selected_count"]),
            validated_count=int(row["validated_count"]),
            failed_count=int(row["failed_count"]),
            failover_count=int(row["failover_count"]),
            transient_error_count=int(row["transient_error_count"]),
            deferred_count=int(row["deferred_count"]),
            quota_used=int(row["quota_used"]),
        )

    @staticmethod
    def _row_to_failover(row) -> FailoverEvent:
        return FailoverEvent(
            id=int(row["id"]),
            group_id=int(row["group_id"]),
            old_primary_id=row["old_primary_id"],
            new_primary_id=int(row["new_primary_id"]),
            triggered_at=row["triggered_at"],
        )

    # Groups

    def get_group(self, group_id: int) -> MediaGroup | None:
        with self._session() as cur:
            cur.execute("SELECT * FROM media_groups WHERE id=?", (group_id,))
            return self._row_to_group(cur.fetchone())

    def find_group_by_catalog_id(self, catalog_id: str | None) -> MediaGroup | None:
        cid = str(catalog_id or "").strip()
        if not cid:
            return None
        with self._session() as cur:
            cur.execute("SELECT * FROM media_groups WHERE catalog_id=? LIMIT 1", (cid,))
            return self._row_to_group(cur.fetchone())

    def list_groups_for_matching(self, release_year: int | None, year_tolerance: int) -> list[MediaGroup]:
        """Return groups whose release year is compatible with ``release_year``."""
        with self._session() as cur:
            cur.execute(
                """
                SELECT * FROM media_groups
                WHERE ? IS NULL OR release_year IS NULL OR ABS(release_year - ?) <= ?
                ORDER BY id ASC
                """,
                (release_year, release_year, int(year_tolerance)),
            )
            return [self._row_to_group(row) for row in cur.fetchall()]

    def create_group(
        self,
        *,
        canonical_title: str,
        normalized_title: str,
        catalog_id: str | None = None,
        release_year: int | None = None,
        now: str | None = None,
    ) -> tuple[MediaGroup, bool]:
        """Insert a group; returns ``(group, created)``.

        When another writer already created a group for ``catalog_id`` the
        existing group is returned with ``created=False``.
        """
        now = now or utc_now()
        cid = str(catalog_id or "").strip() or None
        with self._session(immediate=True) as cur:
            if cid:
                cur.execute("SELECT * FROM media_groups WHERE catalog_id=? LIMIT 1", (cid,))
                existing = cur.fetchone()
                if existing:
                    return self._row_to_group(existing), False
            cur.execute(
                """
                INSERT INTO media_groups (canonical_title, normalized_title, catalog_id, release_year, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (canonical_title, normalized_title, cid, release_year, now),
            )
            group_id = int(cur.lastrowid)
            cur.execute("SELECT * FROM media_groups WHERE id=?", (group_id,))
            return self._row_to_group(cur.fetchone()), True

    # Candidates

    def get_candidate(self, candidate_id: int) -> Candidate | None:
        with self._session() as cur:
            cur.execute(f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE id=?", (candidate_id,))
            return self._row_to_candidate(cur.fetchone())

    def get_candidate_by_external_id(self, external_id: str) -> Candidate | None:
        with self._session() as cur:
            cur.execute(
                f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE external_id=? LIMIT 1",
                (external_id,),
            )
            return self._row_to_candidate(cur.fetchone())

    def get_primary(self, group_id: int) -> Candidate | None:
        with self._session() as cur:
            cur.execute(
                f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE group_id=? AND is_primary=1 LIMIT 1",
                (group_id,),
            )
            return self._row_to_candidate(cur.fetchone())

    def insert_candidate(
        self,
        identity: CandidateIdentity,
        signals: ObservableSignals,
        *,
        group_id: int,
        quality_score: int,
        decide: Callable[[Candidate | None], Any],
        now: str | None = None,
    ) -> tuple[Candidate, Any]:
        """Insert a candidate and apply the primary decision in one transaction.

        ``decide`` receives the group's current available primary (or None)
        and returns an object with ``is_primary`` and ``demote`` attributes.
        A primary flag left on an unavailable member is cleared when the new
        candidate takes over.
        """
        now = now or utc_now()
        with self._session(immediate=True) as cur:
            cur.execute(
                f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE group_id=? AND is_primary=1 LIMIT 1",
                (group_id,),
            )
            flagged = self._row_to_candidate(cur.fetchone())
            current = flagged if flagged is not None and flagged.is_available else None
            decision = decide(current)
            if decision.is_primary:
                cur.execute(
                    "UPDATE candidates SET is_primary=0, updated_at=? WHERE group_id=? AND is_primary=1",
                    (now, group_id),
                )
            cur.execute(
                """
                INSERT INTO candidates (
                    external_id, title, catalog_id, release_year, view_count, published_at,
                    embeddable, channel_id, channel_reputation, duration_seconds, quality_score,
                    is_available, last_checked_at, validation_error, group_id, is_primary,
                    ingested_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, NULL, NULL, ?, ?, ?, ?)
                """,
                (
                    identity.external_id,
                    identity.title,
                    identity.catalog_id,
                    identity.release_year,
                    signals.view_count,
                    signals.published_at,
                    _bool_to_int(signals.embeddable),
                    signals.channel_id,
                    signals.channel_reputation,
                    signals.duration_seconds,
                    int(quality_score),
                    group_id,
                    1 if decision.is_primary else 0,
                    now,
                    now,
                ),
            )
            candidate_id = int(cur.lastrowid)
            cur.execute(f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE id=?", (candidate_id,))
            return self._row_to_candidate(cur.fetchone()), decision

    def update_signals(
        self,
        candidate_id: int,
        signals: ObservableSignals,
        quality_score: int,
        *,
        now: str | None = None,
    ) -> None:
        now = now or utc_now()
        with self._session() as cur:
            cur.execute(
                """
                UPDATE candidates
                SET view_count=?, published_at=?, embeddable=?, channel_id=?, channel_reputation=?,
                    duration_seconds=?, quality_score=?, updated_at=?
                WHERE id=?
                """,
                (
                    signals.view_count,
                    signals.published_at,
                    _bool_to_int(signals.embeddable),
                    signals.channel_id,
                    signals.channel_reputation,
                    signals.duration_seconds,
                    int(quality_score),
                    now,
                    candidate_id,
                ),
            )

    def mark_checked(self, candidate_id: int, *, now: str | None = None) -> None:
        """Advance ``last_checked_at`` for a candidate confirmed available."""
        now = now or utc_now()
        with self._session() as cur:
            cur.execute(
                "UPDATE candidates SET last_checked_at=?, validation_error=NULL, updated_at=? WHERE id=?",
                (now, now, candidate_id),
            )

    def mark_unavailable(self, candidate_id: int, reason: str, *, now: str | None = None) -> Candidate | None:
        """Mark a candidate unavailable and append a validation failure row.

        The primary flag is left untouched; the failover cascade clears it.
        """
        now = now or utc_now()
        with self._session(immediate=True) as cur:
            cur.execute(f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE id=?", (candidate_id,))
            candidate = self._row_to_candidate(cur.fetchone())
            if candidate is None:
                return None
            cur.execute(
                """
                UPDATE candidates
                SET is_available=0, last_checked_at=?, validation_error=?, updated_at=?
                WHERE id=?
                """,
                (now, reason, now, candidate_id),
            )
            cur.execute(
                """
                INSERT INTO validation_failures (candidate_id, external_id, failure_reason, was_primary, detected_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (candidate_id, candidate.external_id, reason, 1 if candidate.is_primary else 0, now),
            )
            cur.execute(f"SELECT {_CANDIDATE_COLUMNS} FROM candidates WHERE id=?", (candidate_id,))
            return self._row_to_candidate(cur.fetchone())

    def select_due_candidates(self, limit: int) -> list[Candidate]:
        """Return available candidates, least recently checked first (never-checked first)."""
        if limit <= 0:
            return []
        with self._session() as cur:
            cur.execute(
                f"""
                SELECT {_CANDIDATE_COLUMNS} FROM candidates
                WHERE is_available=1
                ORDER BY last_checked_at ASC, id ASC
                LIMIT ?
                """,
                (int(limit),),
            )
            return [self._row_to_candidate(row) for row in cur.fetchall()]

    def list_backups(self, group_id: int, limit: int) -> list[Candidate]:
        """Return available non-primary members by score, then ingestion order."""
        with self._session() as cur:
            cur.execute(
                f"""
                SELECT {_CANDIDATE_COLUMNS} FROM candidates
                WHERE group_id=? AND is_available=1 AND is_primary=0
                ORDER BY quality_score DESC, ingested_at ASC, id ASC
                LIMIT ?
                """,
                (group_id, int(limit)),
            )
            return [self._row_to_candidate(row) for row in cur.fetchall()]

    def list_group_versions(self, group_id: int) -> list[Candidate]:
        with self._session() as cur:
            cur.execute(
                f"""
                SELECT {_CANDIDATE_COLUMNS} FROM candidates
                WHERE group_id=?
                ORDER BY is_primary DESC, quality_score DESC, ingested_at ASC, id ASC
                """,
                (group_id,),
            )
            return [self._row_to_candidate(row) for row in cur.fetchall()]

    def backup_count(self, group_id: int) -> int:
        with self._session() as cur:
            cur.execute(
                "SELECT COUNT(*) FROM candidates WHERE group_id=? AND is_available=1 AND is_primary=0",
                (group_id,),
            )
            return int(cur.fetchone()[0])

    def promote_backup(
        self,
        group_id: int,
        new_primary_id: int,
        failed_primary_id: int | None,
        *,
        now: str | None = None,
    ) -> FailoverEvent:
        """Swap the group's primary to ``new_primary_id`` and append a failover event."""
        now = now or utc_now()
        with self._session(immediate=True) as cur:
            cur.execute(
                "SELECT id FROM candidates WHERE id=? AND group_id=? AND is_available=1",
                (new_primary_id, group_id),
            )
            if cur.fetchone() is None:
                raise PersistenceError(
                    f"candidate {new_primary_id} is not an available member of group {group_id}"
                )
            cur.execute(
                "UPDATE candidates SET is_primary=0, updated_at=? WHERE group_id=? AND is_primary=1",
                (now, group_id),
            )
            cur.execute(
                "UPDATE candidates SET is_primary=1, last_checked_at=?, updated_at=? WHERE id=?",
                (now, now, new_primary_id),
            )
            cur.execute(
                """
                INSERT INTO failover_events (group_id, old_primary_id, new_primary_id, triggered_at)
                VALUES (?, ?, ?, ?)
                """,
                (group_id, failed_primary_id, new_primary_id, now),
            )
            event_id = int(cur.lastrowid)
            cur.execute("SELECT * FROM failover_events WHERE id=?", (event_id,))
            return self._row_to_failover(cur.fetchone())

    def clear_primary(self, group_id: int, candidate_id: int | None = None, *, now: str | None = None) -> int:
        """Clear the primary flag in a group; returns the number of rows changed."""
        now = now or utc_now()
        with self._session(immediate=True) as cur:
            if candidate_id is None:
                cur.execute(
                    "UPDATE candidates SET is_primary=0, updated_at=? WHERE group_id=? AND is_primary=1",
                    (now, group_id),
                )
            else:
                cur.execute(
                    "UPDATE candidates SET is_primary=0, updated_at=? WHERE id=? AND group_id=? AND is_primary=1",
                    (now, candidate_id, group_id),
                )
            return int(cur.rowcount)

    def list_groups_missing_primary(self, limit: int = 100) -> list[tuple[int, int | None]]:
        """Return ``(group_id, stale_primary_id)`` for groups with available members but no available primary."""
        with self._session() as cur:
            cur.execute(
                """
                SELECT g.id AS group_id,
                       (SELECT c.id FROM candidates c
                        WHERE c.group_id = g.id AND c.is_primary = 1 LIMIT 1) AS stale_primary_id
                FROM media_groups g
                WHERE EXISTS (
                    SELECT 1 FROM candidates a WHERE a.group_id = g.id AND a.is_available = 1
                )
                AND NOT EXISTS (
                    SELECT 1 FROM candidates p
                    WHERE p.group_id = g.id AND p.is_primary = 1 AND p.is_available = 1
                )
                ORDER BY g.id ASC
                LIMIT ?
                """,
                (int(limit),),
            )
            return [(int(row["group_id"]), row["stale_primary_id"]) for row in cur.fetchall()]

    def list_failover_events(self, group_id: int | None = None) -> list[FailoverEvent]:
        with self._session() as cur:
            if group_id is None:
                cur.execute("SELECT * FROM failover_events ORDER BY id ASC")
            else:
                cur.execute("SELECT * FROM failover_events WHERE group_id=? ORDER BY id ASC", (group_id,))
            return [self._row_to_failover(row) for row in cur.fetchall()]

    def list_validation_failures(self, candidate_id: int | None = None) -> list[dict[str, Any]]:
        with self._session() as cur:
            if candidate_id is None:
                cur.execute("SELECT * FROM validation_failures ORDER BY id ASC")
            else:
                cur.execute(
                    "SELECT * FROM validation_failures WHERE candidate_id=? ORDER BY id ASC",
                    (candidate_id,),
                )
            return [dict(row) for row in cur.fetchall()]

    # Alerts

    def create_alert(
        self,
        *,
        alert_type: str,
        group_id: int | None,
        message: str,
        severity: str = "warning",
        now: str | None = None,
    ) -> tuple[AdminAlert, bool]:
        """Insert an alert unless an unresolved one of the same type exists for the group."""
        now = now or utc_now()
        with self._session(immediate=True) as cur:
            cur.execute(
                """
                SELECT * FROM admin_alerts
                WHERE type=? AND group_id IS ? AND resolved=0
                ORDER BY id ASC
                LIMIT 1
                """,
                (alert_type, group_id),
            )
            existing = cur.fetchone()
            if existing:
                return self._row_to_alert(existing), False
            cur.execute(
                """
                INSERT INTO admin_alerts (type, group_id, message, severity, resolved, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (alert_type, group_id, message, severity, now),
            )
            alert_id = int(cur.lastrowid)
            cur.execute("SELECT * FROM admin_alerts WHERE id=?", (alert_id,))
            return self._row_to_alert(cur.fetchone()), True

    def list_alerts(self, *, resolved: bool | None = False, limit: int = 100) -> list[AdminAlert]:
        with self._session() as cur:
            if resolved is None:
                cur.execute("SELECT * FROM admin_alerts ORDER BY created_at DESC, id DESC LIMIT ?", (int(limit),))
            else:
                cur.execute(
                    "SELECT * FROM admin_alerts WHERE resolved=? ORDER BY created_at DESC, id DESC LIMIT ?",
                    (1 if resolved else 0, int(limit)),
                )
            return [self._row_to_alert(row) for row in cur.fetchall()]

    def resolve_alert(self, alert_id: int, *, now: str | None = None) -> AdminAlert | None:
        now = now or utc_now()
        with self._session(immediate=True) as cur:
            cur.execute(
                "UPDATE admin_alerts SET resolved=1, resolved_at=? WHERE id=? AND resolved=0",
                (now, alert_id),
            )
            cur.execute("SELECT * FROM admin_alerts WHERE id=?", (alert_id,))
            return self._row_to_alert(cur.fetchone())

    # Validation runs

    def start_run(self, trigger: str, *, now: str | None = None) -> int:
        now = now or utc_now()
        with self._session() as cur:
            cur.execute(
                "INSERT INTO validation_runs (trigger, status, started_at) VALUES (?, ?, ?)",
                (trigger, RUN_STATUS_RUNNING, now),
            )
            return int(cur.lastrowid)

    def finish_run(
        self,
        run_id: int,
        *,
        status: str,
        counters: RunCounters,
        finished_at: str,
        duration_seconds: int,
    ) -> ValidationRunRecord | None:
        """Finalize a running record; finalized runs are never updated again."""
        with self._session(immediate=True) as cur:
            cur.execute(
                """
                UPDATE validation_runs
                SET status=?, finished_at=?, duration_seconds=?, selected_count=?, validated_count=?,
                    failed_count=?, failover_count=?, transient_error_count=?, deferred_count=?, quota_used=?
                WHERE id=? AND status=?
                """,
                (
                    status,
                    finished_at,
                    int(duration_seconds),
                    counters.selected,
                    counters.validated,
                    counters.failed,
                    counters.failovers,
                    counters.transient_errors,
                    counters.deferred,
                    counters.quota_used,
                    run_id,
                    RUN_STATUS_RUNNING,
                ),
            )
            if cur.rowcount != 1:
                logger.warning("Validation run %s was already finalized", run_id)
            cur.execute("SELECT * FROM validation_runs WHERE id=?", (run_id,))
            return self._row_to_run(cur.fetchone())

    def get_run(self, run_id: int) -> ValidationRunRecord | None:
        with self._session() as cur:
            cur.execute("SELECT * FROM validation_runs WHERE id=?", (run_id,))
            return self._row_to_run(cur.fetchone())

    def list_runs(self, limit: int = 30) -> list[ValidationRunRecord]:
        with self._session() as cur:
            cur.execute(
                "SELECT * FROM validation_runs ORDER BY started_at DESC, id DESC LIMIT ?",
                (int(limit),),
            )
            return [self._row_to_run(row) for row in cur.fetchall()]

    def validation_stats(self, limit: int = 30) -> dict[str, Any]:
        """Totals over the most recent finalized runs."""
        runs = [run for run in self.list_runs(limit) if run.status != RUN_STATUS_RUNNING]
        totals = {
            "total_validated": sum(run.validated_count for run in runs),
            "total_failed": sum(run.failed_count for run in runs),
            "total_failovers": sum(run.failover_count for run in runs),
            "total_quota_used": sum(run.quota_used for run in runs),
        }
        return {
            "recent_runs": [run.to_dict() for run in runs],
            "totals": totals,
            "average_daily_quota": totals["total_quota_used"] / max(len(runs), 1),
        }

    # Quota ledger

    def quota_used(self, date: str) -> int:
        with self._session() as cur:
            cur.execute("SELECT COALESCE(SUM(units), 0) FROM api_quota_usage WHERE date=?", (date,))
            return int(cur.fetchone()[0])

    def try_consume_quota(self, date: str, operation: str, units: int, budget: int) -> tuple[bool, int]:
        """Record ``units`` for ``date`` if the day's total stays within ``budget``.

        Returns ``(consumed, used)`` where ``used`` is the day's total after
        the attempt.
        """
        with self._session(immediate=True) as cur:
            cur.execute("SELECT COALESCE(SUM(units), 0) FROM api_quota_usage WHERE date=?", (date,))
            used = int(cur.fetchone()[0])
            if used + int(units) > int(budget):
                return False, used
            cur.execute(
                """
                INSERT INTO api_quota_usage (date, operation, units) VALUES (?, ?, ?)
                ON CONFLICT (date, operation) DO UPDATE SET units = units + excluded.units
                """,
                (date, operation, int(units)),
            )
            return True, used + int(units)

    # Run lease

    def acquire_lease(self, name: str, holder: str, *, ttl_seconds: int, now: str | None = None) -> bool:
        """Take the named lease unless another holder owns an unexpired one."""
        now = now or utc_now()
        now_dt = parse_iso(now)
        expires_at = format_iso(now_dt + timedelta(seconds=int(ttl_seconds)))
        with self._session(immediate=True) as cur:
            cur.execute("SELECT holder, expires_at FROM validation_lease WHERE name=?", (name,))
            row = cur.fetchone()
            if row is not None:
                current_expiry = parse_iso(row["expires_at"])
                if row["holder"] != holder and current_expiry is not None and current_expiry > now_dt:
                    return False
                if row["holder"] != holder:
                    logger.warning("Taking over expired lease %s from holder %s", name, row["holder"])
            cur.execute(
                """
                INSERT INTO validation_lease (name, holder, acquired_at, expires_at) VALUES (?, ?, ?, ?)
                ON CONFLICT (name) DO UPDATE SET
                    holder=excluded.holder, acquired_at=excluded.acquired_at, expires_at=excluded.expires_at
                """,
                (name, holder, now, expires_at),
            )
            return True

    def release_lease(self, name: str, holder: str) -> bool:
        with self._session(immediate=True) as cur:
            cur.execute("DELETE FROM validation_lease WHERE name=? AND holder=?", (name, holder))
            return cur.rowcount == 1

    # Retention

    def prune_history(
        self,
        *,
        now: str | None = None,
        failure_days: int = 90,
        run_days: int = 90,
        resolved_alert_days: int = 30,
    ) -> dict[str, int]:
        """Delete old failure rows, finalized runs and resolved alerts."""
        now_dt = parse_iso(now or utc_now())
        failures_cutoff = format_iso(now_dt - timedelta(days=failure_days))
        runs_cutoff = format_iso(now_dt - timedelta(days=run_days))
        alerts_cutoff = format_iso(now_dt - timedelta(days=resolved_alert_days))
        with self._session(immediate=True) as cur:
            cur.execute("DELETE FROM validation_failures WHERE detected_at < ?", (failures_cutoff,))
            failures_deleted = int(cur.rowcount)
            cur.execute(
                "DELETE FROM validation_runs WHERE started_at < ? AND status != ?",
                (runs_cutoff, RUN_STATUS_RUNNING),
            )
            runs_deleted = int(cur.rowcount)
            cur.execute(
                "DELETE FROM admin_alerts WHERE resolved=1 AND resolved_at < ?",
                (alerts_cutoff,),
            )
            alerts_deleted = int(cur.rowcount)
        return {
            "failures_deleted": failures_deleted,
            "runs_deleted": runs_deleted,
            "alerts_deleted": alerts_deleted,
        }

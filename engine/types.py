"""Structured types for candidates, groups and validation records."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MatchType(str, Enum):
    CATALOG_ID = "catalog_id"
    FUZZY = "fuzzy"
    NEW_GROUP = "new_group"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class UnavailableReason(str, Enum):
    NONE = "none"
    NOT_FOUND = "not_found"
    PRIVATE = "private"
    NOT_PROCESSED = "not_processed"


def utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def parse_iso(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def _require_non_empty_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"{name} must be a non-empty string")
    return cleaned


def _strip_or_none(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None


@dataclass(frozen=True)
class CandidateIdentity:
    """Identity signals the ingestion pipeline hands over for one video."""

    external_id: str
    title: str
    catalog_id: str | None = None
    release_year: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "external_id", _require_non_empty_str("external_id", self.external_id))
        object.__setattr__(self, "title", _require_non_empty_str("title", self.title))
        object.__setattr__(self, "catalog_id", _strip_or_none(self.catalog_id))
        if self.release_year is not None:
            object.__setattr__(self, "release_year", int(self.release_year))


@dataclass(frozen=True)
class ObservableSignals:
    """Platform-observable signals used by the quality scorer.

    ``published_at`` is kept as an ISO-8601 string; datetimes are normalized
    to UTC on construction.
    """

    view_count: int | None = None
    published_at: str | None = None
    embeddable: bool | None = None
    channel_id: str | None = None
    channel_reputation: float | None = None
    duration_seconds: int | None = None

    def __post_init__(self) -> None:
        if self.view_count is not None:
            object.__setattr__(self, "view_count", max(0, int(self.view_count)))
        if isinstance(self.published_at, datetime):
            object.__setattr__(self, "published_at", format_iso(self.published_at))
        if self.embeddable is not None:
            object.__setattr__(self, "embeddable", bool(self.embeddable))
        object.__setattr__(self, "channel_id", _strip_or_none(self.channel_id))
        if self.channel_reputation is not None:
            reputation = float(self.channel_reputation)
            if not 0.0 <= reputation <= 1.0:
                raise ValueError("channel_reputation must be between 0 and 1")
            object.__setattr__(self, "channel_reputation", reputation)
        if self.duration_seconds is not None:
            object.__setattr__(self, "duration_seconds", max(0, int(self.duration_seconds)))

    def merged(self, **updates: Any) -> "ObservableSignals":
        """Return a copy with the non-None ``updates`` applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({key: value for key, value in updates.items() if value is not None})
        return ObservableSignals(**values)


@dataclass(frozen=True)
class MediaGroup:
    id: int
    canonical_title: str
    normalized_title: str
    catalog_id: str | None
    release_year: int | None
    created_at: str


@dataclass(frozen=True)
class Candidate:
    id: int
    external_id: str
    title: str
    catalog_id: str | None
    release_year: int | None
    signals: ObservableSignals
    quality_score: int
    is_available: bool
    last_checked_at: str | None
    validation_error: str | None
    group_id: int
    is_primary: bool
    ingested_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "title": self.title,
            "catalog_id": self.catalog_id,
            "release_year": self.release_year,
            "view_count": self.signals.view_count,
            "published_at": self.signals.published_at,
            "embeddable": self.signals.embeddable,
            "channel_id": self.signals.channel_id,
            "channel_reputation": self.signals.channel_reputation,
            "duration_seconds": self.signals.duration_seconds,
            "quality_score": self.quality_score,
            "is_available": self.is_available,
            "last_checked_at": self.last_checked_at,
            "validation_error": self.validation_error,
            "group_id": self.group_id,
            "is_primary": self.is_primary,
            "ingested_at": self.ingested_at,
        }


@dataclass(frozen=True)
class FailoverEvent:
    id: int
    group_id: int
    old_primary_id: int | None
    new_primary_id: int
    triggered_at: str


@dataclass(frozen=True)
class AdminAlert:
    id: int
    type: str
    group_id: int | None
    message: str
    severity: str
    resolved: bool
    resolved_at: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "group_id": self.group_id,
            "message": self.message,
            "severity": self.severity,
            "resolved": self.resolved,
            "resolved_at": self.resolved_at,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class ValidationRunRecord:
    id: int
    trigger: str
    status: str
    started_at: str
    finished_at: str | None
    duration_seconds: int | None
    selected_count: int
    validated_count: int
    failed_count: int
    failover_count: int
    transient_error_count: int
    deferred_count: int
    quota_used: int

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class AvailabilityResult:
    """Outcome of one id in a status-endpoint call."""

    status: AvailabilityStatus
    reason: UnavailableReason = UnavailableReason.NONE
    embeddable: bool | None = None
    view_count: int | None = None
    privacy_status: str | None = None

    @property
    def available(self) -> bool:
        return self.status == AvailabilityStatus.AVAILABLE


@dataclass
class RunCounters:
    selected: int = 0
    validated: int = 0
    failed: int = 0
    failovers: int = 0
    transient_errors: int = 0
    deferred: int = 0
    quota_used: int = 0
    alerts: list[int] = field(default_factory=list)

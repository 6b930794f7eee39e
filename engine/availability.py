"""YouTube status-endpoint adapter for availability checks."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config.settings import MAX_BATCH_SIZE
from engine.errors import AvailabilityCheckError, QuotaExhausted, TransientTransportError
from engine.types import AvailabilityResult, AvailabilityStatus, UnavailableReason

logger = logging.getLogger(__name__)

OAUTH_SCOPES = ["https://www.googleapis.com/auth/youtube.readonly"]

_QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded"}
_TRANSIENT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "backendError"}
_TRANSIENT_STATUSES = {429, 500, 502, 503, 504}


def load_credentials(token_path: str) -> Credentials:
    creds = Credentials.from_authorized_user_file(token_path, OAUTH_SCOPES)
    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    return creds


def youtube_service(*, api_key: str | None = None, creds: Credentials | None = None):
    if creds is not None:
        return build("youtube", "v3", credentials=creds, cache_discovery=False)
    if not api_key:
        raise ValueError("a YouTube API key or OAuth credentials are required")
    return build("youtube", "v3", developerKey=api_key, cache_discovery=False)


def _http_error_reason(exc: HttpError) -> str | None:
    details = getattr(exc, "error_details", None)
    if isinstance(details, list):
        for detail in details:
            if isinstance(detail, dict) and detail.get("reason"):
                return str(detail["reason"])
    content = getattr(exc, "content", None)
    if not content:
        return None
    try:
        payload = json.loads(content.decode("utf-8") if isinstance(content, bytes) else content)
    except (ValueError, UnicodeDecodeError):
        return None
    errors = (payload.get("error") or {}).get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        return errors[0].get("reason")
    return None


def _http_status(exc: HttpError) -> int:
    try:
        return int(getattr(exc.resp, "status", 0) or 0)
    except (TypeError, ValueError):
        return 0


def classify_item(item: dict[str, Any] | None) -> AvailabilityResult:
    """Map one ``videos.list`` item (or its absence) to an availability result."""
    if not item:
        return AvailabilityResult(status=AvailabilityStatus.UNAVAILABLE, reason=UnavailableReason.NOT_FOUND)
    status = item.get("status") or {}
    privacy_status = status.get("privacyStatus")
    if privacy_status == "private":
        return AvailabilityResult(
            status=AvailabilityStatus.UNAVAILABLE,
            reason=UnavailableReason.PRIVATE,
            privacy_status=privacy_status,
        )
    if status.get("uploadStatus") != "processed":
        return AvailabilityResult(
            status=AvailabilityStatus.UNAVAILABLE,
            reason=UnavailableReason.NOT_PROCESSED,
            privacy_status=privacy_status,
        )
    statistics = item.get("statistics") or {}
    view_count = statistics.get("viewCount")
    try:
        view_count = int(view_count) if view_count is not None else None
    except (TypeError, ValueError):
        view_count = None
    embeddable = status.get("embeddable")
    return AvailabilityResult(
        status=AvailabilityStatus.AVAILABLE,
        reason=UnavailableReason.NONE,
        embeddable=bool(embeddable) if embeddable is not None else None,
        view_count=view_count,
        privacy_status=privacy_status,
    )


class YouTubeAvailabilityChecker:
    """Check video availability through ``videos.list``.

    One call per batch of up to 50 ids. Budget bookkeeping belongs to the
    caller: this class only executes the calls it is asked to make.
    """

    max_batch_size = MAX_BATCH_SIZE

    def __init__(self, youtube=None, *, api_key: str | None = None, token_path: str | None = None) -> None:
        self._youtube = youtube
        self._api_key = api_key
        self._token_path = token_path

    def _client(self):
        if self._youtube is None:
            creds = None
            if self._token_path:
                try:
                    creds = load_credentials(self._token_path)
                except RefreshError as exc:
                    raise AvailabilityCheckError(f"OAuth refresh failed: {exc}") from exc
            self._youtube = youtube_service(api_key=self._api_key, creds=creds)
        return self._youtube

    def check_batch(self, external_ids: Iterable[str]) -> dict[str, AvailabilityResult]:
        ids = [str(value).strip() for value in external_ids if str(value or "").strip()]
        if not ids:
            return {}
        if len(ids) > self.max_batch_size:
            raise ValueError(f"at most {self.max_batch_size} ids per call, got {len(ids)}")

        try:
            response = (
                self._client()
                .videos()
                .list(part="status,statistics", id=",".join(ids), maxResults=len(ids))
                .execute(num_retries=0)
            )
        except HttpError as exc:
            status = _http_status(exc)
            reason = _http_error_reason(exc)
            if reason in _QUOTA_REASONS:
                raise QuotaExhausted(f"YouTube quota exhausted ({reason})") from exc
            if status in _TRANSIENT_STATUSES or reason in _TRANSIENT_REASONS:
                raise TransientTransportError(f"YouTube status check failed ({status} {reason})") from exc
            raise AvailabilityCheckError(f"YouTube status check rejected ({status} {reason})") from exc
        except RefreshError as exc:
            raise AvailabilityCheckError(f"OAuth refresh failed: {exc}") from exc
        except (OSError, TransportError, httplib2.HttpLib2Error) as exc:
            raise TransientTransportError(f"YouTube status check failed: {exc}") from exc

        items = {}
        for item in (response or {}).get("items", []) or []:
            if isinstance(item, dict) and item.get("id"):
                items[str(item["id"])] = item
        return {video_id: classify_item(items.get(video_id)) for video_id in ids}

    def check_one(self, external_id: str) -> AvailabilityResult:
        results = self.check_batch([external_id])
        return results[str(external_id).strip()]

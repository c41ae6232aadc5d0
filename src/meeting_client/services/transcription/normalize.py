from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from src.meeting_client.domain.errors import MissingSegmentsError
from src.meeting_client.domain.models.segment import UNKNOWN_SPEAKER, Segment, derive_segment_id
from src.meeting_client.domain.models.transcription import (
    AUTO_LANGUAGE,
    Meeting,
    SessionStatus,
    TranscriptionSession,
)

_STOPPED_STATUSES = {"stopped", "completed", "ended", "finished", "inactive"}
_ERROR_STATUSES = {"error", "failed"}


def coerce_status(value: Any, default: SessionStatus = SessionStatus.ACTIVE) -> SessionStatus:
    """Map a service status string onto ``active | stopped | error``.

    Anything not recognisably finished or failed (``requested``, ``joining``...)
    is still in progress and therefore active.
    """

    if not value:
        return default
    normalized = str(value).strip().lower()
    if normalized in _ERROR_STATUSES:
        return SessionStatus.ERROR
    if normalized in _STOPPED_STATUSES:
        return SessionStatus.STOPPED
    return SessionStatus.ACTIVE


def extract_raw_segments(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, dict):
        segments = payload.get("segments")
        if isinstance(segments, list):
            return segments
        transcript = payload.get("transcript")
        if isinstance(transcript, dict) and isinstance(transcript.get("segments"), list):
            return transcript["segments"]
    raise MissingSegmentsError()


def normalize_segment(raw: Dict[str, Any], *, now: Optional[datetime] = None) -> Segment:
    text = raw.get("text") or ""
    timestamp = raw.get("absolute_start_time") or raw.get("timestamp")
    if not timestamp:
        # Best effort only: a segment without an origin time is pinned to the
        # moment it was first seen, which is not stable across polls.
        timestamp = (now or datetime.now(timezone.utc)).isoformat()

    return Segment(
        id=derive_segment_id(str(timestamp), text),
        text=text,
        timestamp=timestamp,
        speaker=raw.get("speaker") or UNKNOWN_SPEAKER,
        language=raw.get("language") or None,
    )


def resolve_language(
    segments: Iterable[Segment],
    reported: Optional[str],
    fallback: Optional[str] = None,
) -> str:
    """Pick the session language.

    The newest segment carrying its own language tag wins over the top-level
    value, which lags behind per-segment detection.
    """

    for segment in reversed(list(segments)):
        if segment.language:
            return segment.language
    return reported or fallback or AUTO_LANGUAGE


def build_session(
    meeting_id: str,
    payload: Any,
    *,
    status: Optional[SessionStatus] = None,
    language_fallback: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TranscriptionSession:
    """Build a snapshot from a ``GET /transcripts/...`` payload.

    Segments may sit at the top level or under ``transcript``; a payload with
    neither raises :class:`MissingSegmentsError`. ``status`` overrides whatever
    the payload reports (history views always show a stopped session).
    """

    now = now or datetime.now(timezone.utc)
    segments = [normalize_segment(raw, now=now) for raw in extract_raw_segments(payload)]

    return TranscriptionSession(
        meeting_id=meeting_id,
        status=status or coerce_status(payload.get("status")),
        language=resolve_language(segments, payload.get("language"), language_fallback),
        segments=segments,
        last_updated=now,
    )


def parse_meeting(raw: Dict[str, Any]) -> Meeting:
    platform = raw["platform"]
    native_meeting_id = raw["native_meeting_id"]
    return Meeting(
        id=f"{platform}/{native_meeting_id}/{raw.get('id')}",
        platform=platform,
        native_meeting_id=native_meeting_id,
        status=coerce_status(raw.get("status"), default=SessionStatus.STOPPED),
        start_time=raw.get("start_time") or datetime.now(timezone.utc),
        end_time=raw.get("end_time"),
        title=f"Meeting {native_meeting_id}",
    )

from __future__ import annotations

import csv
import io
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.meeting_client.config import settings
from src.meeting_client.domain.models.segment import UNKNOWN_SPEAKER, Segment


class ExportFormat(str, Enum):
    TEXT = "txt"
    CSV = "csv"


MEDIA_TYPES = {
    ExportFormat.TEXT: "text/plain",
    ExportFormat.CSV: "text/csv",
}


def resolve_timezone(name: Optional[str] = None) -> tzinfo:
    """Turn ``UTC``, ``local`` or an IANA zone name into a tzinfo.

    Falls back to ``settings.export_timezone`` when no name is given. Raises
    ValueError for names the zone database does not know.
    """

    name = (name or settings.export_timezone).strip()
    if name.upper() == "UTC":
        return timezone.utc
    if name.lower() == "local":
        return datetime.now().astimezone().tzinfo
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc


def _clock_time(segment: Segment, tz: tzinfo) -> str:
    return segment.timestamp.astimezone(tz).strftime("%H:%M:%S")


def format_transcript_text(
    segments: Sequence[Segment],
    *,
    include_timestamps: bool = True,
    include_speakers: bool = True,
    tz: Optional[tzinfo] = None,
) -> str:
    """Render segments as ``[HH:MM:SS] Speaker: text`` blocks separated by a blank line.

    Clock times are shown in ``tz``, or the configured export zone when omitted.
    """

    if tz is None:
        tz = resolve_timezone()
    blocks = []
    for segment in segments:
        timestamp = f"[{_clock_time(segment, tz)}] " if include_timestamps else ""
        speaker = f"{segment.speaker}: " if include_speakers and segment.speaker else ""
        blocks.append(f"{timestamp}{speaker}{segment.text}")
    return "\n\n".join(blocks)


def format_transcript_csv(segments: Sequence[Segment], *, tz: Optional[tzinfo] = None) -> str:
    if tz is None:
        tz = resolve_timezone()
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    buffer.write("Timestamp,Speaker,Text\n")
    for segment in segments:
        writer.writerow([_clock_time(segment, tz), segment.speaker or UNKNOWN_SPEAKER, segment.text])
    return buffer.getvalue().rstrip("\n")


def transcript_filename(meeting_id: str, export_format: ExportFormat, today: Optional[date] = None) -> str:
    # Composite meeting ids contain slashes, which are not valid in file names.
    safe_id = meeting_id.replace("/", "_")
    return f"transcript-{safe_id}-{(today or date.today()).isoformat()}.{export_format.value}"


def render_transcript(
    segments: Sequence[Segment],
    export_format: ExportFormat,
    *,
    tz: Optional[tzinfo] = None,
    **options: bool,
) -> str:
    if export_format is ExportFormat.CSV:
        return format_transcript_csv(segments, tz=tz)
    return format_transcript_text(segments, tz=tz, **options)

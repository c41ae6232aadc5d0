from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, field_validator

UNKNOWN_SPEAKER = "Unknown"

# Number of leading text characters folded into a segment id.
SEGMENT_ID_TEXT_PREFIX = 20

_WHITESPACE_RUN = re.compile(r"\s+")


def derive_segment_id(timestamp: str, text: str) -> str:
    """Return the content-derived identifier of a segment.

    The transcription service re-emits the same utterance with a different
    server-side id from one poll to the next, so identity is rebuilt from the
    segment's origin time plus the start of its text. This is a composite key,
    not a hash: two segments starting at the same instant with the same first
    20 characters are the same segment.
    """

    prefix = _WHITESPACE_RUN.sub("-", text[:SEGMENT_ID_TEXT_PREFIX])
    return f"{timestamp}-{prefix}"


class Segment(BaseModel):
    """One transcribed utterance unit."""

    id: str
    text: str
    timestamp: datetime
    speaker: str = UNKNOWN_SPEAKER
    language: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Mixed naive/aware datetimes cannot be ordered.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

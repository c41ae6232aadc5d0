from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.meeting_client.domain.errors import InvalidMeetingIdError
from src.meeting_client.domain.models.segment import Segment

# Language values meaning "let the server decide"; never promoted to the
# displayed language.
AUTO_LANGUAGE = "auto"
AUTO_DETECTED_LANGUAGE = "auto-detected"
AUTO_LANGUAGE_SENTINELS = frozenset({AUTO_LANGUAGE, AUTO_DETECTED_LANGUAGE})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.ACTIVE


@dataclass(frozen=True)
class MeetingRef:
    """Parsed form of the composite ``platform/native_meeting_id[/record_id]`` key."""

    platform: str
    native_meeting_id: str
    record_id: Optional[str] = None

    @classmethod
    def parse(cls, meeting_id: str) -> "MeetingRef":
        parts = meeting_id.split("/")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise InvalidMeetingIdError(meeting_id)
        record_id = parts[2] if len(parts) > 2 and parts[2] else None
        return cls(platform=parts[0], native_meeting_id=parts[1], record_id=record_id)

    @property
    def path(self) -> str:
        return f"{self.platform}/{self.native_meeting_id}"

    def __str__(self) -> str:
        return self.path


class TranscriptionSession(BaseModel):
    """Full snapshot of what the service currently knows about one meeting."""

    meeting_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    language: str = AUTO_LANGUAGE
    segments: List[Segment] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)


class FullTranscript(BaseModel):
    text: str
    segments: List[Segment] = Field(default_factory=list)


class Meeting(BaseModel):
    """Historical meeting record as listed by ``GET /meetings``."""

    id: str
    platform: str
    native_meeting_id: str
    status: SessionStatus = SessionStatus.STOPPED
    start_time: datetime = Field(default_factory=_utcnow)
    end_time: Optional[datetime] = None
    title: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # The history API sends naive ISO strings; the fallback start time is aware.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

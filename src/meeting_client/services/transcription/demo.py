from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from src.meeting_client.domain.models.segment import Segment, derive_segment_id
from src.meeting_client.domain.models.transcription import (
    AUTO_DETECTED_LANGUAGE,
    AUTO_LANGUAGE,
    FullTranscript,
    Meeting,
    SessionStatus,
    TranscriptionSession,
)
from src.meeting_client.services.transcription.meeting_urls import parse_meeting_url

_SEED_LINES = [
    ("John", "Hello everyone, thanks for joining today's meeting."),
    ("John", "I wanted to discuss our progress on the new feature."),
    ("Sarah", "The development team has completed the backend work."),
    ("Sarah", "We're still working on the frontend components."),
    ("Michael", "When do you think we'll be ready for testing?"),
]
_SPEAKERS = ["John", "Sarah", "Michael"]


def _segment(speaker: str, text: str, at: datetime) -> Segment:
    timestamp = at.isoformat()
    return Segment(id=derive_segment_id(timestamp, text), text=text, timestamp=timestamp, speaker=speaker)


class DemoTranscriptionClient:
    """Offline stand-in for the transcription service.

    Sessions start with five canned lines and, while active, grow by one
    generated line on roughly half of the live fetches so the UI has something
    to reconcile. Nothing leaves the process.
    """

    def __init__(self, *, latency: float = 0.0, rng: Optional[random.Random] = None) -> None:
        self._latency = latency
        self._rng = rng or random.Random()
        self._sessions: Dict[str, TranscriptionSession] = {}
        now = datetime.now(timezone.utc)
        self._meetings: List[Meeting] = [
            Meeting(
                id="google_meet/abc-defg-hij/1",
                platform="google_meet",
                native_meeting_id="abc-defg-hij",
                status=SessionStatus.STOPPED,
                start_time=now - timedelta(days=1),
                end_time=now - timedelta(seconds=83000),
                title="Product Team Standup",
            ),
            Meeting(
                id="google_meet/xyz-uvwt-rst/2",
                platform="google_meet",
                native_meeting_id="xyz-uvwt-rst",
                status=SessionStatus.STOPPED,
                start_time=now - timedelta(days=2),
                end_time=now - timedelta(seconds=169200),
                title="Design Review",
            ),
            Meeting(
                id="google_meet/123-456-789/3",
                platform="google_meet",
                native_meeting_id="123-456-789",
                status=SessionStatus.ACTIVE,
                start_time=now,
                title="Client Presentation",
            ),
        ]

    async def _pause(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)

    def _seed(self, meeting_id: str, *, language: str, status: SessionStatus) -> TranscriptionSession:
        now = datetime.now(timezone.utc)
        segments = [
            _segment(speaker, text, now - timedelta(seconds=60 - 10 * index))
            for index, (speaker, text) in enumerate(_SEED_LINES)
        ]
        session = TranscriptionSession(meeting_id=meeting_id, status=status, language=language, segments=segments)
        self._sessions[meeting_id] = session
        return session

    async def start_bot(self, meeting_url: str, language: str = AUTO_LANGUAGE, bot_name: Optional[str] = None) -> str:
        await self._pause()
        platform, native_meeting_id = parse_meeting_url(meeting_url)
        meeting_id = f"{platform}/{native_meeting_id}"
        self._seed(
            meeting_id,
            language=AUTO_DETECTED_LANGUAGE if language == AUTO_LANGUAGE else language,
            status=SessionStatus.ACTIVE,
        )
        return meeting_id

    async def stop_bot(self, meeting_id: str) -> None:
        await self._pause()
        session = self._sessions.get(meeting_id)
        if session is not None:
            session.status = SessionStatus.STOPPED

    async def update_language(self, meeting_id: str, language: str) -> None:
        await self._pause()
        session = self._sessions.get(meeting_id)
        if session is not None:
            session.language = language

    async def get_transcript(self, meeting_id: str, language: Optional[str] = None) -> TranscriptionSession:
        await self._pause()
        session = self._sessions.get(meeting_id)
        if session is None:
            session = self._seed(meeting_id, language=language or "en", status=SessionStatus.ACTIVE)

        if session.status is SessionStatus.ACTIVE and self._rng.random() > 0.5:
            now = datetime.now(timezone.utc)
            text = f"This is a new transcription segment generated at {now.strftime('%H:%M:%S')}."
            session.segments.append(_segment(self._rng.choice(_SPEAKERS), text, now))
            session.last_updated = now

        return session.model_copy(deep=True)

    async def get_meeting_transcript(self, meeting_id: str) -> TranscriptionSession:
        await self._pause()
        session = self._sessions.get(meeting_id)
        if session is None:
            meeting = next((m for m in self._meetings if m.id == meeting_id), None)
            status = meeting.status if meeting is not None else SessionStatus.STOPPED
            session = self._seed(meeting_id, language="en", status=status)
        return session.model_copy(deep=True)

    async def get_full_transcript(self, meeting_id: str) -> FullTranscript:
        await self._pause()
        session = self._sessions.get(meeting_id)
        if session is None:
            return FullTranscript(text="", segments=[])
        return FullTranscript(
            text=" ".join(segment.text for segment in session.segments),
            segments=list(session.segments),
        )

    async def list_meetings(self) -> List[Meeting]:
        await self._pause()
        return [meeting.model_copy() for meeting in self._meetings]

    async def check_connection(self) -> None:
        return None

    async def aclose(self) -> None:
        return None


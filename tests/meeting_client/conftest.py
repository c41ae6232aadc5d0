from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from src.meeting_client.domain.models.transcription import FullTranscript, Meeting, TranscriptionSession
from src.meeting_client.services.credentials.store import InMemoryCredentialProvider
from src.meeting_client.services.sync.scheduler import PollingScheduler
from src.meeting_client.services.transcription.meeting_urls import parse_meeting_url
from src.meeting_client.services.transcription.normalize import build_session

MEETING_ID = "google_meet/abc-defg-hij"


def make_session(
    meeting_id: str = MEETING_ID,
    segments: Sequence[Tuple[str, str, Optional[str]]] = (),
    *,
    status: str = "active",
    language: Optional[str] = None,
) -> TranscriptionSession:
    """Build a snapshot from ``(timestamp, text, speaker)`` triples the way the client would."""

    payload: Dict[str, Any] = {
        "status": status,
        "segments": [
            {"absolute_start_time": timestamp, "text": text, "speaker": speaker}
            for timestamp, text, speaker in segments
        ],
    }
    if language:
        payload["language"] = language
    return build_session(meeting_id, payload)


class ManualTimer:
    """Stand-in for ``asyncio.sleep`` that only wakes up when told to."""

    def __init__(self) -> None:
        self._waiters: List[asyncio.Future] = []
        self.delays: List[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        await future

    @property
    def pending(self) -> int:
        return sum(1 for future in self._waiters if not future.done())

    async def settle(self) -> None:
        """Let every runnable task reach its next await."""
        for _ in range(10):
            await asyncio.sleep(0)

    async def fire(self) -> bool:
        """Wake the oldest pending sleeper. Returns False when nobody is sleeping."""
        await self.settle()
        for future in self._waiters:
            if not future.done():
                future.set_result(None)
                await self.settle()
                return True
        return False


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTranscriptionClient:
    """Scriptable client: each live fetch pops the next queued snapshot or error."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []
        self._queue: List[Union[TranscriptionSession, Exception]] = []
        self.history: Dict[str, TranscriptionSession] = {}
        self.meetings: List[Meeting] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.start_errors: List[Exception] = []
        self.closed = False

    def queue(self, *items: Union[TranscriptionSession, Exception]) -> None:
        self._queue.extend(items)

    @property
    def fetch_count(self) -> int:
        return sum(1 for call in self.calls if call[0] == "get_transcript")

    def calls_to(self, name: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    async def start_bot(self, meeting_url: str, language: str = "auto", bot_name: Optional[str] = None) -> str:
        self.calls.append(("start_bot", meeting_url, language, bot_name))
        if self.start_errors:
            raise self.start_errors.pop(0)
        platform, native_meeting_id = parse_meeting_url(meeting_url)
        return f"{platform}/{native_meeting_id}"

    async def stop_bot(self, meeting_id: str) -> None:
        self.calls.append(("stop_bot", meeting_id))

    async def update_language(self, meeting_id: str, language: str) -> None:
        self.calls.append(("update_language", meeting_id, language))

    async def get_transcript(self, meeting_id: str, language: Optional[str] = None) -> TranscriptionSession:
        self.calls.append(("get_transcript", meeting_id, language))
        gate = self.gates.get(meeting_id)
        if gate is not None:
            await gate.wait()
        item = self._queue.pop(0) if self._queue else make_session(meeting_id)
        if isinstance(item, Exception):
            raise item
        return item

    async def get_meeting_transcript(self, meeting_id: str) -> TranscriptionSession:
        self.calls.append(("get_meeting_transcript", meeting_id))
        item = self.history.get(meeting_id)
        if isinstance(item, Exception):
            raise item
        return item or make_session(meeting_id, status="stopped")

    async def get_full_transcript(self, meeting_id: str) -> FullTranscript:
        session = await self.get_transcript(meeting_id)
        return FullTranscript(text=" ".join(s.text for s in session.segments), segments=session.segments)

    async def list_meetings(self) -> List[Meeting]:
        self.calls.append(("list_meetings",))
        return list(self.meetings)

    async def check_connection(self) -> None:
        self.calls.append(("check_connection",))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeTranscriptionClient:
    return FakeTranscriptionClient()


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def credentials() -> InMemoryCredentialProvider:
    return InMemoryCredentialProvider("test-api-key")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def scheduler(fake_client: FakeTranscriptionClient, timer: ManualTimer, clock: FakeClock):
    scheduler = PollingScheduler(
        fake_client,
        interval=0.8,
        max_retries=3,
        highlight_seconds=3.0,
        sleep=timer.sleep,
        clock=clock,
    )
    yield scheduler
    await scheduler.close()


@pytest.fixture
def snapshot():
    return make_session

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import List, Optional

from src.meeting_client.config import settings
from src.meeting_client.domain.errors import ExistingBotError, NoActiveMeetingError
from src.meeting_client.domain.models.transcript_view import SearchState, TranscriptView
from src.meeting_client.domain.models.transcription import Meeting, SessionStatus
from src.meeting_client.services.credentials.store import credential_provider
from src.meeting_client.services.sync.scheduler import PollingScheduler
from src.meeting_client.services.transcription.client import TranscriptionClient, get_transcription_client_from_env
from src.meeting_client.services.transcription.meeting_urls import parse_meeting_url
from src.meeting_client.services.transcripts.export import ExportFormat, render_transcript, transcript_filename
from src.meeting_client.services.transcripts.search import TranscriptSearch

logger = logging.getLogger("sync")


class TranscriptViewService:
    """Holds the single transcript view the user is looking at.

    Opening another meeting replaces the current one; there is never more
    than one scheduler polling at a time.
    """

    def __init__(self, client: TranscriptionClient, *, scheduler: Optional[PollingScheduler] = None) -> None:
        self.client = client
        self._search = TranscriptSearch()
        self._scheduler = scheduler or PollingScheduler(client)
        self._scheduler.on_update = self._on_reconciled

    @property
    def scheduler(self) -> PollingScheduler:
        return self._scheduler

    def _on_reconciled(self, scheduler: PollingScheduler) -> None:
        self._search.refresh(scheduler.engine.segments)

    def current_view(self) -> TranscriptView:
        view = self._scheduler.view()
        view.search = self._search.state
        return view

    async def start_meeting(
        self,
        meeting_url: str,
        *,
        language: Optional[str] = None,
        bot_name: Optional[str] = None,
        replace_existing: bool = False,
    ) -> TranscriptView:
        """Send a bot into a meeting and start watching its live transcript.

        With ``replace_existing`` a bot already attached to the meeting is
        stopped first and a fresh one requested; otherwise the
        :class:`ExistingBotError` is passed on so the caller can offer that.
        """

        language = language or settings.default_language
        try:
            meeting_id = await self.client.start_bot(meeting_url, language=language, bot_name=bot_name)
        except ExistingBotError:
            if not replace_existing:
                raise
            platform, native_meeting_id = parse_meeting_url(meeting_url)
            logger.info("Replacing existing bot in %s/%s", platform, native_meeting_id)
            await self.client.stop_bot(f"{platform}/{native_meeting_id}")
            meeting_id = await self.client.start_bot(meeting_url, language=language, bot_name=bot_name)

        return await self.open_meeting(meeting_id, status=SessionStatus.ACTIVE, language=language)

    async def open_meeting(
        self,
        meeting_id: str,
        *,
        status: SessionStatus = SessionStatus.STOPPED,
        language: Optional[str] = None,
    ) -> TranscriptView:
        """Show a meeting: live polling while it is active, one fetch otherwise."""

        self._search.clear()
        await self._scheduler.start(meeting_id, live=status is SessionStatus.ACTIVE, language=language)
        return self.current_view()

    async def stop(self) -> TranscriptView:
        self._require_meeting()
        await self._scheduler.stop()
        if self._scheduler.meeting_id is None:
            self._search.clear()
        return self.current_view()

    async def change_language(self, language: str) -> TranscriptView:
        self._require_meeting()
        await self._scheduler.change_language(language)
        self._search.refresh(self._scheduler.engine.segments)
        return self.current_view()

    def search(self, term: str) -> SearchState:
        return self._search.search(term, self._scheduler.engine.segments)

    def navigate_search(self, direction: str) -> SearchState:
        if direction == "next":
            return self._search.next()
        if direction == "prev":
            return self._search.previous()
        raise ValueError(f"Unknown search direction: {direction!r}")

    def clear_search(self) -> SearchState:
        return self._search.clear()

    def export(
        self, export_format: ExportFormat, *, tz: Optional[tzinfo] = None, **options: bool
    ) -> tuple[str, str]:
        """Return ``(filename, content)`` for the segments currently shown."""

        meeting_id = self._require_meeting()
        content = render_transcript(self._scheduler.engine.segments, export_format, tz=tz, **options)
        return transcript_filename(meeting_id, export_format), content

    async def list_meetings(self) -> List[Meeting]:
        meetings = await self.client.list_meetings()
        return sorted(meetings, key=lambda m: m.start_time, reverse=True)

    async def shutdown(self) -> None:
        await self._scheduler.close()
        await self.client.aclose()

    def _require_meeting(self) -> str:
        meeting_id = self._scheduler.meeting_id
        if meeting_id is None:
            raise NoActiveMeetingError("No meeting is currently open")
        return meeting_id


# Default singleton wired from the environment, used by the API routers.
transcript_view_service = TranscriptViewService(get_transcription_client_from_env(credential_provider))

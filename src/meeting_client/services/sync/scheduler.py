from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from src.meeting_client.config import settings
from src.meeting_client.domain.errors import ConfigurationError, TranscriptionError
from src.meeting_client.domain.models.transcript_view import (
    SchedulerState,
    TranscriptView,
    ViewError,
    ViewErrorStatus,
    ViewMode,
)
from src.meeting_client.domain.models.transcription import SessionStatus, TranscriptionSession
from src.meeting_client.services.sync.reconciler import ReconciliationEngine
from src.meeting_client.services.transcription.client import TranscriptionClient

logger = logging.getLogger("sync")

REMOTE_ERROR_MESSAGE = "Transcription service reported an error. Please try again."
RETRIES_EXHAUSTED_MESSAGE = "Failed to update transcription after multiple attempts"
POLLING_STOPPED_MESSAGE = "Transcription updates stopped unexpectedly"


class PollingScheduler:
    """Drive the fetch/reconcile cycle for the one transcript view on screen.

    Live sessions get an immediate fetch followed by a single background task
    that sleeps ``interval`` seconds between ticks; history views get one fetch
    and no task. Every transition that changes what is being watched (start,
    stop, language change, close) disarms the task and bumps a generation
    counter first. A fetch that completes under an older generation is dropped,
    so a slow response can neither write into the new session nor re-arm a
    timer that was torn down.
    """

    def __init__(
        self,
        client: TranscriptionClient,
        *,
        interval: float | None = None,
        max_retries: int | None = None,
        backoff_factor: float | None = None,
        highlight_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_update: Optional[Callable[["PollingScheduler"], None]] = None,
    ) -> None:
        self._client = client
        self.interval = interval if interval is not None else settings.poll_interval_seconds
        self.max_retries = max_retries if max_retries is not None else settings.max_poll_retries
        self._backoff_factor = backoff_factor if backoff_factor is not None else settings.poll_backoff_factor
        self._sleep = sleep
        self.on_update = on_update
        self.engine = ReconciliationEngine(
            highlight_seconds=highlight_seconds if highlight_seconds is not None else settings.highlight_seconds,
            clock=clock,
        )

        self._task: Optional[asyncio.Task] = None
        self._generation = 0

        self.meeting_id: Optional[str] = None
        self.mode = ViewMode.LIVE
        self.state = SchedulerState.IDLE
        self.session_status: Optional[SessionStatus] = None
        self.retry_count = 0
        self.error: Optional[ViewError] = None
        self.is_polling = False
        self.loaded = False
        self.last_updated: Optional[datetime] = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, meeting_id: str, *, live: bool = True, language: Optional[str] = None) -> None:
        """Begin watching ``meeting_id``, discarding whatever was shown before."""

        self._disarm()
        self._generation += 1
        generation = self._generation
        self._clear(language)
        self.meeting_id = meeting_id
        self.mode = ViewMode.LIVE if live else ViewMode.HISTORY
        logger.info("Watching %s (%s)", meeting_id, self.mode.value)

        if not live:
            await self._fetch_once(generation)
            return

        self.state = SchedulerState.POLLING
        await self.tick()
        if self._is_current(generation) and self.state is SchedulerState.POLLING:
            self._arm()

    async def tick(self) -> None:
        """Run one fetch/reconcile cycle. Does nothing unless live polling is on."""

        if self.state is not SchedulerState.POLLING or self.meeting_id is None:
            return

        generation = self._generation
        meeting_id = self.meeting_id
        self.is_polling = True
        try:
            snapshot = await self._client.get_transcript(meeting_id, self.engine.language)
        except ConfigurationError as exc:
            if self._is_current(generation):
                self._fail(ViewErrorStatus.CONFIG_MISSING, str(exc))
            return
        except TranscriptionError as exc:
            if self._is_current(generation):
                self._record_failure(exc)
            return
        finally:
            if self._is_current(generation):
                self.is_polling = False

        if not self._is_current(generation):
            logger.debug("Dropping stale snapshot for %s", meeting_id)
            return

        self._apply(snapshot)
        if snapshot.status.is_terminal:
            self._disarm()
            self.state = SchedulerState.TERMINATED
            if snapshot.status is SessionStatus.ERROR:
                self.error = ViewError(status=ViewErrorStatus.ERROR, message=REMOTE_ERROR_MESSAGE)
            logger.info("Polling for %s ended: session %s", meeting_id, snapshot.status.value)
        self._notify()

    async def stop(self) -> None:
        """Stop the bot (live sessions only) and return to idle."""

        meeting_id, mode = self.meeting_id, self.mode
        self._disarm()
        self._generation += 1

        if meeting_id is not None and mode is ViewMode.LIVE:
            try:
                await self._client.stop_bot(meeting_id)
            except TranscriptionError as exc:
                logger.error("Failed to stop transcription for %s: %s", meeting_id, exc)
                self.state = SchedulerState.FAILED
                self.is_polling = False
                self.error = ViewError(
                    status=self._error_status_for(exc),
                    message="Failed to stop transcription",
                )
                return

        self._clear()
        self.meeting_id = None
        self.state = SchedulerState.IDLE

    async def change_language(self, language: str) -> None:
        """Reconfigure the bot's language and start a fresh transcript.

        Segments from before the switch are thrown away rather than mixed with
        the ones transcribed in the new language.
        """

        meeting_id = self.meeting_id
        if meeting_id is None or self.mode is not ViewMode.LIVE:
            return

        try:
            await self._client.update_language(meeting_id, language)
        except TranscriptionError as exc:
            logger.error("Failed to update language for %s: %s", meeting_id, exc)
            self.error = ViewError(
                status=self._error_status_for(exc),
                message="Failed to update transcription language",
            )
            return

        if meeting_id != self.meeting_id:
            return
        await self.start(meeting_id, live=True, language=language)

    async def close(self) -> None:
        """Tear down unconditionally, e.g. when the hosting view goes away."""

        task = self._task
        self._disarm()
        self._generation += 1
        self._clear()
        self.meeting_id = None
        self.state = SchedulerState.IDLE
        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def view(self) -> TranscriptView:
        return TranscriptView(
            meeting_id=self.meeting_id,
            mode=self.mode,
            state=self.state,
            display_state=self.engine.display_state(
                self.session_status, self.loaded, failed=self.state is SchedulerState.FAILED
            ),
            session_status=self.session_status,
            language=self.engine.language,
            segments=list(self.engine.segments),
            highlighted_segment_ids=sorted(self.engine.highlights.active),
            speaker_colors=self.engine.palette.as_dict(),
            retry_count=self.retry_count,
            max_retries=self.max_retries,
            is_polling=self.is_polling,
            error=self.error,
            last_updated=self.last_updated,
        )

    async def _fetch_once(self, generation: int) -> None:
        meeting_id = self.meeting_id
        self.is_polling = True
        try:
            snapshot = await self._client.get_meeting_transcript(meeting_id)
        except TranscriptionError as exc:
            if self._is_current(generation):
                logger.error("Failed to load transcript for %s: %s", meeting_id, exc)
                self._fail(self._error_status_for(exc), f"Failed to load transcript: {exc}")
            return
        finally:
            if self._is_current(generation):
                self.is_polling = False

        if not self._is_current(generation):
            return

        self._apply(snapshot)
        # Nothing is "arriving" in a recorded meeting.
        self.engine.highlights.clear()
        self.state = SchedulerState.FETCHED_ONCE
        self._notify()

    def _apply(self, snapshot: TranscriptionSession) -> None:
        self.retry_count = 0
        self.error = None
        self.loaded = True
        self.engine.reconcile(snapshot)
        self.session_status = snapshot.status
        self.last_updated = snapshot.last_updated

    def _record_failure(self, exc: TranscriptionError) -> None:
        self.retry_count += 1
        logger.warning(
            "Polling %s failed (%d/%d): %s", self.meeting_id, self.retry_count, self.max_retries, exc
        )
        if self.retry_count >= self.max_retries:
            self._fail(ViewErrorStatus.FAILED, RETRIES_EXHAUSTED_MESSAGE)
            return
        self.error = ViewError(
            status=ViewErrorStatus.RETRYING,
            message=f"Failed to update transcription. Retrying... ({self.retry_count}/{self.max_retries})",
        )

    def _fail(self, status: ViewErrorStatus, message: str) -> None:
        self._disarm()
        self.state = SchedulerState.FAILED
        self.error = ViewError(status=status, message=message)

    @staticmethod
    def _error_status_for(exc: TranscriptionError) -> ViewErrorStatus:
        if isinstance(exc, ConfigurationError):
            return ViewErrorStatus.CONFIG_MISSING
        return ViewErrorStatus.ERROR

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _next_delay(self) -> float:
        return self.interval * (self._backoff_factor ** self.retry_count)

    def _arm(self) -> None:
        self._disarm()
        self._task = asyncio.create_task(self._run(self._generation))

    def _disarm(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _run(self, generation: int) -> None:
        while self._is_current(generation) and self.state is SchedulerState.POLLING:
            await self._sleep(self._next_delay())
            if not self._is_current(generation):
                return
            try:
                await self.tick()
            except Exception:
                logger.exception("Polling task for %s crashed", self.meeting_id)
                if self._is_current(generation):
                    self.is_polling = False
                    self._fail(ViewErrorStatus.ERROR, POLLING_STOPPED_MESSAGE)
                    self._notify()
                return

    def _clear(self, language: Optional[str] = None) -> None:
        self.engine.reset()
        self.engine.language = language
        self.session_status = None
        self.retry_count = 0
        self.error = None
        self.is_polling = False
        self.loaded = False
        self.last_updated = None

import asyncio

import httpx

from src.meeting_client.domain.errors import CredentialMissingError, TranscriptionAPIError, TranscriptionRequestError
from src.meeting_client.domain.models.transcript_view import (
    DisplayState,
    SchedulerState,
    ViewErrorStatus,
    ViewMode,
)
from src.meeting_client.domain.models.transcription import SessionStatus
from src.meeting_client.services.credentials.store import InMemoryCredentialProvider
from src.meeting_client.services.sync.scheduler import (
    POLLING_STOPPED_MESSAGE,
    REMOTE_ERROR_MESSAGE,
    RETRIES_EXHAUSTED_MESSAGE,
    PollingScheduler,
)
from src.meeting_client.services.transcription.client import VexaTranscriptionClient

MEETING_ID = "google_meet/abc-defg-hij"
OTHER_MEETING_ID = "google_meet/xyz-uvwt-rst"
T0 = "2024-05-01T10:00:00Z"
T1 = "2024-05-01T10:00:05Z"
T2 = "2024-05-01T10:00:10Z"


def _texts(scheduler):
    return [s.text for s in scheduler.engine.segments]


async def test_live_start_fetches_immediately_and_arms(scheduler, fake_client, timer, snapshot):
    fake_client.queue(
        snapshot(segments=[(T0, "hello", "John")]),
        snapshot(segments=[(T0, "hello", "John"), (T1, "world", "Sarah")]),
    )

    await scheduler.start(MEETING_ID)

    assert fake_client.fetch_count == 1
    assert scheduler.state is SchedulerState.POLLING
    assert scheduler.armed
    assert _texts(scheduler) == ["hello"]

    assert await timer.fire()
    assert fake_client.fetch_count == 2
    assert _texts(scheduler) == ["hello", "world"]
    assert timer.delays[0] == 0.8

    view = scheduler.view()
    assert view.display_state is DisplayState.SHOWING
    assert view.highlighted_segment_ids == [scheduler.engine.segments[1].id]


async def test_retries_exhausted_stops_polling(scheduler, fake_client, timer):
    fake_client.queue(*(TranscriptionAPIError("boom") for _ in range(4)))

    await scheduler.start(MEETING_ID)
    assert scheduler.error.status is ViewErrorStatus.RETRYING
    assert scheduler.error.message == "Failed to update transcription. Retrying... (1/3)"
    assert scheduler.armed

    await timer.fire()
    assert scheduler.retry_count == 2

    await timer.fire()
    assert fake_client.fetch_count == 3
    assert scheduler.state is SchedulerState.FAILED
    assert scheduler.error.status is ViewErrorStatus.FAILED
    assert scheduler.error.message == RETRIES_EXHAUSTED_MESSAGE
    assert not scheduler.armed
    assert timer.pending == 0
    # Never loaded, but the pane must not keep spinning.
    assert scheduler.view().display_state is DisplayState.EMPTY

    # Nothing runs after giving up.
    await scheduler.tick()
    assert not await timer.fire()
    assert fake_client.fetch_count == 3


async def test_success_resets_retry_count(scheduler, fake_client, timer, snapshot):
    fake_client.queue(TranscriptionRequestError("timeout"), snapshot(segments=[(T0, "back", None)]))

    await scheduler.start(MEETING_ID)
    assert scheduler.retry_count == 1

    await timer.fire()
    assert scheduler.retry_count == 0
    assert scheduler.error is None
    assert _texts(scheduler) == ["back"]


async def test_terminal_status_halts_polling(scheduler, fake_client, timer, snapshot):
    fake_client.queue(
        snapshot(segments=[(T0, "bye", None)]),
        snapshot(segments=[(T0, "bye", None)], status="completed"),
    )

    await scheduler.start(MEETING_ID)
    await timer.fire()

    assert scheduler.state is SchedulerState.TERMINATED
    assert scheduler.session_status is SessionStatus.STOPPED
    assert scheduler.error is None
    assert not scheduler.armed
    assert not await timer.fire()
    assert fake_client.fetch_count == 2


async def test_remote_error_status_is_reported(scheduler, fake_client, snapshot):
    fake_client.queue(snapshot(status="failed"))

    await scheduler.start(MEETING_ID)

    assert scheduler.state is SchedulerState.TERMINATED
    assert scheduler.error.status is ViewErrorStatus.ERROR
    assert scheduler.error.message == REMOTE_ERROR_MESSAGE
    assert not scheduler.armed


async def test_missing_credential_is_not_retried(scheduler, fake_client, timer):
    fake_client.queue(CredentialMissingError())

    await scheduler.start(MEETING_ID)

    assert scheduler.state is SchedulerState.FAILED
    assert scheduler.error.status is ViewErrorStatus.CONFIG_MISSING
    assert scheduler.retry_count == 0
    assert not scheduler.armed
    assert fake_client.fetch_count == 1


async def test_language_switch_discards_previous_segments(scheduler, fake_client, snapshot):
    fake_client.queue(snapshot(segments=[(T0, "hello", "John"), (T1, "world", "Sarah")], language="en"))
    await scheduler.start(MEETING_ID, language="auto")
    assert scheduler.engine.language == "en"

    fake_client.queue(snapshot(segments=[(T2, "hola", None)]))
    await scheduler.change_language("es")

    assert fake_client.calls_to("update_language") == [("update_language", MEETING_ID, "es")]
    assert fake_client.calls_to("get_transcript")[-1] == ("get_transcript", MEETING_ID, "es")
    assert _texts(scheduler) == ["hola"]
    assert scheduler.engine.language == "es"
    assert scheduler.state is SchedulerState.POLLING
    assert scheduler.armed


async def test_language_switch_failure_keeps_session(scheduler, fake_client, snapshot):
    fake_client.queue(snapshot(segments=[(T0, "hello", None)]))
    await scheduler.start(MEETING_ID)

    async def failing_update(meeting_id, language):
        raise TranscriptionAPIError("nope")

    fake_client.update_language = failing_update
    await scheduler.change_language("de")

    assert scheduler.error.message == "Failed to update transcription language"
    assert _texts(scheduler) == ["hello"]
    assert scheduler.armed


async def test_stale_response_after_switching_meetings_is_dropped(scheduler, fake_client, timer, snapshot):
    gate = asyncio.Event()
    fake_client.gates[MEETING_ID] = gate
    first = asyncio.create_task(scheduler.start(MEETING_ID))
    await timer.settle()

    fake_client.queue(snapshot(OTHER_MEETING_ID, segments=[(T0, "from the new meeting", None)]))
    await scheduler.start(OTHER_MEETING_ID)

    fake_client.queue(snapshot(MEETING_ID, segments=[(T0, "late reply", None)]))
    gate.set()
    await first

    assert scheduler.meeting_id == OTHER_MEETING_ID
    assert _texts(scheduler) == ["from the new meeting"]
    assert scheduler.state is SchedulerState.POLLING
    assert scheduler.armed

    # Only the new meeting's timer exists.
    await timer.settle()
    assert timer.pending == 1


async def test_history_view_fetches_once(scheduler, fake_client, timer, snapshot):
    fake_client.history[MEETING_ID] = snapshot(segments=[(T0, "recorded", "John")], status="stopped")

    await scheduler.start(MEETING_ID, live=False)

    assert scheduler.mode is ViewMode.HISTORY
    assert scheduler.state is SchedulerState.FETCHED_ONCE
    assert _texts(scheduler) == ["recorded"]
    assert scheduler.view().highlighted_segment_ids == []
    assert fake_client.fetch_count == 0
    assert not scheduler.armed
    assert not await timer.fire()


async def test_history_load_failure(scheduler, fake_client):
    fake_client.history[MEETING_ID] = TranscriptionAPIError("API error: 404 Not Found - Unknown error")

    await scheduler.start(MEETING_ID, live=False)

    assert scheduler.state is SchedulerState.FAILED
    assert scheduler.error.status is ViewErrorStatus.ERROR
    assert scheduler.error.message.startswith("Failed to load transcript")


async def test_stop_live_session(scheduler, fake_client, timer, snapshot):
    fake_client.queue(snapshot(segments=[(T0, "hello", None)]))
    await scheduler.start(MEETING_ID)

    await scheduler.stop()

    assert fake_client.calls_to("stop_bot") == [("stop_bot", MEETING_ID)]
    assert scheduler.state is SchedulerState.IDLE
    assert scheduler.meeting_id is None
    assert scheduler.engine.segments == []
    assert not scheduler.armed
    assert not await timer.fire()


async def test_stop_history_view_does_not_touch_bot(scheduler, fake_client):
    await scheduler.start(MEETING_ID, live=False)
    await scheduler.stop()

    assert fake_client.calls_to("stop_bot") == []
    assert scheduler.state is SchedulerState.IDLE


async def test_stop_failure_is_reported(scheduler, fake_client, snapshot):
    fake_client.queue(snapshot(segments=[(T0, "hello", None)]))
    await scheduler.start(MEETING_ID)

    async def failing_stop(meeting_id):
        raise TranscriptionRequestError("connection refused")

    fake_client.stop_bot = failing_stop
    await scheduler.stop()

    assert scheduler.state is SchedulerState.FAILED
    assert scheduler.error.message == "Failed to stop transcription"
    assert not scheduler.armed


async def test_backoff_factor_stretches_delay_after_failures(fake_client, timer, clock):
    scheduler = PollingScheduler(
        fake_client,
        interval=1.0,
        max_retries=5,
        backoff_factor=2.0,
        sleep=timer.sleep,
        clock=clock,
    )
    fake_client.queue(TranscriptionRequestError("down"), TranscriptionRequestError("down"))
    try:
        await scheduler.start(MEETING_ID)
        await timer.fire()
        await timer.settle()
        assert timer.delays == [2.0, 4.0]
    finally:
        await scheduler.close()


async def test_tick_is_noop_when_idle(scheduler, fake_client):
    await scheduler.tick()
    assert fake_client.fetch_count == 0


async def test_unexpected_error_in_polling_task_fails_the_view(scheduler, fake_client, timer, snapshot):
    fake_client.queue(snapshot(segments=[(T0, "hello", None)]), RuntimeError("decoder blew up"))
    await scheduler.start(MEETING_ID)
    assert scheduler.armed

    assert await timer.fire()

    assert scheduler.state is SchedulerState.FAILED
    assert scheduler.error.status is ViewErrorStatus.ERROR
    assert scheduler.error.message == POLLING_STOPPED_MESSAGE
    assert not scheduler.is_polling
    assert not scheduler.armed
    assert _texts(scheduler) == ["hello"]
    assert not await timer.fire()


async def test_non_ascii_api_key_fails_as_config_missing(timer, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = VexaTranscriptionClient(
        InMemoryCredentialProvider("kéy"),
        base_url="https://vexa.test",
        transport=httpx.MockTransport(handler),
    )
    scheduler = PollingScheduler(client, sleep=timer.sleep, clock=clock)
    try:
        await scheduler.start(MEETING_ID)

        assert scheduler.state is SchedulerState.FAILED
        assert scheduler.error.status is ViewErrorStatus.CONFIG_MISSING
        assert not scheduler.armed
    finally:
        await scheduler.close()
        await client.aclose()

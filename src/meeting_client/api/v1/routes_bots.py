from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from src.meeting_client.deps import get_view_service
from src.meeting_client.domain.errors import NoActiveMeetingError, TranscriptionError
from src.meeting_client.domain.models.transcript_view import TranscriptView
from src.meeting_client.security import require_credential, to_http_exception
from src.meeting_client.services.audit.service import audit_service
from src.meeting_client.services.sync.views import TranscriptViewService

router = APIRouter(
    prefix="/bots",
    tags=["bots"],
    dependencies=[Depends(require_credential)],
)


class StartBotRequest(BaseModel):
    meeting_url: str
    language: Optional[str] = None  # "auto" or None lets the service detect it
    bot_name: Optional[str] = None
    # Stop a bot that is already in the meeting and send a fresh one.
    replace_existing: bool = False


class UpdateLanguageRequest(BaseModel):
    language: str


@router.post("/", response_model=TranscriptView, status_code=status.HTTP_201_CREATED)
async def start_bot(
    payload: StartBotRequest,
    views: TranscriptViewService = Depends(get_view_service),
) -> TranscriptView:
    """Send a transcription bot into a meeting and start the live view.

    A 409 response with status ``conflict`` means a bot is already running;
    retry with ``replace_existing`` to stop it first.
    """

    try:
        view = await views.start_meeting(
            payload.meeting_url,
            language=payload.language,
            bot_name=payload.bot_name,
            replace_existing=payload.replace_existing,
        )
    except TranscriptionError as exc:
        raise to_http_exception(exc) from exc

    audit_service.log_event(
        action="start_bot",
        resource_type="meeting",
        resource_id=view.meeting_id,
        extra={"language": payload.language, "replace_existing": payload.replace_existing},
    )

    return view


@router.delete("/current", response_model=TranscriptView)
async def stop_bot(views: TranscriptViewService = Depends(get_view_service)) -> TranscriptView:
    meeting_id = views.scheduler.meeting_id
    try:
        view = await views.stop()
    except NoActiveMeetingError as exc:
        raise to_http_exception(exc) from exc

    audit_service.log_event(
        action="stop_bot",
        resource_type="meeting",
        resource_id=meeting_id,
        extra={"stopped": view.meeting_id is None},
    )

    return view


@router.put("/current/language", response_model=TranscriptView)
async def update_language(
    payload: UpdateLanguageRequest,
    views: TranscriptViewService = Depends(get_view_service),
) -> TranscriptView:
    """Switch the bot's language. The transcript shown so far is discarded."""

    try:
        view = await views.change_language(payload.language)
    except NoActiveMeetingError as exc:
        raise to_http_exception(exc) from exc

    audit_service.log_event(
        action="update_language",
        resource_type="meeting",
        resource_id=view.meeting_id,
        extra={"language": payload.language},
    )

    return view

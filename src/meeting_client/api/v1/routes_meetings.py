from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.meeting_client.deps import get_view_service
from src.meeting_client.domain.errors import TranscriptionError
from src.meeting_client.domain.models.transcript_view import TranscriptView
from src.meeting_client.domain.models.transcription import Meeting, SessionStatus
from src.meeting_client.security import require_credential, to_http_exception
from src.meeting_client.services.audit.service import audit_service
from src.meeting_client.services.sync.views import TranscriptViewService

router = APIRouter(
    prefix="/meetings",
    tags=["meetings"],
    dependencies=[Depends(require_credential)],
)


class OpenMeetingRequest(BaseModel):
    meeting_id: str
    status: SessionStatus = SessionStatus.STOPPED


@router.get("/", response_model=List[Meeting])
async def list_meetings(views: TranscriptViewService = Depends(get_view_service)) -> List[Meeting]:
    """Meeting history, newest first."""

    try:
        return await views.list_meetings()
    except TranscriptionError as exc:
        raise to_http_exception(exc) from exc


@router.post("/open", response_model=TranscriptView)
async def open_meeting(
    payload: OpenMeetingRequest,
    views: TranscriptViewService = Depends(get_view_service),
) -> TranscriptView:
    """Show a meeting from the history list.

    Meetings that are still active open in live mode and keep polling; the
    rest are fetched once. Load failures are reported inside the view.
    """

    view = await views.open_meeting(payload.meeting_id, status=payload.status)

    audit_service.log_event(
        action="open_meeting",
        resource_type="meeting",
        resource_id=payload.meeting_id,
        extra={"mode": view.mode.value, "segment_count": len(view.segments)},
    )

    return view

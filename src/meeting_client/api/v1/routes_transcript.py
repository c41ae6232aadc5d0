from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from src.meeting_client.deps import get_view_service
from src.meeting_client.domain.errors import NoActiveMeetingError
from src.meeting_client.domain.models.transcript_view import SearchState, TranscriptView
from src.meeting_client.security import to_http_exception
from src.meeting_client.services.audit.service import audit_service
from src.meeting_client.services.sync.views import TranscriptViewService
from src.meeting_client.services.transcripts.export import MEDIA_TYPES, ExportFormat, resolve_timezone

router = APIRouter(prefix="/transcript", tags=["transcript"])


class SearchRequest(BaseModel):
    term: str


@router.get("/", response_model=TranscriptView)
async def get_current_transcript(views: TranscriptViewService = Depends(get_view_service)) -> TranscriptView:
    """Return the transcript view as of the latest reconciliation pass.

    The browser polls this; it never triggers a fetch of its own.
    """

    return views.current_view()


@router.post("/search", response_model=SearchState)
async def search_transcript(
    payload: SearchRequest,
    views: TranscriptViewService = Depends(get_view_service),
) -> SearchState:
    return views.search(payload.term)


@router.post("/search/{direction}", response_model=SearchState)
async def navigate_search(
    direction: Literal["next", "prev"],
    views: TranscriptViewService = Depends(get_view_service),
) -> SearchState:
    return views.navigate_search(direction)


@router.delete("/search", response_model=SearchState)
async def clear_search(views: TranscriptViewService = Depends(get_view_service)) -> SearchState:
    return views.clear_search()


@router.get("/export", response_class=PlainTextResponse)
async def export_transcript(
    format: ExportFormat = ExportFormat.TEXT,
    include_timestamps: bool = True,
    include_speakers: bool = True,
    tz: Optional[str] = None,
    views: TranscriptViewService = Depends(get_view_service),
) -> PlainTextResponse:
    try:
        zone = resolve_timezone(tz)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "message": str(exc)},
        ) from exc

    try:
        if format is ExportFormat.TEXT:
            filename, content = views.export(
                format,
                tz=zone,
                include_timestamps=include_timestamps,
                include_speakers=include_speakers,
            )
        else:
            filename, content = views.export(format, tz=zone)
    except NoActiveMeetingError as exc:
        raise to_http_exception(exc) from exc

    audit_service.log_event(
        action="export_transcript",
        resource_type="meeting",
        resource_id=views.scheduler.meeting_id,
        extra={"format": format.value, "segment_count": len(views.scheduler.engine.segments)},
    )

    return PlainTextResponse(
        content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

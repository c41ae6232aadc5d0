from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status

from src.meeting_client.deps import get_credentials
from src.meeting_client.domain.errors import (
    ConfigurationError,
    ExistingBotError,
    InvalidMeetingIdError,
    InvalidMeetingUrlError,
    MeetingNotFoundError,
    NoActiveMeetingError,
)
from src.meeting_client.domain.models.transcript_view import ViewErrorStatus
from src.meeting_client.services.credentials.store import CredentialProvider


def _detail(error_status: str, message: str) -> dict:
    return {"status": error_status, "message": message}


async def require_credential(credentials: CredentialProvider = Depends(get_credentials)) -> str:
    """FastAPI dependency for endpoints that call the transcription service.

    A missing API key is a configuration state for the UI to show (a banner
    asking for the key), not a server failure, so it is reported as 401 with
    a ``config_missing`` status.
    """

    api_key: Optional[str] = credentials.get()
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_detail(ViewErrorStatus.CONFIG_MISSING.value, "No API key configured"),
        )
    return api_key


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate a client-side error into the ``{status, message}`` shape.

    Raw exception objects never reach the UI; routes call this in their
    ``except`` clauses.
    """

    if isinstance(exc, ConfigurationError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_detail(ViewErrorStatus.CONFIG_MISSING.value, str(exc)),
        )
    if isinstance(exc, ExistingBotError):
        # The UI offers "stop existing bot" on this status.
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_detail(ViewErrorStatus.CONFLICT.value, exc.detail or str(exc)),
        )
    if isinstance(exc, (InvalidMeetingUrlError, InvalidMeetingIdError)):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_detail(ViewErrorStatus.ERROR.value, str(exc)),
        )
    if isinstance(exc, MeetingNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_detail(ViewErrorStatus.ERROR.value, str(exc)),
        )
    if isinstance(exc, NoActiveMeetingError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_detail(ViewErrorStatus.ERROR.value, str(exc)),
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=_detail(ViewErrorStatus.ERROR.value, str(exc)),
    )

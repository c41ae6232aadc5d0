from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.meeting_client.deps import get_credentials, get_view_service
from src.meeting_client.domain.errors import ConfigurationError, TranscriptionError
from src.meeting_client.services.audit.service import audit_service, credential_subject
from src.meeting_client.services.credentials.store import CredentialProvider
from src.meeting_client.services.sync.views import TranscriptViewService

router = APIRouter(prefix="/settings/api-key", tags=["settings"])


class ApiKeyStatus(BaseModel):
    configured: bool


class SetApiKeyRequest(BaseModel):
    api_key: str


class ApiKeyTestResult(BaseModel):
    status: str  # "ok" | "error" | "config_missing"
    message: Optional[str] = None


@router.get("/", response_model=ApiKeyStatus)
async def get_api_key_status(credentials: CredentialProvider = Depends(get_credentials)) -> ApiKeyStatus:
    """Whether a key is available. The key itself is never returned."""

    return ApiKeyStatus(configured=bool(credentials.get()))


@router.put("/", response_model=ApiKeyStatus)
async def set_api_key(
    payload: SetApiKeyRequest,
    credentials: CredentialProvider = Depends(get_credentials),
) -> ApiKeyStatus:
    if not payload.api_key.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "message": "API key must not be empty"},
        )

    credentials.set(payload.api_key)

    audit_service.log_event(
        action="set_api_key",
        resource_type="credential",
        subject=credential_subject(payload.api_key),
    )

    return ApiKeyStatus(configured=bool(credentials.get()))


@router.delete("/", response_model=ApiKeyStatus)
async def clear_api_key(credentials: CredentialProvider = Depends(get_credentials)) -> ApiKeyStatus:
    audit_service.log_event(action="clear_api_key", resource_type="credential")
    credentials.clear()
    return ApiKeyStatus(configured=bool(credentials.get()))


@router.post("/test", response_model=ApiKeyTestResult)
async def test_api_key(views: TranscriptViewService = Depends(get_view_service)) -> ApiKeyTestResult:
    """Check the stored key against the transcription service."""

    try:
        await views.client.check_connection()
    except ConfigurationError as exc:
        return ApiKeyTestResult(status="config_missing", message=str(exc))
    except TranscriptionError as exc:
        return ApiKeyTestResult(status="error", message=str(exc))
    return ApiKeyTestResult(status="ok", message="Successfully connected to the transcription API")

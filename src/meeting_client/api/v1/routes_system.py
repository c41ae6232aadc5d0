from fastapi import APIRouter, Depends

from src.meeting_client.config import settings
from src.meeting_client.deps import get_credentials
from src.meeting_client.services.credentials.store import CredentialProvider

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/config")
async def client_config_v1(credentials: CredentialProvider = Depends(get_credentials)) -> dict:
    """Configuration the UI needs before showing anything else.

    ``credential_configured`` false means the UI should show the API key
    prompt instead of the start form.
    """

    return {
        "mock_mode": settings.mock_mode,
        "api_url": settings.vexa_api_url,
        "credential_configured": bool(credentials.get()),
        "poll_interval_seconds": settings.poll_interval_seconds,
        "max_poll_retries": settings.max_poll_retries,
        "default_language": settings.default_language,
        "default_bot_name": settings.default_bot_name,
    }

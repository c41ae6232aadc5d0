from __future__ import annotations

from src.meeting_client.services.credentials.store import CredentialProvider, credential_provider
from src.meeting_client.services.sync.views import TranscriptViewService, transcript_view_service


def get_credentials() -> CredentialProvider:
    return credential_provider


def get_view_service() -> TranscriptViewService:
    return transcript_view_service

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from src.meeting_client.config import settings
from src.meeting_client.domain.errors import (
    CredentialInvalidError,
    CredentialMissingError,
    ExistingBotError,
    MeetingNotFoundError,
    TranscriptionAPIError,
    TranscriptionError,
    TranscriptionRequestError,
)
from src.meeting_client.domain.models.transcription import (
    AUTO_LANGUAGE,
    FullTranscript,
    Meeting,
    MeetingRef,
    SessionStatus,
    TranscriptionSession,
)
from src.meeting_client.services.credentials.store import CredentialProvider
from src.meeting_client.services.transcription.meeting_urls import parse_meeting_url
from src.meeting_client.services.transcription.normalize import build_session, parse_meeting

logger = logging.getLogger("transcription_client")

# Historical transcripts predate per-segment detection; English is the
# service's own default.
HISTORY_LANGUAGE_FALLBACK = "en"


class TranscriptionClient(Protocol):
    """Operations the sync engine and the HTTP layer need from the service."""

    async def start_bot(self, meeting_url: str, language: str = AUTO_LANGUAGE, bot_name: Optional[str] = None) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    async def stop_bot(self, meeting_id: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def update_language(self, meeting_id: str, language: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def get_transcript(self, meeting_id: str, language: Optional[str] = None) -> TranscriptionSession:  # pragma: no cover - interface
        raise NotImplementedError

    async def get_meeting_transcript(self, meeting_id: str) -> TranscriptionSession:  # pragma: no cover - interface
        raise NotImplementedError

    async def get_full_transcript(self, meeting_id: str) -> FullTranscript:  # pragma: no cover - interface
        raise NotImplementedError

    async def list_meetings(self) -> List[Meeting]:  # pragma: no cover - interface
        raise NotImplementedError

    async def check_connection(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def aclose(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


def _wire_language(language: Optional[str]) -> Optional[str]:
    # The service expects null, not "auto", to enable auto-detection.
    if not language or language == AUTO_LANGUAGE:
        return None
    return language


class VexaTranscriptionClient:
    """HTTP client for the remote transcription service.

    Every call reads the API key from the injected credential provider, so a
    key changed through the settings API takes effect on the next request.
    All failures leave this class as a :class:`TranscriptionError` subclass.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.vexa_api_url).rstrip("/"),
            timeout=timeout if timeout is not None else settings.http_timeout_seconds,
            transport=transport,
        )

    def _headers(self) -> Dict[str, str]:
        api_key = self._credentials.get()
        if not api_key:
            raise CredentialMissingError()
        if not api_key.isascii():
            raise CredentialInvalidError("API key contains characters that cannot be sent in a request header")
        return {"Content-Type": "application/json", "X-API-Key": api_key}

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        headers = self._headers()
        try:
            response = await self._client.request(method, path, headers=headers, json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TranscriptionRequestError(f"Error connecting to API: {exc}") from exc

        if response.is_success:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise TranscriptionAPIError(
                    f"API returned a non-JSON response for {method} {path}",
                    status_code=response.status_code,
                ) from exc

        detail = self._error_detail(response)
        logger.error("%s %s returned %s: %s", method, path, response.status_code, detail)

        if response.status_code == 409:
            raise ExistingBotError(detail)
        if response.status_code in (401, 403):
            raise CredentialInvalidError(
                f"API key was rejected ({response.status_code}): {detail or 'Unknown error'}"
            )
        raise TranscriptionAPIError(
            f"API error: {response.status_code} {response.reason_phrase} - {detail or 'Unknown error'}",
            status_code=response.status_code,
            detail=detail,
        )

    @staticmethod
    def _error_detail(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        detail = body.get("detail") or body.get("message")
        return str(detail) if detail else None

    async def start_bot(
        self,
        meeting_url: str,
        language: str = AUTO_LANGUAGE,
        bot_name: Optional[str] = None,
    ) -> str:
        """Ask the service to send a bot into the meeting.

        Returns the composite ``platform/native_meeting_id`` key used by all
        later calls. Raises :class:`ExistingBotError` when a bot is already
        attached to that meeting.
        """

        platform, native_meeting_id = parse_meeting_url(meeting_url)
        payload = {
            "platform": platform,
            "native_meeting_id": native_meeting_id,
            "bot_name": bot_name or settings.default_bot_name,
            "language": _wire_language(language),
        }
        await self._request("POST", "/bots", json=payload)
        meeting_id = f"{platform}/{native_meeting_id}"
        logger.info("Bot requested for %s (language=%s)", meeting_id, payload["language"] or "auto")
        return meeting_id

    async def stop_bot(self, meeting_id: str) -> None:
        ref = MeetingRef.parse(meeting_id)
        await self._request("DELETE", f"/bots/{ref.path}")
        logger.info("Bot stopped for %s", ref)

    async def update_language(self, meeting_id: str, language: str) -> None:
        ref = MeetingRef.parse(meeting_id)
        await self._request("PUT", f"/bots/{ref.path}/config", json={"language": _wire_language(language)})
        logger.info("Language for %s set to %s", ref, language)

    async def get_transcript(self, meeting_id: str, language: Optional[str] = None) -> TranscriptionSession:
        """Fetch the live snapshot for a meeting.

        ``language`` is the caller's last known language; it only matters when
        neither the segments nor the payload carry one.
        """

        ref = MeetingRef.parse(meeting_id)
        data = await self._request("GET", f"/transcripts/{ref.path}")
        session = self._build(meeting_id, data, language_fallback=language or AUTO_LANGUAGE)
        logger.debug("Fetched %d segments for %s", len(session.segments), ref)
        return session

    async def get_meeting_transcript(self, meeting_id: str) -> TranscriptionSession:
        """Fetch a meeting's transcript once for the history view."""

        if len(meeting_id.split("/")) < 2:
            meeting_id = await self._resolve_meeting_id(meeting_id)

        ref = MeetingRef.parse(meeting_id)
        data = await self._request("GET", f"/transcripts/{ref.path}")
        return self._build(
            meeting_id,
            data,
            status=SessionStatus.STOPPED,
            language_fallback=HISTORY_LANGUAGE_FALLBACK,
        )

    async def get_full_transcript(self, meeting_id: str) -> FullTranscript:
        session = await self.get_transcript(meeting_id)
        return FullTranscript(
            text=" ".join(segment.text for segment in session.segments),
            segments=session.segments,
        )

    async def list_meetings(self) -> List[Meeting]:
        data = await self._request("GET", "/meetings")
        try:
            return [parse_meeting(raw) for raw in data.get("meetings", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TranscriptionAPIError(f"Unexpected meetings payload: {exc}") from exc

    async def check_connection(self) -> None:
        await self._request("GET", "/bots/status")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _resolve_meeting_id(self, record_id: str) -> str:
        for meeting in await self.list_meetings():
            if meeting.id == record_id or meeting.id.endswith(f"/{record_id}"):
                return meeting.id
        raise MeetingNotFoundError(record_id)

    @staticmethod
    def _build(meeting_id: str, data: Any, **kwargs: Any) -> TranscriptionSession:
        try:
            return build_session(meeting_id, data, **kwargs)
        except TranscriptionError:
            raise
        except (AttributeError, TypeError, ValueError) as exc:
            # pydantic's ValidationError is a ValueError.
            raise TranscriptionAPIError(f"Malformed transcript payload: {exc}") from exc


def get_transcription_client_from_env(credentials: CredentialProvider) -> TranscriptionClient:
    """Select a transcription client based on the MOCK_MODE environment variable.

    - MOCK_MODE=true → DemoTranscriptionClient (offline, simulated speech)
    - Anything else (or unset) → VexaTranscriptionClient against VEXA_API_URL
    """

    if settings.mock_mode:
        from src.meeting_client.services.transcription.demo import DemoTranscriptionClient

        return DemoTranscriptionClient()
    return VexaTranscriptionClient(credentials)

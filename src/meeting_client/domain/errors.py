from __future__ import annotations

from typing import Optional


class TranscriptionError(Exception):
    """Base class for every failure raised by the transcription client.

    Network and parsing problems are converted into one of these at the client
    boundary so callers never have to deal with raw httpx or JSON errors.
    """


class ConfigurationError(TranscriptionError):
    """The client cannot talk to the service because of local configuration."""


class CredentialMissingError(ConfigurationError):
    def __init__(self, message: str = "No API key configured") -> None:
        super().__init__(message)


class CredentialInvalidError(ConfigurationError):
    def __init__(self, message: str = "API key was rejected by the transcription service") -> None:
        super().__init__(message)


class TranscriptionAPIError(TranscriptionError):
    """Non-2xx response (or unreadable body) from the transcription service."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ExistingBotError(TranscriptionAPIError):
    """A bot is already attached to the meeting (HTTP 409 on start)."""

    def __init__(self, detail: Optional[str] = None) -> None:
        detail = detail or "A bot is already running for this meeting"
        super().__init__(f"ExistingBotError: {detail}", status_code=409, detail=detail)


class TranscriptionRequestError(TranscriptionError):
    """The request never produced a response (DNS, connect, read timeout...)."""


class MissingSegmentsError(TranscriptionError):
    """Transcript payload carried neither ``segments`` nor ``transcript.segments``.

    Kept distinct from an empty segment list, which is the normal state of a
    session before anyone has spoken.
    """

    def __init__(self, message: str = "API response missing segments data") -> None:
        super().__init__(message)


class InvalidMeetingIdError(TranscriptionError):
    def __init__(self, meeting_id: str) -> None:
        super().__init__(f"Invalid meeting ID format: {meeting_id!r}")
        self.meeting_id = meeting_id


class InvalidMeetingUrlError(TranscriptionError):
    pass


class MeetingNotFoundError(TranscriptionError):
    def __init__(self, meeting_id: str) -> None:
        super().__init__(f"Meeting not found: {meeting_id}")
        self.meeting_id = meeting_id


class NoActiveMeetingError(Exception):
    """Raised for commands that need a meeting on screen when there is none."""

from __future__ import annotations

from typing import Tuple
from urllib.parse import urlparse

from src.meeting_client.domain.errors import InvalidMeetingUrlError

GOOGLE_MEET_HOST = "meet.google.com"
GOOGLE_MEET_PLATFORM = "google_meet"


def parse_meeting_url(url: str) -> Tuple[str, str]:
    """Return ``(platform, native_meeting_id)`` for a meeting URL.

    Only Google Meet links (``https://meet.google.com/abc-defg-hij``) are
    supported for now.
    """

    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidMeetingUrlError(
            "Please enter a valid URL (e.g., https://meet.google.com/xxx-xxxx-xxx)"
        )

    if parsed.hostname != GOOGLE_MEET_HOST:
        raise InvalidMeetingUrlError(
            "Please enter a valid Google Meet URL. Currently, only Google Meet is supported."
        )

    native_meeting_id = parsed.path.strip("/")
    if not native_meeting_id:
        raise InvalidMeetingUrlError("Meeting URL does not contain a meeting code")

    return GOOGLE_MEET_PLATFORM, native_meeting_id

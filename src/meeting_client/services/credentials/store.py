from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote, unquote

from src.meeting_client.config import settings

logger = logging.getLogger("credentials")

API_KEY_COOKIE = "vexa_api_key"


class CredentialProvider(Protocol):
    """Read/write access to the API key sent with every service call."""

    def get(self) -> Optional[str]:  # pragma: no cover - interface
        raise NotImplementedError

    def set(self, value: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def clear(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class InMemoryCredentialProvider:
    """Credential held in process memory only. Handy for tests and mock mode."""

    def __init__(self, value: Optional[str] = None) -> None:
        self._value = value or None

    def get(self) -> Optional[str]:
        return self._value

    def set(self, value: str) -> None:
        self._value = value.strip() or None

    def clear(self) -> None:
        self._value = None


class CookieFileCredentialProvider:
    """Credential persisted as a single cookie line on disk.

    The file holds ``vexa_api_key=<url-encoded>; expires=<http-date>; Path=/``,
    the same layout a browser keeps for the key. An expired or unreadable
    cookie counts as absent, in which case the environment fallback (if any)
    is returned.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        ttl_days: int | None = None,
        fallback: Optional[str] = None,
    ) -> None:
        self._path = path or settings.credentials_path
        self._ttl = timedelta(days=ttl_days if ttl_days is not None else settings.credential_ttl_days)
        self._fallback = fallback if fallback is not None else settings.vexa_api_key

    def get(self) -> Optional[str]:
        stored = self._read_cookie()
        if stored:
            return stored
        return self._fallback or None

    def set(self, value: str) -> None:
        value = value.strip()
        if not value:
            self.clear()
            return

        expires = datetime.now(timezone.utc) + self._ttl
        cookie: SimpleCookie = SimpleCookie()
        cookie[API_KEY_COOKIE] = quote(value, safe="")
        cookie[API_KEY_COOKIE]["expires"] = format_datetime(expires, usegmt=True)
        cookie[API_KEY_COOKIE]["path"] = "/"

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(cookie.output(header="").strip() + "\n", encoding="utf-8")
        logger.info("API key stored (expires %s)", expires.date().isoformat())

    def clear(self) -> None:
        # Mirror a browser expiring the cookie rather than deleting the file.
        cookie: SimpleCookie = SimpleCookie()
        cookie[API_KEY_COOKIE] = ""
        cookie[API_KEY_COOKIE]["expires"] = "Thu, 01 Jan 1970 00:00:00 GMT"
        cookie[API_KEY_COOKIE]["path"] = "/"
        if self._path.exists():
            self._path.write_text(cookie.output(header="").strip() + "\n", encoding="utf-8")
        logger.info("API key cleared")

    def _read_cookie(self) -> Optional[str]:
        if not self._path.exists():
            return None

        cookie: SimpleCookie = SimpleCookie()
        try:
            cookie.load(self._path.read_text(encoding="utf-8"))
        except (OSError, CookieError):
            logger.warning("Could not read stored API key from %s", self._path)
            return None

        morsel = cookie.get(API_KEY_COOKIE)
        if morsel is None or not morsel.value:
            return None

        expires = morsel["expires"]
        if expires:
            try:
                expires_at = parsedate_to_datetime(expires)
            except (TypeError, ValueError):
                return None
            # A "-0000" zone parses as naive; it still means UTC.
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                return None

        return unquote(morsel.value)


def get_credential_provider_from_env() -> CredentialProvider:
    """Select a credential provider based on MOCK_MODE.

    - MOCK_MODE=true → in-memory provider preloaded with a placeholder key
    - otherwise → cookie file at CREDENTIALS_PATH with VEXA_API_KEY fallback
    """

    if settings.mock_mode:
        return InMemoryCredentialProvider(settings.vexa_api_key or "mock-api-key")
    return CookieFileCredentialProvider()


credential_provider = get_credential_provider_from_env()

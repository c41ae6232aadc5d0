from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """Application settings, read once from the environment at import time.

    Other modules import the module-level ``settings`` instance rather than
    calling os.getenv themselves.
    """

    # Base URL of the remote transcription service (bots, transcripts, meetings).
    vexa_api_url: str = os.getenv("VEXA_API_URL", "https://gateway.dev.vexa.ai")

    # Fallback credential used when nothing has been stored via the settings API.
    vexa_api_key: Optional[str] = os.getenv("VEXA_API_KEY")

    # When enabled, the offline demo client replaces the HTTP client so the
    # whole app can be exercised without network access or a credential.
    mock_mode: bool = os.getenv("MOCK_MODE", "false").lower() == "true"

    # Polling cadence for live sessions and the consecutive-failure budget
    # after which the polling loop for that session gives up.
    poll_interval_seconds: float = float(os.getenv("POLL_INTERVAL_SECONDS", "0.8"))
    max_poll_retries: int = int(os.getenv("MAX_POLL_RETRIES", "3"))

    # Multiplier applied to the polling interval after each failed fetch.
    # 1.0 keeps the interval fixed.
    poll_backoff_factor: float = float(os.getenv("POLL_BACKOFF_FACTOR", "1.0"))

    # How long newly arrived or corrected segments stay highlighted.
    highlight_seconds: float = float(os.getenv("HIGHLIGHT_SECONDS", "3.0"))

    # Defaults used when starting a bot without explicit values.
    default_bot_name: str = os.getenv("DEFAULT_BOT_NAME", "Vexa")
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "auto")

    # Where the credential cookie is persisted and how long it stays valid.
    credentials_path: Path = Path(
        os.getenv("CREDENTIALS_PATH", str(Path.home() / ".meeting_client" / "credentials"))
    )
    credential_ttl_days: int = int(os.getenv("CREDENTIAL_TTL_DAYS", "30"))

    # Per-request timeout handed to httpx. The retry counter of the polling
    # loop is the real resilience bound; this only protects against hangs.
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # Comma-separated origins allowed to call the API from a browser.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    # Zone used for the [HH:MM:SS] stamps in exported transcripts: an IANA
    # name, "UTC", or "local" for the host's zone. Requests may override it.
    export_timezone: str = os.getenv("EXPORT_TIMEZONE", "UTC")


settings = Settings()

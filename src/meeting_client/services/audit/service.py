from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.meeting_client.services.credentials.store import credential_provider

logger = logging.getLogger("audit")


def credential_subject(api_key: Optional[str]) -> Optional[str]:
    """Return a stable, non-reversible identifier for an API key.

    Lets audit entries be correlated by caller without ever writing the raw
    secret (or a prefix of it) to the logs.
    """

    if not api_key:
        return None
    return "api-key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


@dataclass
class AuditEvent:
    """Structured representation of an audit event.

    Intentionally keeps payload minimal: meeting ids, actions and counts, never
    transcript text or credentials.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Log a structured audit event and return its payload.

        - `action`: high-level verb, e.g., "start_bot", "stop_bot", "export".
        - `resource_type`: coarse type, e.g., "meeting", "credential".
        - `resource_id`: composite meeting id when available.
        - `subject`: optional caller identifier. If omitted, it is derived
          from the credential currently configured.
        - `extra`: optional small dict of metadata (counts, flags, language).
        """

        if subject is None:
            subject = credential_subject(credential_provider.get())

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            extra=extra,
        )

        payload = asdict(event)
        try:
            logger.info(json.dumps(payload))
        except TypeError:
            # Fallback: log a simpler representation if something in extra is
            # not JSON serializable.
            payload["extra"] = None
            logger.info(json.dumps(payload))
        return payload


audit_service = AuditService()

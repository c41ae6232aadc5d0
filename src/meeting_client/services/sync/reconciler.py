from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from src.meeting_client.config import settings
from src.meeting_client.domain.models.segment import Segment
from src.meeting_client.domain.models.transcript_view import DisplayState
from src.meeting_client.domain.models.transcription import (
    AUTO_LANGUAGE_SENTINELS,
    SessionStatus,
    TranscriptionSession,
)

logger = logging.getLogger("sync")

# Number of distinct speaker colours the UI cycles through.
SPEAKER_PALETTE_SIZE = 6


@dataclass
class ReconcileResult:
    segments: List[Segment]
    changed_ids: FrozenSet[str]
    language_changed: bool = False


class HighlightSet:
    """Ids of recently new or corrected segments, cleared after a fixed delay.

    The expiry is measured from when the set was last replaced, not from the
    last poll, so an unchanged poll neither extends nor re-triggers it.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._ids: FrozenSet[str] = frozenset()
        self._expires_at = 0.0

    def replace(self, ids: Iterable[str]) -> None:
        self._ids = frozenset(ids)
        self._expires_at = self._clock() + self._ttl

    def clear(self) -> None:
        self._ids = frozenset()
        self._expires_at = 0.0

    @property
    def active(self) -> FrozenSet[str]:
        if self._ids and self._clock() >= self._expires_at:
            self._ids = frozenset()
        return self._ids


class SpeakerPalette:
    """Stable colour slot per speaker, assigned in order of first appearance."""

    def __init__(self, size: int = SPEAKER_PALETTE_SIZE) -> None:
        self._size = size
        self._slots: Dict[str, int] = {}

    def assign(self, segments: Iterable[Segment]) -> None:
        for segment in segments:
            if segment.speaker not in self._slots:
                self._slots[segment.speaker] = len(self._slots) % self._size

    def clear(self) -> None:
        self._slots = {}

    def as_dict(self) -> Dict[str, int]:
        return dict(self._slots)


@dataclass
class ReconciliationEngine:
    """Merge fetched snapshots into the segment list shown to the user.

    The server only ever sends full snapshots and gives no stable ids, so each
    pass adopts the whole snapshot (corrections, reorders and drops included)
    and uses the content-derived segment ids to tell the UI which entries are
    new or have grown since the previous pass.
    """

    highlight_seconds: float = field(default_factory=lambda: settings.highlight_seconds)
    clock: Callable[[], float] = time.monotonic
    language: Optional[str] = None
    segments: List[Segment] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.highlights = HighlightSet(self.highlight_seconds, self.clock)
        self.palette = SpeakerPalette()

    def reconcile(self, snapshot: TranscriptionSession) -> ReconcileResult:
        previous = {segment.id: segment for segment in self.segments}

        # Later duplicates carry the most recent text for that id.
        deduplicated: Dict[str, Segment] = {}
        for segment in snapshot.segments:
            deduplicated[segment.id] = segment

        changed = frozenset(
            segment_id
            for segment_id, segment in deduplicated.items()
            if segment_id not in previous or previous[segment_id].text != segment.text
        )

        # Segment list and highlight set change together; there is no await in
        # between for another task to observe one without the other.
        self.segments = sorted(deduplicated.values(), key=lambda s: s.timestamp)
        if changed:
            self.highlights.replace(changed)
        self.palette.assign(self.segments)

        language_changed = self._promote_language(snapshot.language)

        if changed or language_changed:
            logger.debug(
                "Reconciled %s: %d segments, %d changed, language=%s",
                snapshot.meeting_id,
                len(self.segments),
                len(changed),
                self.language,
            )
        return ReconcileResult(segments=list(self.segments), changed_ids=changed, language_changed=language_changed)

    def _promote_language(self, language: Optional[str]) -> bool:
        if not language or language in AUTO_LANGUAGE_SENTINELS or language == self.language:
            return False
        self.language = language
        return True

    def reset(self, language: Optional[str] = None) -> None:
        self.segments = []
        self.highlights.clear()
        self.palette.clear()
        if language is not None:
            self.language = language

    def display_state(
        self, status: Optional[SessionStatus], loaded: bool, *, failed: bool = False
    ) -> DisplayState:
        if self.segments:
            return DisplayState.SHOWING
        # Polling has given up, so nothing more is coming.
        if failed:
            return DisplayState.EMPTY
        if not loaded:
            return DisplayState.LOADING
        if status is not None and status.is_terminal:
            return DisplayState.EMPTY
        return DisplayState.WAITING

from __future__ import annotations

from typing import List, Sequence

from src.meeting_client.domain.models.segment import Segment
from src.meeting_client.domain.models.transcript_view import SearchHit, SearchState


class TranscriptSearch:
    """Case-insensitive substring search over the displayed segments.

    ``refresh`` is called after every reconciliation pass. The selected hit
    survives a refresh as long as its segment still matches, so new segments
    arriving during a live call do not yank the selection back to the first
    result.
    """

    def __init__(self) -> None:
        self._term = ""
        self._results: List[SearchHit] = []
        self._current = -1

    @property
    def state(self) -> SearchState:
        return SearchState(term=self._term, results=list(self._results), current_index=self._current)

    def search(self, term: str, segments: Sequence[Segment]) -> SearchState:
        self._term = term.strip()
        self._results = self._find(segments)
        self._current = 0 if self._results else -1
        return self.state

    def refresh(self, segments: Sequence[Segment]) -> SearchState:
        if not self._term:
            return self.state

        selected = self.state.current_segment_id
        self._results = self._find(segments)
        if not self._results:
            self._current = -1
        else:
            ids = [hit.segment_id for hit in self._results]
            self._current = ids.index(selected) if selected in ids else 0
        return self.state

    def next(self) -> SearchState:
        if self._results:
            self._current = (self._current + 1) % len(self._results)
        return self.state

    def previous(self) -> SearchState:
        if self._results:
            self._current = (self._current - 1 + len(self._results)) % len(self._results)
        return self.state

    def clear(self) -> SearchState:
        self._term = ""
        self._results = []
        self._current = -1
        return self.state

    def _find(self, segments: Sequence[Segment]) -> List[SearchHit]:
        if not self._term:
            return []
        needle = self._term.lower()
        return [
            SearchHit(segment_id=segment.id, index=index)
            for index, segment in enumerate(segments)
            if needle in segment.text.lower()
        ]

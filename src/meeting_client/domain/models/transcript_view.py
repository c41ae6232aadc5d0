from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.meeting_client.domain.models.segment import Segment
from src.meeting_client.domain.models.transcription import SessionStatus


class ViewMode(str, Enum):
    LIVE = "live"
    HISTORY = "history"


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    FETCHED_ONCE = "fetched_once"
    FAILED = "failed"
    TERMINATED = "terminated"


class DisplayState(str, Enum):
    """What the transcript pane should render when it has nothing else to say."""

    LOADING = "loading"  # no successful fetch yet
    WAITING = "waiting"  # session active, nobody has spoken
    EMPTY = "empty"  # session ended, or polling gave up, without any segment
    SHOWING = "showing"


class ViewErrorStatus(str, Enum):
    RETRYING = "retrying"
    FAILED = "failed"
    ERROR = "error"
    CONFIG_MISSING = "config_missing"
    CONFLICT = "conflict"


class ViewError(BaseModel):
    """The only error shape that reaches the UI."""

    status: ViewErrorStatus
    message: str


class SearchHit(BaseModel):
    segment_id: str
    index: int


class SearchState(BaseModel):
    term: str = ""
    results: List[SearchHit] = Field(default_factory=list)
    current_index: int = -1

    @property
    def current_segment_id(self) -> Optional[str]:
        if 0 <= self.current_index < len(self.results):
            return self.results[self.current_index].segment_id
        return None


class TranscriptView(BaseModel):
    meeting_id: Optional[str] = None
    mode: ViewMode = ViewMode.LIVE
    state: SchedulerState = SchedulerState.IDLE
    display_state: DisplayState = DisplayState.LOADING
    session_status: Optional[SessionStatus] = None
    language: Optional[str] = None
    segments: List[Segment] = Field(default_factory=list)
    highlighted_segment_ids: List[str] = Field(default_factory=list)
    speaker_colors: Dict[str, int] = Field(default_factory=dict)
    retry_count: int = 0
    max_retries: int = 0
    is_polling: bool = False
    error: Optional[ViewError] = None
    last_updated: Optional[datetime] = None
    search: SearchState = Field(default_factory=SearchState)

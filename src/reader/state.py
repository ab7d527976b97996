"""Playback state, session, and cursor models owned by the speech controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PlaybackState(str, Enum):
    """Controller lifecycle states; values double as UI state strings."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


@dataclass(frozen=True)
class ReaderConfig:
    """Chunking and pacing limits applied to every reading session."""
    max_chunk_length: int = 3500
    title_pause_ms: int = 1000
    resume_lookback_chars: int = 100

    def __post_init__(self) -> None:
        if self.max_chunk_length < 1:
            raise ValueError("max_chunk_length must be at least 1")
        if self.title_pause_ms < 0:
            raise ValueError("title_pause_ms cannot be negative")
        if self.resume_lookback_chars < 0:
            raise ValueError("resume_lookback_chars cannot be negative")


@dataclass(frozen=True)
class Session:
    """One reading attempt: the story text and the chunk table derived from it."""
    story_id: int
    title: str
    full_text: str
    chunks: tuple[str, ...] = ()


@dataclass
class Cursor:
    """Reading position inside the current session."""
    absolute_offset: int = 0
    chunk_index: int = 0
    title_consumed: bool = False
    # Absolute offset of chunks[0]; non-zero after a resume re-chunks a suffix.
    chunk_base: int = 0


@dataclass(frozen=True)
class PendingRequest:
    """Start request parked while the engine is still initializing."""
    story_id: int
    title: str
    text: str


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Immutable state copy handed to observers."""
    state: PlaybackState = PlaybackState.IDLE
    story_id: int = 0
    title: str = ""
    progress: int = 0

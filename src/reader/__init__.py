"""Long-form reading controller with chunking and pause/resume."""

from .chunking import find_natural_break_point, split_into_chunks
from .controller import SpeechController
from .state import (
    Cursor,
    PendingRequest,
    PlaybackSnapshot,
    PlaybackState,
    ReaderConfig,
    Session,
)

__all__ = [
    "Cursor",
    "PendingRequest",
    "PlaybackSnapshot",
    "PlaybackState",
    "ReaderConfig",
    "Session",
    "SpeechController",
    "find_natural_break_point",
    "split_into_chunks",
]

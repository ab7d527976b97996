"""Speech engine command surface and the events it publishes back."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from queue import Queue
from typing import Optional, Protocol


class SpeakMode(str, Enum):
    """Queueing behaviour of a speak command."""
    REPLACE = "replace"
    APPEND = "append"


@dataclass(frozen=True)
class VoiceInfo:
    """Installed voice as reported by the synthesis engine."""
    name: str
    locale: str

    @property
    def language(self) -> str:
        return self.locale.replace("-", "_").split("_", 1)[0].lower()


@dataclass(frozen=True)
class EngineReadyEvent:
    """Engine finished loading and accepts utterances."""


@dataclass(frozen=True)
class EngineInitFailedEvent:
    """Engine could not be loaded."""
    message: str
    exception: Optional[Exception] = None


@dataclass(frozen=True)
class UtteranceStartedEvent:
    utterance_id: str


@dataclass(frozen=True)
class UtteranceFinishedEvent:
    """Utterance ended, either naturally or because playback was stopped."""
    utterance_id: str
    interrupted: bool = False


@dataclass(frozen=True)
class RangeStartEvent:
    """Span of the utterance text that is about to be spoken."""
    utterance_id: str
    start: int
    end: int


@dataclass(frozen=True)
class UtteranceErrorEvent:
    utterance_id: str
    message: str = ""


EngineEvent = (
    EngineReadyEvent
    | EngineInitFailedEvent
    | UtteranceStartedEvent
    | UtteranceFinishedEvent
    | RangeStartEvent
    | UtteranceErrorEvent
)


class EventPublisher(Protocol):
    """Protocol for publishing speech engine events."""

    def publish(self, event: EngineEvent) -> None: ...


class QueueEventPublisher:
    """Event publisher that pushes events to a queue."""

    def __init__(self, queue: Queue):
        self._queue = queue

    def publish(self, event: EngineEvent) -> None:
        self._queue.put(event)


class SpeechEngineLike(Protocol):
    """Engine commands issued by the speech controller."""

    def start(self) -> None: ...

    def speak(self, text: str, mode: SpeakMode, utterance_id: str) -> None: ...

    def speak_silence(self, duration_ms: int, utterance_id: str) -> None: ...

    def stop(self) -> None: ...

    def set_rate(self, rate: float) -> None: ...

    def set_pitch(self, pitch: float) -> None: ...

    def set_voice(self, name: Optional[str]) -> None: ...

    def list_voices(self) -> list[VoiceInfo]: ...

    def shutdown(self) -> None: ...

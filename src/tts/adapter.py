"""Threaded playback adapter that turns a synthesizer into an utterance engine."""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Protocol

from contracts.speech_engine import (
    EngineInitFailedEvent,
    EngineReadyEvent,
    EventPublisher,
    RangeStartEvent,
    SpeakMode,
    UtteranceErrorEvent,
    UtteranceFinishedEvent,
    UtteranceStartedEvent,
    VoiceInfo,
)

# Non-blank run up to a sentence terminator, a line break, or the end of text.
_SEGMENT_RE = re.compile(r"\S.*?(?:[.?!…]+(?=\s|$)|\n|$)", re.DOTALL)


class SynthesizerLike(Protocol):
    def synthesize(self, text: str, *, rate: float, pitch: float) -> tuple[Any, int]:
        ...

    def list_voices(self) -> list[VoiceInfo]:
        ...

    def set_voice(self, name: Optional[str]) -> bool:
        ...

    def close(self) -> None:
        ...


class AudioOutputLike(Protocol):
    def play(
        self,
        wav: Any,
        sample_rate_hz: int,
        stop_event: Optional[threading.Event] = None,
    ) -> bool:
        ...


@dataclass(frozen=True)
class _Utterance:
    utterance_id: str
    text: str = ""
    silence_ms: int = 0


def iter_segments(text: str) -> Iterator[tuple[int, int]]:
    """Yield `(start, end)` spans of the sentence-sized pieces of `text`."""
    for match in _SEGMENT_RE.finditer(text):
        segment = match.group(0)
        if segment.strip():
            yield match.start(), match.start() + len(segment.rstrip())


class PlaybackEngineAdapter:
    """Owns the synthesizer on a worker thread and publishes utterance events.

    The synthesizer is built by `synthesizer_factory` on the worker thread.
    Utterances queued before it is ready wait in the queue and play once
    loading completes; a failed load drops them.
    """

    def __init__(
        self,
        synthesizer_factory: Callable[[], SynthesizerLike],
        output: AudioOutputLike,
        publisher: EventPublisher,
        *,
        rate: float = 1.0,
        pitch: float = 1.0,
        voice: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._synthesizer_factory = synthesizer_factory
        self._output = output
        self._publisher = publisher
        self._logger = logger or logging.getLogger("tts.adapter")

        self._condition = threading.Condition()
        self._queue: deque[_Utterance] = deque()
        self._current_stop: Optional[threading.Event] = None
        self._synthesizer: Optional[SynthesizerLike] = None
        self._thread: Optional[threading.Thread] = None
        self._closed = False

        self._rate = rate
        self._pitch = pitch
        self._requested_voice = voice

    @property
    def is_ready(self) -> bool:
        with self._condition:
            return self._synthesizer is not None

    def start(self) -> None:
        with self._condition:
            if self._closed:
                return
            if self._thread is not None and self._thread.is_alive():
                self._logger.debug("Speech engine already starting or running")
                return
            self._thread = threading.Thread(
                target=self._run,
                daemon=True,
                name="tts-engine",
            )
            self._thread.start()

    def speak(self, text: str, mode: SpeakMode, utterance_id: str) -> None:
        self._enqueue(_Utterance(utterance_id=utterance_id, text=text), mode)

    def speak_silence(self, duration_ms: int, utterance_id: str) -> None:
        self._enqueue(
            _Utterance(utterance_id=utterance_id, silence_ms=max(0, int(duration_ms))),
            SpeakMode.APPEND,
        )

    def stop(self) -> None:
        with self._condition:
            self._flush_locked()

    def set_rate(self, rate: float) -> None:
        if rate <= 0:
            self._logger.warning("Ignoring non-positive speech rate %s", rate)
            return
        with self._condition:
            self._rate = rate

    def set_pitch(self, pitch: float) -> None:
        if pitch <= 0:
            self._logger.warning("Ignoring non-positive speech pitch %s", pitch)
            return
        with self._condition:
            self._pitch = pitch

    def set_voice(self, name: Optional[str]) -> None:
        with self._condition:
            self._requested_voice = name or None

    def list_voices(self) -> list[VoiceInfo]:
        with self._condition:
            synthesizer = self._synthesizer
        if synthesizer is None:
            return []
        return list(synthesizer.list_voices())

    def shutdown(self, timeout_seconds: float = 2.0) -> None:
        with self._condition:
            if self._closed:
                return
            self._closed = True
            self._flush_locked()
            self._condition.notify_all()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout_seconds)
            if thread.is_alive():
                self._logger.error(
                    "Speech engine thread did not stop within %.1fs",
                    timeout_seconds,
                )
        self._thread = None

    def _enqueue(self, utterance: _Utterance, mode: SpeakMode) -> None:
        with self._condition:
            if self._closed:
                self._logger.debug("Dropping %s after shutdown", utterance.utterance_id)
                return
            if mode == SpeakMode.REPLACE:
                self._flush_locked()
            self._queue.append(utterance)
            self._condition.notify_all()

    def _flush_locked(self) -> None:
        self._queue.clear()
        if self._current_stop is not None:
            self._current_stop.set()

    def _run(self) -> None:
        try:
            synthesizer = self._synthesizer_factory()
        except Exception as error:
            self._logger.error("Speech engine failed to initialize: %s", error, exc_info=True)
            with self._condition:
                self._queue.clear()
            self._publisher.publish(EngineInitFailedEvent(message=str(error), exception=error))
            return

        with self._condition:
            if self._closed:
                synthesizer.close()
                return
            self._synthesizer = synthesizer
        self._logger.info("Speech engine ready")
        self._publisher.publish(EngineReadyEvent())

        try:
            while True:
                with self._condition:
                    while not self._queue and not self._closed:
                        self._condition.wait()
                    if self._closed:
                        break
                    utterance = self._queue.popleft()
                    stop_event = threading.Event()
                    self._current_stop = stop_event
                    rate, pitch = self._rate, self._pitch
                    requested_voice = self._requested_voice
                    self._requested_voice = None

                if requested_voice:
                    self._switch_voice(synthesizer, requested_voice)
                self._speak_utterance(synthesizer, utterance, stop_event, rate, pitch)
        finally:
            with self._condition:
                self._synthesizer = None
                self._current_stop = None
            synthesizer.close()

    def _switch_voice(self, synthesizer: SynthesizerLike, name: str) -> None:
        # An unusable voice keeps the current one loaded.
        try:
            synthesizer.set_voice(name)
        except Exception as error:
            self._logger.warning(
                "Voice %s could not be loaded, keeping current voice: %s",
                name,
                error,
                exc_info=True,
            )

    def _speak_utterance(
        self,
        synthesizer: SynthesizerLike,
        utterance: _Utterance,
        stop_event: threading.Event,
        rate: float,
        pitch: float,
    ) -> None:
        utterance_id = utterance.utterance_id
        self._publisher.publish(UtteranceStartedEvent(utterance_id))
        try:
            if utterance.silence_ms:
                stop_event.wait(utterance.silence_ms / 1000.0)
            else:
                for start, end in iter_segments(utterance.text):
                    if stop_event.is_set():
                        break
                    self._publisher.publish(RangeStartEvent(utterance_id, start, end))
                    wav, sample_rate_hz = synthesizer.synthesize(
                        utterance.text[start:end],
                        rate=rate,
                        pitch=pitch,
                    )
                    if stop_event.is_set():
                        break
                    if not self._output.play(wav, sample_rate_hz, stop_event=stop_event):
                        break
        except Exception as error:
            self._logger.error("Utterance %s failed: %s", utterance_id, error)
            with self._condition:
                self._current_stop = None
                self._queue.clear()
            self._publisher.publish(UtteranceErrorEvent(utterance_id, str(error)))
            return

        with self._condition:
            self._current_stop = None
        self._publisher.publish(
            UtteranceFinishedEvent(utterance_id, interrupted=stop_event.is_set())
        )

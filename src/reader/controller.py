"""Speech controller that reads long stories aloud with pause and resume."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Optional

from contracts.speech_engine import SpeakMode, SpeechEngineLike, VoiceInfo

from .chunking import chunk_start_offset, find_natural_break_point, split_into_chunks
from .state import Cursor, PendingRequest, PlaybackState, ReaderConfig, Session

UTTERANCE_TITLE = "title"
UTTERANCE_SILENCE = "silence"
CONTENT_PREFIX = "content_"
RESUME_PREFIX = "resume_"


class SpeechController:
    """Owns playback state and drives the engine one utterance at a time.

    Every method must be called from a single owner thread. Engine callbacks
    reach the controller through the `on_*` handlers once the host has moved
    them onto that thread.

    Utterance ids carry a generation prefix (``"3:content_0"``). Starting,
    resuming, or stopping bumps the generation, so late events from discarded
    utterances are dropped instead of steering the new session.
    """

    def __init__(
        self,
        engine: SpeechEngineLike,
        *,
        on_state_change: Callable[[PlaybackState], None],
        on_progress_change: Optional[Callable[[int], None]] = None,
        config: Optional[ReaderConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._engine = engine
        self._on_state_change = on_state_change
        self._on_progress_change = on_progress_change
        self._config = config or ReaderConfig()
        self._logger = logger or logging.getLogger("reader")

        self._state = PlaybackState.IDLE
        self._engine_ready = False
        self._shut_down = False
        self._session: Optional[Session] = None
        self._cursor = Cursor()
        self._pending: Optional[PendingRequest] = None
        self._progress = 0
        self._generation = 0
        # Set right before a pause stops the engine; swallows the finished
        # event that the stop produces.
        self._suppress_next_completion = False

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def cursor(self) -> Cursor:
        return replace(self._cursor)

    @property
    def pending_request(self) -> Optional[PendingRequest]:
        return self._pending

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def is_playing(self) -> bool:
        return self._state == PlaybackState.PLAYING

    @property
    def is_paused(self) -> bool:
        return self._state == PlaybackState.PAUSED

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def initialize(self) -> None:
        if self._shut_down:
            return
        self._engine_ready = False
        self._set_state(PlaybackState.INITIALIZING)
        self._engine.start()

    def configure(
        self,
        rate: float,
        pitch: float,
        voice_name: Optional[str] = None,
    ) -> None:
        """Apply synthesis settings; they take effect from the next utterance."""
        if self._shut_down:
            return
        self._engine.set_rate(rate)
        self._engine.set_pitch(pitch)
        if voice_name:
            self._engine.set_voice(voice_name)

    def list_voices(self, preferred_language: str = "") -> list[VoiceInfo]:
        """Return installed voices, narrowed to `preferred_language` when any match."""
        if self._shut_down:
            return []
        voices = list(self._engine.list_voices())
        language = preferred_language.replace("-", "_").split("_", 1)[0].lower()
        if language:
            preferred = [voice for voice in voices if voice.language == language]
            if preferred:
                return preferred
        return voices

    def speak(self, text: str, story_id: int = 0) -> None:
        self.start_reading(story_id, "", text)

    def start_reading(self, story_id: int, title: str, text: str) -> None:
        if self._shut_down:
            return

        if not self._engine_ready:
            self._pending = PendingRequest(story_id=story_id, title=title, text=text)
            self._logger.info(
                "Engine not ready, queued story %s until initialization completes",
                story_id,
            )
            if self._state != PlaybackState.INITIALIZING:
                self.initialize()
            return

        self._begin_generation()
        chunks = tuple(split_into_chunks(text, self._config.max_chunk_length))
        self._logger.info(
            "Starting story %s: title=%r text_len=%d chunks=%d",
            story_id,
            title,
            len(text),
            len(chunks),
        )
        if not chunks:
            self._engine.stop()
            self._clear_session()
            self._emit_progress(0)
            self._set_state(PlaybackState.READY, force=True)
            return

        self._session = Session(
            story_id=story_id,
            title=title,
            full_text=text,
            chunks=chunks,
        )
        self._cursor = Cursor(title_consumed=not title)
        self._emit_progress(0)
        self._set_state(PlaybackState.PLAYING, force=True)

        if title:
            self._engine.speak(title, SpeakMode.REPLACE, self._utterance_id(UTTERANCE_TITLE))
        else:
            self._speak_chunk(0, CONTENT_PREFIX)

    def pause(self) -> None:
        if self._shut_down or self._state != PlaybackState.PLAYING:
            self._logger.debug("Ignoring pause in state %s", self._state.value)
            return

        self._suppress_next_completion = True
        self._set_state(PlaybackState.PAUSED)
        self._engine.stop()
        self._logger.info("Paused at offset %d", self._cursor.absolute_offset)

    def resume(self) -> None:
        session = self._session
        if self._shut_down or self._state != PlaybackState.PAUSED or session is None:
            self._logger.debug("Ignoring resume in state %s", self._state.value)
            return

        if not self._cursor.title_consumed:
            # Titles are short; replay title, pause, and content from the top.
            self.start_reading(session.story_id, session.title, session.full_text)
            return

        text = session.full_text
        position = min(max(self._cursor.absolute_offset, 0), len(text))
        restart = find_natural_break_point(
            text,
            position,
            lookback=self._config.resume_lookback_chars,
        )
        if restart >= len(text):
            self._logger.info("Resume offset reached the end of the story")
            self._begin_generation()
            self._clear_session()
            self._emit_progress(0)
            self._set_state(PlaybackState.READY)
            return

        self._begin_generation()
        chunks = tuple(split_into_chunks(text[restart:], self._config.max_chunk_length))
        self._session = replace(session, chunks=chunks)
        self._cursor = Cursor(
            absolute_offset=restart,
            chunk_index=0,
            title_consumed=True,
            chunk_base=restart,
        )
        self._logger.info(
            "Resuming story %s at offset %d (paused at %d)",
            session.story_id,
            restart,
            position,
        )
        self._set_state(PlaybackState.PLAYING)
        self._speak_chunk(0, RESUME_PREFIX)

    def stop(self) -> None:
        if self._shut_down:
            return

        self._suppress_next_completion = False
        self._pending = None
        if not self._engine_ready:
            # Nothing is playing yet; keep waiting for the engine.
            self._clear_session()
            return

        had_session = self._session is not None
        self._begin_generation()
        self._engine.stop()
        self._clear_session()
        if had_session:
            self._emit_progress(0)
        self._set_state(PlaybackState.READY)

    def shutdown(self) -> None:
        if self._shut_down:
            return

        self._shut_down = True
        self._suppress_next_completion = False
        self._pending = None
        self._generation += 1
        self._clear_session()
        self._engine_ready = False
        try:
            self._engine.shutdown()
        finally:
            self._logger.info("Speech controller shut down")
            self._set_state(PlaybackState.IDLE)

    def on_ready(self) -> None:
        if self._shut_down:
            return

        self._engine_ready = True
        if self._state in (PlaybackState.IDLE, PlaybackState.INITIALIZING, PlaybackState.ERROR):
            self._set_state(PlaybackState.READY)

        pending = self._pending
        if pending is not None:
            self._pending = None
            self.start_reading(pending.story_id, pending.title, pending.text)

    def on_init_failed(self, message: str) -> None:
        if self._shut_down:
            return

        self._logger.error("Speech engine initialization failed: %s", message)
        self._engine_ready = False
        self._pending = None
        self._set_state(PlaybackState.ERROR)

    def on_utterance_started(self, utterance_id: str) -> None:
        if self._is_stale(utterance_id):
            return
        if self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            return
        if self._session is None:
            return
        self._set_state(PlaybackState.PLAYING)

    def on_range_start(self, utterance_id: str, start: int, end: int = 0) -> None:
        del end  # Only the span start drives position tracking.
        if self._is_stale(utterance_id):
            return

        session = self._session
        kind = self._utterance_kind(utterance_id)
        index = _chunk_index(kind)
        if session is None or index is None or index >= len(session.chunks):
            return

        text_length = len(session.full_text)
        offset = (
            self._cursor.chunk_base
            + chunk_start_offset(session.chunks, index)
            + max(0, start)
        )
        self._cursor.absolute_offset = min(offset, text_length)
        self._cursor.chunk_index = index
        self._emit_progress(_progress_percent(self._cursor.absolute_offset, text_length))

    def on_utterance_finished(self, utterance_id: str) -> None:
        if self._is_stale(utterance_id):
            return

        if self._suppress_next_completion:
            self._suppress_next_completion = False
            self._logger.debug("Suppressed completion of %s after pause", utterance_id)
            return

        session = self._session
        if self._state != PlaybackState.PLAYING or session is None:
            return

        kind = self._utterance_kind(utterance_id)
        if kind == UTTERANCE_TITLE:
            self._cursor.title_consumed = True
            self._engine.speak_silence(
                self._config.title_pause_ms,
                self._utterance_id(UTTERANCE_SILENCE),
            )
            self._engine.speak(
                session.chunks[0],
                SpeakMode.APPEND,
                self._utterance_id(f"{CONTENT_PREFIX}0"),
            )
            return

        if kind == UTTERANCE_SILENCE:
            # First content chunk is already queued behind the silence.
            return

        index = _chunk_index(kind)
        if index is None:
            self._logger.warning("Finished event for unknown utterance %s", utterance_id)
            return

        if index < len(session.chunks) - 1:
            prefix = RESUME_PREFIX if kind.startswith(RESUME_PREFIX) else CONTENT_PREFIX
            self._speak_chunk(index + 1, prefix)
            return

        self._logger.info("Finished reading story %s", session.story_id)
        self._clear_session()
        self._emit_progress(0)
        self._set_state(PlaybackState.READY)

    def on_error(self, utterance_id: Optional[str], message: str = "") -> None:
        if utterance_id and self._is_stale(utterance_id):
            return
        if self._shut_down:
            return

        self._logger.error(
            "Synthesis failed for utterance %s: %s",
            utterance_id,
            message or "unknown error",
        )
        self._suppress_next_completion = False
        self._set_state(PlaybackState.ERROR)

    def _speak_chunk(self, index: int, prefix: str) -> None:
        session = self._session
        if session is None or index >= len(session.chunks):
            return
        self._cursor.chunk_index = index
        self._engine.speak(
            session.chunks[index],
            SpeakMode.REPLACE,
            self._utterance_id(f"{prefix}{index}"),
        )

    def _begin_generation(self) -> None:
        self._generation += 1
        self._suppress_next_completion = False

    def _utterance_id(self, kind: str) -> str:
        return f"{self._generation}:{kind}"

    def _is_stale(self, utterance_id: str) -> bool:
        if self._shut_down:
            return True
        generation, separator, _ = utterance_id.partition(":")
        if not separator or generation != str(self._generation):
            self._logger.debug("Dropping event for stale utterance %s", utterance_id)
            return True
        return False

    @staticmethod
    def _utterance_kind(utterance_id: str) -> str:
        return utterance_id.partition(":")[2]

    def _clear_session(self) -> None:
        self._session = None
        self._cursor = Cursor()

    def _emit_progress(self, progress: int) -> None:
        self._progress = progress
        if self._on_progress_change is not None:
            self._on_progress_change(progress)

    def _set_state(self, state: PlaybackState, *, force: bool = False) -> None:
        if state == self._state and not force:
            return
        self._logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        self._on_state_change(state)


def _chunk_index(kind: str) -> Optional[int]:
    for prefix in (CONTENT_PREFIX, RESUME_PREFIX):
        if kind.startswith(prefix):
            try:
                return int(kind[len(prefix):])
            except ValueError:
                return None
    return None


def _progress_percent(offset: int, text_length: int) -> int:
    if text_length <= 0:
        return 0
    # Halves round up.
    return min(100, max(0, (200 * offset + text_length) // (2 * text_length)))

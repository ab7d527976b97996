"""Playback session host that serializes commands and engine events for the controller."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from queue import Empty, Queue
from typing import Any, Callable, Optional

from contracts.speech_engine import (
    EngineInitFailedEvent,
    EngineReadyEvent,
    RangeStartEvent,
    SpeechEngineLike,
    UtteranceErrorEvent,
    UtteranceFinishedEvent,
    UtteranceStartedEvent,
    VoiceInfo,
)
from reader import PlaybackSnapshot, PlaybackState, ReaderConfig, SpeechController

from .commands import (
    ConfigureCommand,
    PauseCommand,
    PlaybackCommand,
    ResumeCommand,
    ShutdownCommand,
    StartReadingCommand,
    StopCommand,
)

StateObserver = Callable[[PlaybackSnapshot], None]
ProgressObserver = Callable[[PlaybackSnapshot], None]

_IDLE_PROGRESS_STATES = (PlaybackState.IDLE, PlaybackState.READY)


@dataclass(frozen=True)
class HostDependencies:
    """Dependency bundle required to construct the session host."""
    engine: SpeechEngineLike
    event_queue: Queue[Any]
    logger: logging.Logger
    reader_config: ReaderConfig = field(default_factory=ReaderConfig)
    preferred_language: str = ""


@dataclass(frozen=True)
class _Observer:
    on_state: StateObserver
    on_progress: Optional[ProgressObserver] = None


class PlaybackSessionHost:
    """Binds one speech controller to a long-running owner thread.

    Commands and engine events share one queue, so every controller call runs
    on the ``playback-host`` thread. Observers receive immutable snapshots and
    may register from any thread; the latest snapshot is delivered to a new
    observer right away.
    The voice query reads the engine directly and may run on any thread.
    """

    def __init__(self, dependencies: HostDependencies):
        self._logger = dependencies.logger
        self._event_queue = dependencies.event_queue
        self._preferred_language = dependencies.preferred_language
        self._controller = SpeechController(
            dependencies.engine,
            on_state_change=self._handle_state_change,
            on_progress_change=self._handle_progress_change,
            config=dependencies.reader_config,
            logger=logging.getLogger("reader"),
        )

        self._lock = threading.Lock()
        self._snapshot = PlaybackSnapshot()
        self._observer: Optional[_Observer] = None
        self._listeners: list[_Observer] = []
        self._thread: Optional[threading.Thread] = None
        self._closed = threading.Event()

    @property
    def controller(self) -> SpeechController:
        return self._controller

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def current_state(self) -> PlaybackState:
        return self.snapshot().state

    @property
    def current_session_id(self) -> int:
        return self.snapshot().story_id

    @property
    def current_title(self) -> str:
        return self.snapshot().title

    def snapshot(self) -> PlaybackSnapshot:
        with self._lock:
            return self._snapshot

    def voices(self) -> list[VoiceInfo]:
        """Installed voices, narrowed to the preferred language when any match."""
        return self._controller.list_voices(self._preferred_language)

    def register_observer(
        self,
        on_state: StateObserver,
        on_progress: Optional[ProgressObserver] = None,
    ) -> None:
        """Set the active view observer, replacing any previous one."""
        observer = _Observer(on_state=on_state, on_progress=on_progress)
        with self._lock:
            self._observer = observer
            snapshot = self._snapshot
        self._deliver(observer.on_state, snapshot)

    def unregister_observer(self) -> None:
        with self._lock:
            self._observer = None

    def add_listener(
        self,
        on_state: StateObserver,
        on_progress: Optional[ProgressObserver] = None,
    ) -> None:
        """Attach a long-lived observer that stays alongside the active view."""
        listener = _Observer(on_state=on_state, on_progress=on_progress)
        with self._lock:
            self._listeners.append(listener)
            snapshot = self._snapshot
        self._deliver(listener.on_state, snapshot)

    def command(self, command: PlaybackCommand) -> None:
        if self._closed.is_set():
            self._logger.debug("Dropping %s after shutdown", type(command).__name__)
            return
        self._event_queue.put(command)

    def start_reading(self, story_id: int, title: str, text: str) -> None:
        self.command(StartReadingCommand(story_id=story_id, title=title, text=text))

    def pause(self) -> None:
        self.command(PauseCommand())

    def resume(self) -> None:
        self.command(ResumeCommand())

    def stop_reading(self) -> None:
        self.command(StopCommand())

    def configure(self, rate: float, pitch: float, voice_name: Optional[str] = None) -> None:
        self.command(ConfigureCommand(rate=rate, pitch=pitch, voice_name=voice_name))

    def start(self) -> None:
        if self.is_running:
            self._logger.warning("Playback host is already running")
            return
        if self._closed.is_set():
            raise RuntimeError("Playback host has been shut down")

        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name="playback-host",
        )
        self._thread.start()

    def stop(self, timeout_seconds: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            # No owner thread, so shutting down inline cannot race it.
            if not self._closed.is_set():
                self._closed.set()
                self._controller.shutdown()
            return

        self.command(ShutdownCommand())
        thread.join(timeout=timeout_seconds)
        if thread.is_alive():
            self._logger.error(
                "Playback host thread did not stop within %.1fs",
                timeout_seconds,
            )
        self._thread = None

    def run(self) -> None:
        """Drain the queue on the calling thread until shutdown."""
        self._controller.initialize()
        while True:
            event = self._poll_event()
            if event is None:
                continue
            if not self.handle_event(event):
                return

    def handle_event(self, event: Any) -> bool:
        """Apply one queued item to the controller; False once shut down."""
        try:
            return self._dispatch(event)
        except Exception as error:
            self._logger.error(
                "Failed to handle %s: %s",
                type(event).__name__,
                error,
                exc_info=True,
            )
            return not self._controller.is_shut_down

    def _poll_event(self) -> Optional[Any]:
        try:
            return self._event_queue.get(timeout=0.25)
        except Empty:
            return None

    def _dispatch(self, event: Any) -> bool:
        controller = self._controller

        if isinstance(event, StartReadingCommand):
            with self._lock:
                self._snapshot = replace(
                    self._snapshot,
                    story_id=event.story_id,
                    title=event.title,
                )
            controller.start_reading(event.story_id, event.title, event.text)
            return True

        if isinstance(event, PauseCommand):
            controller.pause()
            return True

        if isinstance(event, ResumeCommand):
            controller.resume()
            return True

        if isinstance(event, StopCommand):
            with self._lock:
                self._snapshot = replace(self._snapshot, story_id=0, title="")
            controller.stop()
            return True

        if isinstance(event, ConfigureCommand):
            controller.configure(event.rate, event.pitch, event.voice_name)
            return True

        if isinstance(event, ShutdownCommand):
            self._closed.set()
            controller.shutdown()
            return False

        if isinstance(event, EngineReadyEvent):
            controller.on_ready()
            return True

        if isinstance(event, EngineInitFailedEvent):
            controller.on_init_failed(event.message)
            return True

        if isinstance(event, UtteranceStartedEvent):
            controller.on_utterance_started(event.utterance_id)
            return True

        if isinstance(event, RangeStartEvent):
            controller.on_range_start(event.utterance_id, event.start, event.end)
            return True

        if isinstance(event, UtteranceFinishedEvent):
            controller.on_utterance_finished(event.utterance_id)
            return True

        if isinstance(event, UtteranceErrorEvent):
            controller.on_error(event.utterance_id, event.message)
            return True

        self._logger.warning("Ignoring unknown event type: %s", type(event).__name__)
        return True

    def _handle_state_change(self, state: PlaybackState) -> None:
        with self._lock:
            progress = 0 if state in _IDLE_PROGRESS_STATES else self._snapshot.progress
            self._snapshot = replace(self._snapshot, state=state, progress=progress)
            snapshot = self._snapshot
            observers = self._observers_locked()

        self._logger.info(
            "Playback state: %s (story=%s)",
            snapshot.state.value,
            snapshot.story_id,
        )
        for observer in observers:
            self._deliver(observer.on_state, snapshot)

    def _handle_progress_change(self, progress: int) -> None:
        with self._lock:
            self._snapshot = replace(self._snapshot, progress=progress)
            snapshot = self._snapshot
            observers = self._observers_locked()

        for observer in observers:
            if observer.on_progress is not None:
                self._deliver(observer.on_progress, snapshot)

    def _observers_locked(self) -> list[_Observer]:
        observers = list(self._listeners)
        if self._observer is not None:
            observers.append(self._observer)
        return observers

    def _deliver(self, callback: Callable[[PlaybackSnapshot], None], snapshot: PlaybackSnapshot) -> None:
        try:
            callback(snapshot)
        except Exception as error:
            self._logger.error("Playback observer failed: %s", error, exc_info=True)

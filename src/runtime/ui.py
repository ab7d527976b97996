from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from contracts.speech_engine import VoiceInfo
from contracts.ui_protocol import EVENT_ERROR, EVENT_PROGRESS, EVENT_VOICES, STATE_ERROR
from reader import PlaybackSnapshot, PlaybackState

from .commands import ListVoicesCommand, PlaybackCommand, parse_command
from .messages import playback_status_message, progress_message

UIReply = tuple[str, dict[str, Any]]


class UIServerLike(Protocol):
    def publish(self, event_type: str, **payload: Any) -> None:
        ...

    def publish_state(
        self,
        state: str,
        *,
        message: Optional[str] = None,
        **payload: Any,
    ) -> None:
        ...


class SessionHostLike(Protocol):
    def command(self, command: PlaybackCommand) -> None:
        ...

    def voices(self) -> list[VoiceInfo]:
        ...


class RuntimeUIPublisher:
    """Host observer that mirrors playback snapshots onto the UI server."""
    def __init__(self, ui_server: Optional[UIServerLike]):
        self._ui_server = ui_server

    def publish_snapshot(self, snapshot: PlaybackSnapshot) -> None:
        if not self._ui_server:
            return
        if snapshot.state == PlaybackState.ERROR:
            self._ui_server.publish(
                EVENT_ERROR,
                state=STATE_ERROR,
                story_id=snapshot.story_id,
                message=playback_status_message(snapshot),
            )
        self._ui_server.publish_state(
            snapshot.state.value,
            message=playback_status_message(snapshot),
            story_id=snapshot.story_id,
            title=snapshot.title,
            progress=snapshot.progress,
        )

    def publish_progress(self, snapshot: PlaybackSnapshot) -> None:
        if self._ui_server:
            self._ui_server.publish(
                EVENT_PROGRESS,
                story_id=snapshot.story_id,
                progress=snapshot.progress,
                message=progress_message(snapshot),
            )


class RuntimeUICommandRouter:
    """Websocket command handler: queues playback commands, answers voice queries."""
    def __init__(self, host: SessionHostLike):
        self._host = host

    def __call__(self, payload: Mapping[str, Any]) -> Optional[UIReply]:
        command = parse_command(payload)
        if isinstance(command, ListVoicesCommand):
            voices = [
                {"name": voice.name, "locale": voice.locale}
                for voice in self._host.voices()
            ]
            return EVENT_VOICES, {"voices": voices}
        self._host.command(command)
        return None

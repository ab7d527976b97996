"""Playback commands accepted by the session host and their wire parsing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from contracts.ui_protocol import (
    COMMAND_CONFIGURE,
    COMMAND_LIST_VOICES,
    COMMAND_PAUSE,
    COMMAND_RESUME,
    COMMAND_START,
    COMMAND_STOP,
)


class InvalidCommandError(ValueError):
    """Raised when an inbound command payload cannot be parsed."""


@dataclass(frozen=True)
class StartReadingCommand:
    story_id: int
    title: str
    text: str


@dataclass(frozen=True)
class PauseCommand:
    pass


@dataclass(frozen=True)
class ResumeCommand:
    pass


@dataclass(frozen=True)
class StopCommand:
    pass


@dataclass(frozen=True)
class ShutdownCommand:
    pass


@dataclass(frozen=True)
class ConfigureCommand:
    rate: float
    pitch: float
    voice_name: Optional[str] = None


PlaybackCommand = (
    StartReadingCommand
    | PauseCommand
    | ResumeCommand
    | StopCommand
    | ShutdownCommand
    | ConfigureCommand
)


@dataclass(frozen=True)
class ListVoicesCommand:
    """Voice query answered inline rather than queued for the controller."""


InboundCommand = PlaybackCommand | ListVoicesCommand


def parse_command(payload: Mapping[str, Any]) -> InboundCommand:
    """Build a command from a decoded websocket message.

    Shutdown is deliberately not reachable from the wire.
    """
    if not isinstance(payload, Mapping):
        raise InvalidCommandError("Command payload must be an object")

    name = payload.get("command")
    if name == COMMAND_START:
        text = payload.get("text")
        if not isinstance(text, str):
            raise InvalidCommandError("start.text must be a string")
        title = payload.get("title") or ""
        if not isinstance(title, str):
            raise InvalidCommandError("start.title must be a string")
        return StartReadingCommand(
            story_id=_as_int(payload.get("story_id", 0), "start.story_id"),
            title=title.strip(),
            text=text,
        )
    if name == COMMAND_PAUSE:
        return PauseCommand()
    if name == COMMAND_RESUME:
        return ResumeCommand()
    if name == COMMAND_STOP:
        return StopCommand()
    if name == COMMAND_CONFIGURE:
        voice_name = payload.get("voice")
        if voice_name is not None and not isinstance(voice_name, str):
            raise InvalidCommandError("configure.voice must be a string")
        return ConfigureCommand(
            rate=_as_positive_float(payload.get("rate", 1.0), "configure.rate"),
            pitch=_as_positive_float(payload.get("pitch", 1.0), "configure.pitch"),
            voice_name=voice_name or None,
        )
    if name == COMMAND_LIST_VOICES:
        return ListVoicesCommand()

    raise InvalidCommandError(f"Unknown command: {name!r}")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidCommandError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise InvalidCommandError(f"{field} must be an integer") from error
    raise InvalidCommandError(f"{field} must be an integer")


def _as_positive_float(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidCommandError(f"{field} must be a number")
    if value <= 0:
        raise InvalidCommandError(f"{field} must be positive")
    return float(value)

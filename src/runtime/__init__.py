"""Playback session host exports."""

from .commands import (
    ConfigureCommand,
    InvalidCommandError,
    ListVoicesCommand,
    PauseCommand,
    ResumeCommand,
    ShutdownCommand,
    StartReadingCommand,
    StopCommand,
    parse_command,
)
from .host import HostDependencies, PlaybackSessionHost
from .ui import RuntimeUICommandRouter, RuntimeUIPublisher

__all__ = [
    "ConfigureCommand",
    "HostDependencies",
    "InvalidCommandError",
    "ListVoicesCommand",
    "PauseCommand",
    "PlaybackSessionHost",
    "ResumeCommand",
    "RuntimeUICommandRouter",
    "RuntimeUIPublisher",
    "ShutdownCommand",
    "StartReadingCommand",
    "StopCommand",
    "parse_command",
]

"""Web UI websocket event, command, and state constants."""

from __future__ import annotations

# Websocket event types
EVENT_HELLO = "hello"
EVENT_STATE_UPDATE = "state_update"
EVENT_PROGRESS = "progress"
EVENT_ERROR = "error"
EVENT_VOICES = "voices"

# Playback states, mirroring reader.PlaybackState values
STATE_IDLE = "idle"
STATE_INITIALIZING = "initializing"
STATE_READY = "ready"
STATE_PLAYING = "playing"
STATE_PAUSED = "paused"
STATE_ERROR = "error"

# Inbound websocket commands
COMMAND_START = "start"
COMMAND_PAUSE = "pause"
COMMAND_RESUME = "resume"
COMMAND_STOP = "stop"
COMMAND_CONFIGURE = "configure"
COMMAND_LIST_VOICES = "list_voices"

STICKY_EVENT_TYPES: frozenset[str] = frozenset(
    {
        EVENT_STATE_UPDATE,
        EVENT_PROGRESS,
        EVENT_ERROR,
    }
)

STICKY_EVENT_ORDER: tuple[str, ...] = (
    EVENT_ERROR,
    EVENT_STATE_UPDATE,
    EVENT_PROGRESS,
)

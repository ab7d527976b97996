"""Public exports for text-to-speech components."""

from .adapter import PlaybackEngineAdapter
from .config import TTSConfig, TTSConfigurationError
from .engine import PiperTTSEngine, TTSError
from .output import SoundDeviceAudioOutput

__all__ = [
    "TTSConfig",
    "TTSConfigurationError",
    "TTSError",
    "PiperTTSEngine",
    "PlaybackEngineAdapter",
    "SoundDeviceAudioOutput",
]

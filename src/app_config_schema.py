"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_CONFIG_FILE = "config.toml"


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class TTSSettings:
    """Piper voice and synthesis settings from `[tts]`."""
    model_path: str = ""
    voice: str = ""
    hf_repo_id: str = ""
    hf_revision: str = "main"
    output_device: Optional[int] = None
    rate: float = 1.0
    pitch: float = 1.0
    preferred_language: str = "vi"


@dataclass(frozen=True)
class ReaderSettings:
    """Chunking and pacing settings from `[reader]`."""
    max_chunk_length: int = 3500
    title_pause_ms: int = 1000
    resume_lookback_chars: int = 100


@dataclass(frozen=True)
class UIServerSettings:
    """Built-in UI server settings from `[ui_server]`."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8765
    index_file: str = ""


@dataclass(frozen=True)
class AppConfig:
    """Complete typed runtime configuration loaded from `config.toml`."""
    tts: TTSSettings
    reader: ReaderSettings
    ui_server: UIServerSettings
    source_file: str


@dataclass(frozen=True)
class SecretConfig:
    """Environment-provided secrets kept out of `config.toml`."""
    hf_token: Optional[str]

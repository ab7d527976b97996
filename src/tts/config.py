"""Configuration model for Piper voices, synthesis tuning, and output selection."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class TTSConfigurationError(Exception):
    """Raised when TTS configuration is invalid."""


@dataclass(frozen=True)
class TTSConfig:
    """Resolved Piper voice settings and optional output-device selection."""
    model_path: str = ""
    voice: str = ""
    hf_repo_id: str = ""
    hf_revision: str = "main"
    hf_token: Optional[str] = None
    output_device_index: Optional[int] = None
    rate: float = 1.0
    pitch: float = 1.0
    preferred_language: str = ""

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise TTSConfigurationError(f"TTS rate must be positive, got: {self.rate}")
        if self.pitch <= 0:
            raise TTSConfigurationError(f"TTS pitch must be positive, got: {self.pitch}")

    @classmethod
    def from_settings(cls, settings, hf_token: Optional[str] = None) -> "TTSConfig":
        model_path = (settings.model_path or "").strip()
        voice = (getattr(settings, "voice", "") or "").strip()
        hf_repo_id = (getattr(settings, "hf_repo_id", "") or "").strip()
        hf_revision = (getattr(settings, "hf_revision", "main") or "main").strip()

        if not model_path:
            raise TTSConfigurationError("TTS model_path cannot be empty")
        if not voice:
            # Allow model_path to point straight at an .onnx voice file.
            model_path_file = Path(model_path)
            if model_path_file.suffix.lower() != ".onnx":
                raise TTSConfigurationError("TTS voice cannot be empty")
            voice = model_path_file.name
            model_path = str(model_path_file.parent)
        if not voice.endswith(".onnx"):
            voice = f"{voice}.onnx"

        return cls(
            model_path=model_path,
            voice=voice,
            hf_repo_id=hf_repo_id,
            hf_revision=hf_revision,
            hf_token=hf_token,
            output_device_index=settings.output_device,
            rate=float(getattr(settings, "rate", 1.0)),
            pitch=float(getattr(settings, "pitch", 1.0)),
            preferred_language=(getattr(settings, "preferred_language", "") or "").strip(),
        )

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Optional

import numpy as np
from huggingface_hub import hf_hub_download
from huggingface_hub.utils import HfHubHTTPError, RepositoryNotFoundError
from piper.config import SynthesisConfig
from piper.voice import PiperVoice

from contracts.speech_engine import VoiceInfo

from .config import TTSConfig


class TTSError(Exception):
    """Raised when text-to-speech processing fails."""

    pass


class PiperTTSEngine:
    """Piper voice loader and synthesizer with rate, pitch, and voice switching."""

    def __init__(
        self,
        config: TTSConfig,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._model_dir = Path(self._config.model_path).expanduser()
        model_file = self._ensure_model_files(self._config.voice)
        self._voice, self._sample_rate_hz = self._load_voice(model_file)
        self._voice_name = model_file.stem

    @property
    def voice_name(self) -> str:
        return self._voice_name

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    def list_voices(self) -> list[VoiceInfo]:
        voices: list[VoiceInfo] = []
        for model_file in sorted(self._model_dir.glob("*.onnx")):
            config_file = model_file.with_name(f"{model_file.name}.json")
            if not config_file.is_file():
                continue
            voices.append(
                VoiceInfo(
                    name=model_file.stem,
                    locale=self._read_locale(config_file, model_file.stem),
                )
            )
        return voices

    def set_voice(self, name: Optional[str]) -> bool:
        """Switch to an installed voice; unknown names keep the current voice."""
        if not name:
            return False
        stem = name[: -len(".onnx")] if name.endswith(".onnx") else name
        if stem == self._voice_name:
            return True
        if stem not in {voice.name for voice in self.list_voices()}:
            self._logger.warning("Voice %s not installed, keeping %s", stem, self._voice_name)
            return False

        self._voice, self._sample_rate_hz = self._load_voice(self._model_dir / f"{stem}.onnx")
        self._voice_name = stem
        self._logger.info("Switched Piper voice to %s", stem)
        return True

    def synthesize(
        self,
        text: str,
        *,
        rate: float = 1.0,
        pitch: float = 1.0,
    ) -> tuple[np.ndarray, int]:
        """Synthesize `text` and return mono float32 samples with their playback rate.

        Pitch is applied by playing back at `pitch` times the native sample
        rate while stretching the synthesized length by the same factor.
        """
        if not text.strip():
            raise TTSError("Text to synthesize cannot be empty")
        if rate <= 0 or pitch <= 0:
            raise TTSError(f"Rate and pitch must be positive (rate={rate}, pitch={pitch})")

        syn_config = SynthesisConfig(length_scale=pitch / rate)
        try:
            audio_chunks: list[bytes] = []
            for chunk in self._voice.synthesize(text, syn_config=syn_config):
                audio_chunks.append(self._extract_chunk_bytes(chunk))

            # Punctuation-only text can synthesize to silence; callers skip empty buffers.
            pcm_int16 = np.frombuffer(b"".join(audio_chunks), dtype=np.int16)

            wav = pcm_int16.astype(np.float32) / 32768.0
            return wav, int(round(self._sample_rate_hz * pitch))
        except TTSError:
            raise
        except Exception as error:
            raise TTSError(f"TTS synthesis failed: {error}") from error

    def close(self) -> None:
        self._voice = None

    def _load_voice(self, model_file: Path) -> tuple[Any, int]:
        try:
            voice = PiperVoice.load(str(model_file))
            return voice, int(voice.config.sample_rate)
        except Exception as error:
            raise TTSError(f"Failed to load Piper voice {model_file.name}: {error}") from error

    @staticmethod
    def _read_locale(config_file: Path, stem: str) -> str:
        try:
            data = json.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            data = {}
        language = data.get("language") if isinstance(data, dict) else None
        if isinstance(language, dict) and language.get("code"):
            return str(language["code"])
        # Piper voice names start with the locale, e.g. vi_VN-vais1000-medium.
        return stem.split("-", 1)[0]

    def _ensure_model_files(self, filename: str) -> Path:
        model_dir = self._model_dir
        model_file = model_dir / filename
        config_file = model_dir / f"{filename}.json"

        try:
            model_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise TTSError(
                f"Failed to create TTS model directory {model_dir}: {error}"
            ) from error

        if model_file.is_file() and config_file.is_file():
            return model_file

        missing_assets: list[str] = []
        if not model_file.is_file():
            missing_assets.append(model_file.name)
        if not config_file.is_file():
            missing_assets.append(config_file.name)

        repo_id = self._config.hf_repo_id.strip()
        if not repo_id:
            raise TTSError(
                "Piper voice assets are missing: "
                f"{', '.join(missing_assets)}. "
                "Provide the files in tts.model_path or set tts.hf_repo_id for auto-download."
            )

        self._logger.info(
            "Piper voice assets not found locally (%s), downloading from %s into %s",
            ", ".join(missing_assets),
            repo_id,
            model_dir,
        )

        for asset in (filename, f"{filename}.json"):
            self._download_and_install_file(
                repo_id=repo_id,
                filename=asset,
                target_path=model_dir / asset,
            )

        if not model_file.is_file() or not config_file.is_file():
            raise TTSError(
                "Downloaded Piper assets are incomplete. "
                f"Expected {model_file.name} and {config_file.name} in {model_dir}."
            )

        return model_file

    def _download_and_install_file(
        self,
        *,
        repo_id: str,
        filename: str,
        target_path: Path,
    ) -> None:
        try:
            downloaded_path = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=filename,
                    revision=self._config.hf_revision,
                    token=self._config.hf_token,
                )
            )
        except RepositoryNotFoundError as error:
            raise TTSError(
                f"Piper Hugging Face repository not found: {repo_id}"
            ) from error
        except HfHubHTTPError as error:
            if "404" in str(error):
                raise TTSError(
                    f"Piper asset not found in {repo_id}: {filename}"
                ) from error
            raise TTSError(
                f"HTTP error downloading Piper asset {filename} from {repo_id}: {error}"
            ) from error
        except Exception as error:
            raise TTSError(
                f"Failed to download Piper asset {filename} from {repo_id}: {error}"
            ) from error

        if not downloaded_path.is_file():
            raise TTSError(f"Downloaded Piper asset is not a file: {downloaded_path}")

        self._install_file(downloaded_path, target_path)

    @staticmethod
    def _install_file(source_path: Path, target_path: Path) -> None:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target_path.with_suffix(f"{target_path.suffix}.tmp")
        try:
            if temp_path.exists():
                temp_path.unlink()

            try:
                temp_path.hardlink_to(source_path)
            except (OSError, NotImplementedError):
                shutil.copy2(source_path, temp_path)

            temp_path.replace(target_path)
        except OSError as error:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass
            raise TTSError(
                f"Failed to install Piper asset {target_path.name}: {error}"
            ) from error

    @staticmethod
    def _extract_chunk_bytes(chunk: Any) -> bytes:
        if hasattr(chunk, "audio_int16_bytes"):
            raw_audio = chunk.audio_int16_bytes
        elif hasattr(chunk, "audio_data"):
            raw_audio = chunk.audio_data
        else:
            raw_audio = chunk

        if isinstance(raw_audio, np.ndarray):
            if raw_audio.dtype != np.int16:
                raw_audio = raw_audio.astype(np.int16, copy=False)
            return raw_audio.tobytes()
        if isinstance(raw_audio, (bytes, bytearray)):
            return bytes(raw_audio)
        if isinstance(raw_audio, memoryview):
            return raw_audio.tobytes()

        try:
            return bytes(raw_audio)
        except Exception as error:
            raise TTSError(
                f"Unsupported Piper chunk audio type: {type(raw_audio).__name__}"
            ) from error

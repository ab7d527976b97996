"""Typed parser for config.toml sections into immutable app settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from app_config_schema import (
    AppConfig,
    AppConfigurationError,
    ReaderSettings,
    TTSSettings,
    UIServerSettings,
)


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Parse raw TOML mappings into strongly typed application settings."""
    tts = _parse_tts_settings(_section(raw, "tts"), base_dir=base_dir)
    reader = _parse_reader_settings(_section(raw, "reader"))
    ui_server = _parse_ui_server_settings(_section(raw, "ui_server"), base_dir=base_dir)

    return AppConfig(
        tts=tts,
        reader=reader,
        ui_server=ui_server,
        source_file=source_file,
    )


def _parse_tts_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> TTSSettings:
    _forbid_secret_fields(section, "tts", ("hf_token",))
    return TTSSettings(
        model_path=_resolve_path(
            base_dir,
            _as_str(section.get("model_path", ""), "tts.model_path"),
        ),
        voice=_as_str(section.get("voice", ""), "tts.voice"),
        hf_repo_id=_as_str(section.get("hf_repo_id", ""), "tts.hf_repo_id"),
        hf_revision=(
            _as_str(section.get("hf_revision", "main"), "tts.hf_revision") or "main"
        ),
        output_device=(
            _as_int(section.get("output_device"), "tts.output_device")
            if "output_device" in section
            else None
        ),
        rate=_as_positive_float(section.get("rate", 1.0), "tts.rate"),
        pitch=_as_positive_float(section.get("pitch", 1.0), "tts.pitch"),
        preferred_language=_as_str(
            section.get("preferred_language", "vi"),
            "tts.preferred_language",
        ),
    )


def _parse_reader_settings(section: Mapping[str, Any]) -> ReaderSettings:
    max_chunk_length = _as_int(
        section.get("max_chunk_length", 3500),
        "reader.max_chunk_length",
    )
    if max_chunk_length < 1:
        raise AppConfigurationError("reader.max_chunk_length must be at least 1.")

    title_pause_ms = _as_int(section.get("title_pause_ms", 1000), "reader.title_pause_ms")
    resume_lookback_chars = _as_int(
        section.get("resume_lookback_chars", 100),
        "reader.resume_lookback_chars",
    )
    if title_pause_ms < 0 or resume_lookback_chars < 0:
        raise AppConfigurationError(
            "reader.title_pause_ms and reader.resume_lookback_chars cannot be negative."
        )

    return ReaderSettings(
        max_chunk_length=max_chunk_length,
        title_pause_ms=title_pause_ms,
        resume_lookback_chars=resume_lookback_chars,
    )


def _parse_ui_server_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> UIServerSettings:
    index_file = _as_str(section.get("index_file", ""), "ui_server.index_file")
    return UIServerSettings(
        enabled=_as_bool(section.get("enabled", False), "ui_server.enabled"),
        host=_as_str(section.get("host", "127.0.0.1"), "ui_server.host"),
        port=_as_int(section.get("port", 8765), "ui_server.port"),
        index_file=_resolve_path(base_dir, index_file) if index_file else "",
    )


def _section(root: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{name}] must be a table.")
    return raw


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")

def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")

def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be a float.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be a float.") from error
    raise AppConfigurationError(f"{field} must be a float.")

def _as_positive_float(value: Any, field: str) -> float:
    number = _as_float(value, field)
    if number <= 0:
        raise AppConfigurationError(f"{field} must be greater than zero.")
    return number

def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)

def _forbid_secret_fields(
    section: Mapping[str, Any],
    section_name: str,
    fields: tuple[str, ...],
) -> None:
    present = [field for field in fields if field in section]
    if present:
        joined = ", ".join(f"{section_name}.{field}" for field in present)
        raise AppConfigurationError(
            f"Secret values must not be stored in config.toml: {joined}. "
            "Move them to environment variables."
        )

"""Environment configuration for the live assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


LIVE_ENDPOINT = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, None)
    if value is None:
        return default
    stripped = value.strip()
    if stripped == "":
        return default
    return stripped


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(float(value))
    except ValueError as exc:
        raise ValueError(f"Environment value for {name!r} must be an integer") from exc


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment value for {name!r} must be a float") from exc


def _get_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    lowered = value.strip().lower()
    if lowered in {"none", "null", "default", "auto"}:
        return None
    try:
        return int(float(value))
    except ValueError as exc:
        raise ValueError(f"Environment value for {name!r} must be an integer") from exc


@dataclass(frozen=True)
class LiveConfig:
    endpoint: str
    model: str
    voice: Optional[str]
    # Seconds to wait for the websocket handshake and for setupComplete
    connect_timeout: float
    setup_timeout: float
    instructions_prompt: str


@dataclass(frozen=True)
class AudioInputConfig:
    sample_rate: int
    block_size: int
    device_name: Optional[str]
    device_index: Optional[int]


@dataclass(frozen=True)
class AudioOutputConfig:
    sample_rate: int
    device_name: Optional[str]
    device_index: Optional[int]


@dataclass(frozen=True)
class AppPaths:
    data_dir: Path
    settings_file: Path


@dataclass(frozen=True)
class AppConfig:
    live: LiveConfig
    audio_input: AudioInputConfig
    audio_output: AudioOutputConfig
    paths: AppPaths

    def validate(self) -> None:
        if not self.live.endpoint.startswith(("ws://", "wss://")):
            raise ValueError("LIVE_ENDPOINT must be a ws:// or wss:// URL.")
        if not self.live.model:
            raise ValueError("LIVE_MODEL must be set.")
        if self.live.connect_timeout <= 0 or self.live.setup_timeout <= 0:
            raise ValueError("LIVE_CONNECT_TIMEOUT and LIVE_SETUP_TIMEOUT must be positive.")
        if self.audio_input.sample_rate <= 0 or self.audio_output.sample_rate <= 0:
            raise ValueError("Audio sample rates must be positive.")
        if self.audio_input.block_size <= 0:
            raise ValueError("INPUT_BLOCK_SIZE must be positive.")


INSTRUCTIONS_PROMPT = (
    "You are GoalForge AI, an expert project manager. "
    "Your role is to assist the user in modifying their project plan. "
    "Use tools to add, edit, or complete tasks. "
    "Keep spoken responses concise."
)


def load_config() -> AppConfig:
    data_dir = Path(_get_env("GOALFORGE_DATA_DIR", "~/.local/share/goalforge") or "~/.local/share/goalforge").expanduser()
    settings_raw = _get_env("GOALFORGE_SETTINGS_FILE")
    settings_file = Path(settings_raw).expanduser() if settings_raw else data_dir / "settings.yaml"

    config = AppConfig(
        live=LiveConfig(
            endpoint=_get_env("LIVE_ENDPOINT", LIVE_ENDPOINT) or LIVE_ENDPOINT,
            model=_get_env("LIVE_MODEL", DEFAULT_LIVE_MODEL) or DEFAULT_LIVE_MODEL,
            voice=_get_env("LIVE_VOICE"),
            connect_timeout=_get_float("LIVE_CONNECT_TIMEOUT", 10.0),
            setup_timeout=_get_float("LIVE_SETUP_TIMEOUT", 10.0),
            instructions_prompt=_get_env("LIVE_INSTRUCTIONS_PROMPT", INSTRUCTIONS_PROMPT) or INSTRUCTIONS_PROMPT,
        ),
        audio_input=AudioInputConfig(
            sample_rate=_get_int("INPUT_SAMPLE_RATE", 16000),
            block_size=_get_int("INPUT_BLOCK_SIZE", 4096),
            device_name=_get_env("MIC_DEVICE_NAME"),
            device_index=_get_optional_int("MIC_DEVICE_INDEX"),
        ),
        audio_output=AudioOutputConfig(
            sample_rate=_get_int("OUTPUT_SAMPLE_RATE", 24000),
            device_name=_get_env("SPEAKER_DEVICE_NAME"),
            device_index=_get_optional_int("SPEAKER_DEVICE_INDEX"),
        ),
        paths=AppPaths(
            data_dir=data_dir,
            settings_file=settings_file,
        ),
    )
    config.validate()
    return config

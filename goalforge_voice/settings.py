"""Provider settings persisted as YAML."""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


logger = logging.getLogger(__name__)

LIVE_PROVIDER = "gemini"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "activeProvider": "gemini",
    "providers": {
        "gemini": {"apiKey": "", "model": "gemini-2.5-pro"},
        "openai": {"apiKey": "", "model": "gpt-4o"},
        "anthropic": {"apiKey": "", "model": "claude-3-opus-20240229"},
        "openrouter": {"apiKey": "", "model": "anthropic/claude-3-haiku"},
        "groq": {"apiKey": "", "model": "llama3-8b-8192"},
    },
    "googleClientId": "",
}


def _merge_defaults(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = copy.deepcopy(DEFAULT_SETTINGS)
    if not isinstance(raw, dict):
        return merged
    for key, value in raw.items():
        if key == "providers" and isinstance(value, dict):
            for name, provider in value.items():
                if isinstance(provider, dict):
                    merged["providers"].setdefault(name, {}).update(provider)
        else:
            merged[key] = value
    return merged


@dataclass
class SettingsStore:
    """Settings document with a credential accessor for the Live session.

    The Live API is always served by the gemini provider, regardless of
    which provider is active for plan generation.
    """

    data: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS))
    path: Optional[Path] = None

    @classmethod
    def load(cls, path: Path, env_api_key: Optional[str] = None) -> "SettingsStore":
        raw = _load_yaml(path)
        data = _merge_defaults(raw)
        if env_api_key and not data["providers"][LIVE_PROVIDER].get("apiKey"):
            data["providers"][LIVE_PROVIDER]["apiKey"] = env_api_key
            logger.info("Settings: gemini credential taken from environment.")
        return cls(data=data, path=path)

    @classmethod
    def from_env(cls, path: Path) -> "SettingsStore":
        return cls.load(path, env_api_key=(os.getenv("GEMINI_API_KEY") or "").strip() or None)

    def provider(self, name: str) -> Dict[str, Any]:
        return dict(self.data["providers"].get(name) or {})

    def get_active_credential(self) -> Optional[str]:
        key = self.provider(LIVE_PROVIDER).get("apiKey")
        if not isinstance(key, str) or not key.strip():
            return None
        return key.strip()

    def set_api_key(self, provider: str, api_key: str) -> None:
        self.data["providers"].setdefault(provider, {})["apiKey"] = api_key

    def save(self) -> None:
        if self.path is None:
            raise ValueError("Settings have no backing file.")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(self.data, f, sort_keys=False)


def _load_yaml(path: Path):
    try:
        if path.exists():
            with path.open("r", encoding="utf-8") as f:
                return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Settings: failed to read %s (%s); using defaults.", path, exc)
        return None
    return None

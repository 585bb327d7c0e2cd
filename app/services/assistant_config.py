"""Assistant settings resolved from config.json and the environment."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_SESSION_MODEL = "gemini-2.0-flash-exp"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"


@dataclass
class AssistantSettings:
    session_model: str = DEFAULT_SESSION_MODEL
    response_modalities: list[str] = field(default_factory=lambda: ["TEXT"])
    voice_name: str = "Leda"
    turn_timeout_seconds: float = 120.0
    poll_interval_seconds: float = 0.1
    compression_trigger_tokens: int = 25600
    compression_target_tokens: int = 12800


class AssistantConfig:
    """Reads assistant configuration on every access.

    - providers.gemini: api_key and base_url
    - assistant: session model, response modalities, voice, turn timeout
      and context compression thresholds
    The API key falls back to the GEMINI_API_KEY environment variable.
    """

    def __init__(self, config_path: str) -> None:
        self._config_path = config_path
        self._logger = logging.getLogger("assistant.config")

    def _read_config(self) -> dict:
        """Read config from file, returning empty dict if not found."""
        if not os.path.exists(self._config_path):
            return {}
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.warning("Failed to read config %s: %s", self._config_path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _get_provider_config(self) -> dict:
        providers = self._read_config().get("providers", {})
        gemini = providers.get("gemini", {}) if isinstance(providers, dict) else {}
        return gemini if isinstance(gemini, dict) else {}

    def api_key(self) -> Optional[str]:
        key = self._get_provider_config().get("api_key") or os.environ.get("GEMINI_API_KEY")
        return key or None

    def base_url(self) -> str:
        return self._get_provider_config().get("base_url") or DEFAULT_GEMINI_BASE_URL

    def is_configured(self) -> bool:
        return self.api_key() is not None

    def settings(self) -> AssistantSettings:
        raw = self._read_config().get("assistant", {})
        if not isinstance(raw, dict):
            raw = {}
        defaults = AssistantSettings()
        modalities = raw.get("response_modalities")
        if not isinstance(modalities, list) or not modalities:
            modalities = defaults.response_modalities
        return AssistantSettings(
            session_model=str(raw.get("session_model") or defaults.session_model),
            response_modalities=[str(m).upper() for m in modalities],
            voice_name=str(raw.get("voice_name") or defaults.voice_name),
            turn_timeout_seconds=float(
                raw.get("turn_timeout_seconds", defaults.turn_timeout_seconds)
            ),
            poll_interval_seconds=float(
                raw.get("poll_interval_seconds", defaults.poll_interval_seconds)
            ),
            compression_trigger_tokens=int(
                raw.get("compression_trigger_tokens", defaults.compression_trigger_tokens)
            ),
            compression_target_tokens=int(
                raw.get("compression_target_tokens", defaults.compression_target_tokens)
            ),
        )

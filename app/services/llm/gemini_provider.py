"""Gemini LLM provider using Google's Generative Language REST API."""
from __future__ import annotations

import json
from typing import Generator

import requests

from app.services.llm.base import BaseLLMProvider, LLMProviderError


class GeminiProvider(BaseLLMProvider):
    """LLM provider for Google Gemini models."""

    def __init__(
        self, api_key: str, model: str, base_url: str = "https://generativelanguage.googleapis.com"
    ) -> None:
        super().__init__(logger_name="assistant.llm.gemini")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")

    @property
    def model(self) -> str:
        return self._model

    def _model_url(self, method: str) -> str:
        # Handle model name format (may include "models/" prefix)
        model_name = self._model
        if not model_name.startswith("models/"):
            model_name = f"models/{model_name}"
        return f"{self._base_url}/v1beta/{model_name}:{method}"

    @staticmethod
    def _candidate_parts(data: dict) -> list[dict]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        return [part for part in parts if isinstance(part, dict)]

    def _call_api(self, body: dict, timeout: int = 120) -> list[dict]:
        """Make a call to the Gemini API and return the reply parts."""
        try:
            response = requests.post(
                self._model_url("generateContent"),
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                json=body,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Gemini API") from exc

        if response.status_code != 200:
            self._logger.error("Gemini error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"Gemini error: {response.status_code}")

        data = response.json()
        if not data.get("candidates"):
            raise LLMProviderError("Gemini response missing candidates")
        parts = self._candidate_parts(data)
        if not parts:
            raise LLMProviderError("Gemini response missing parts")
        return parts

    def _call_api_stream(self, body: dict, timeout: int = 120) -> Generator[list[dict], None, None]:
        """Stream a Gemini reply over server-sent events, yielding chunk parts."""
        try:
            response = requests.post(
                self._model_url("streamGenerateContent"),
                params={"key": self._api_key, "alt": "sse"},
                headers={"Content-Type": "application/json"},
                json=body,
                timeout=timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Gemini API") from exc

        if response.status_code != 200:
            self._logger.error("Gemini stream error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"Gemini error: {response.status_code}")

        try:
            for line in response.iter_lines():
                if not line:
                    continue
                line_str = line.decode("utf-8") if isinstance(line, bytes) else line
                if not line_str.startswith("data: "):
                    continue
                try:
                    data = json.loads(line_str[6:])
                except json.JSONDecodeError:
                    continue
                if "error" in data:
                    message = data["error"].get("message", "unknown error")
                    raise LLMProviderError(f"Gemini stream error: {message}")
                parts = self._candidate_parts(data)
                if parts:
                    yield parts
        except requests.RequestException as exc:
            raise LLMProviderError("Gemini stream interrupted") from exc
        finally:
            response.close()

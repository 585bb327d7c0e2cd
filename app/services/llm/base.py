from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Generator, Optional


class LLMProviderError(RuntimeError):
    pass


class LLMProvider(ABC):
    @abstractmethod
    def generate(
        self,
        contents: list[dict],
        system_instruction: Optional[str] = None,
        generation_config: Optional[dict] = None,
    ) -> list[dict]:
        """Send a conversation and return the reply parts."""
        raise NotImplementedError

    @abstractmethod
    def generate_stream(
        self,
        contents: list[dict],
        system_instruction: Optional[str] = None,
        generation_config: Optional[dict] = None,
    ) -> Generator[list[dict], None, None]:
        """Stream a reply, yielding the parts of each chunk as they arrive."""
        raise NotImplementedError


class BaseLLMProvider(LLMProvider):
    """Base implementation with shared request shaping.

    Subclasses implement _call_api() and, when the API can stream,
    _call_api_stream() for their specific API client.
    """

    def __init__(self, logger_name: str = "assistant.llm") -> None:
        self._logger = logging.getLogger(logger_name)

    @abstractmethod
    def _call_api(self, body: dict, timeout: int = 120) -> list[dict]:
        """Make an API call and return the reply parts."""
        raise NotImplementedError

    def _call_api_stream(self, body: dict, timeout: int = 120) -> Generator[list[dict], None, None]:
        """Make a streaming API call, yielding chunk parts as they arrive.

        Default implementation falls back to non-streaming.
        """
        yield self._call_api(body, timeout)

    @staticmethod
    def _build_body(
        contents: list[dict],
        system_instruction: Optional[str] = None,
        generation_config: Optional[dict] = None,
    ) -> dict:
        body: dict = {"contents": contents}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if generation_config:
            body["generationConfig"] = generation_config
        return body

    def generate(
        self,
        contents: list[dict],
        system_instruction: Optional[str] = None,
        generation_config: Optional[dict] = None,
    ) -> list[dict]:
        body = self._build_body(contents, system_instruction, generation_config)
        return self._call_api(body, timeout=120)

    def generate_stream(
        self,
        contents: list[dict],
        system_instruction: Optional[str] = None,
        generation_config: Optional[dict] = None,
    ) -> Generator[list[dict], None, None]:
        body = self._build_body(contents, system_instruction, generation_config)
        yield from self._call_api_stream(body, timeout=120)

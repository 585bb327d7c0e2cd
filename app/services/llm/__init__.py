from app.services.llm.base import BaseLLMProvider, LLMProvider, LLMProviderError
from app.services.llm.gemini_provider import GeminiProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProvider",
    "LLMProviderError",
    "GeminiProvider",
]

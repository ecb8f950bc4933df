"""Convenience exports for the model service clients."""

from .llm_client import (
    LLMClient,
    LLMClientError,
    LLMRequest,
    LLMResponseFormatError,
    LLMTransportError,
)
from .ollama import OllamaClient
from .openai_chat import OpenAIChatClient
from .static import StaticResponseClient

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMTransportError",
    "OllamaClient",
    "OpenAIChatClient",
    "StaticResponseClient",
]

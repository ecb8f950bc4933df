"""OpenAI chat-completions client."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

from .llm_client import LLMClient, LLMRequest, Transport

__all__ = ["DEFAULT_OPENAI_MODEL", "OpenAIChatClient"]

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class OpenAIChatClient(LLMClient):
    """Thin adapter around the chat completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        model: str = DEFAULT_OPENAI_MODEL,
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(model=model, base_url=base_url, transport=transport, timeout=timeout)
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        timeout_override = os.getenv("HEALER_MODEL_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    self._timeout = parsed
            except ValueError:
                pass

        if transport is None and not self._api_key:
            raise ValueError("Missing OPENAI_API_KEY: an API key is required when using the default transport.")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model or self._model,
            "messages": request.messages(),
            "temperature": request.temperature,
        }
        if request.metadata:
            payload["metadata"] = {str(key): str(value) for key, value in request.metadata.items()}
        return payload

    def _extract_text(self, raw_response: str) -> Optional[str]:
        data = self._parse_json(raw_response)
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        message = first.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        text = first.get("text")
        return text if isinstance(text, str) else None

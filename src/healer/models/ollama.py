"""Local Ollama client using the non-streaming ``/api/generate`` endpoint."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

from .llm_client import LLMClient, LLMRequest, Transport

__all__ = ["DEFAULT_OLLAMA_MODEL", "DEFAULT_OLLAMA_URL", "OllamaClient"]

DEFAULT_OLLAMA_MODEL = "codellama:7b"
DEFAULT_OLLAMA_URL = "http://localhost:11434/api/generate"


class OllamaClient(LLMClient):
    def __init__(
        self,
        *,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: Optional[str] = None,
        transport: Optional[Transport] = None,
        timeout: float = 120.0,
    ) -> None:
        resolved = model or os.getenv("OLLAMA_MODEL") or DEFAULT_OLLAMA_MODEL
        super().__init__(model=resolved, base_url=base_url, transport=transport, timeout=timeout)

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model or self._model,
            "prompt": request.prompt,
            "stream": False,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if request.temperature:
            payload["options"] = {"temperature": request.temperature}
        return payload

    def _extract_text(self, raw_response: str) -> Optional[str]:
        data = self._parse_json(raw_response)
        if not isinstance(data, dict):
            return None
        text = data.get("response")
        return text if isinstance(text, str) else None

"""Client base class shared by all language-model integrations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMTransportError",
    "Transport",
]

LOGGER = logging.getLogger(__name__)

Transport = Callable[[Dict[str, Any]], str]


class LLMClientError(RuntimeError):
    """Base error raised for model service failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the service replies without any usable completion text."""


@dataclass(slots=True)
class LLMRequest:
    """Text completion request sent to a model service."""

    prompt: str
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def messages(self) -> list[Dict[str, str]]:
        """Render chat-style messages, system prompt first."""
        messages: list[Dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})
        return messages


class LLMClient:
    """Text-in/text-out helper around a model service.

    Subclasses render the provider payload in :meth:`_build_payload`, pull the
    completion text out of the raw reply in :meth:`_extract_text`, and may
    override :meth:`_raw_invoke` when they do not speak JSON over HTTP.
    Calls are made once; failures surface as :class:`LLMClientError`.
    """

    def __init__(
        self,
        model: str,
        *,
        base_url: str = "",
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
    ) -> None:
        self._model = model
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport or self._http_transport

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    def complete(self, prompt: str, *, system_prompt: Optional[str] = None) -> str:
        """Send ``prompt`` and return the trimmed completion text."""
        return self.invoke(LLMRequest(prompt=prompt, system_prompt=system_prompt))

    def invoke(self, request: LLMRequest) -> str:
        payload = self._build_payload(request)
        LOGGER.info("Calling model %s", request.model or self._model)
        raw = self._raw_invoke(payload)
        text = self._extract_text(raw)
        if text is None or not text.strip():
            raise LLMResponseFormatError(f"{type(self).__name__} returned no completion text.")
        return text.strip()

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        raise NotImplementedError("Subclasses must implement _build_payload().")

    def _extract_text(self, raw_response: str) -> Optional[str]:
        raise NotImplementedError("Subclasses must implement _extract_text().")

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        try:
            return self._transport(payload)
        except LLMClientError:
            raise
        except Exception as error:
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default transport: POST ``payload`` as JSON to ``base_url``."""
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._base_url, data=data, headers=self._headers(), method="POST")

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Model service at {self._base_url} timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach {self._base_url}: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")
        return raw.decode("utf-8")

    @staticmethod
    def _parse_json(raw_response: str) -> Any:
        """Parse a JSON reply body and normalise errors."""
        text = raw_response.strip()
        if not text:
            raise LLMResponseFormatError("Model service returned an empty response.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            raise LLMResponseFormatError(f"Model service returned invalid JSON: {text[:200]}") from error

"""Offline client that replays a saved model reply."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from .llm_client import LLMClient, LLMClientError, LLMRequest

__all__ = ["StaticResponseClient"]


class StaticResponseClient(LLMClient):
    """Return the same canned reply for every request.

    Used for the ``offline`` provider and for replaying a reply captured from
    an earlier run.  Requests are recorded on :attr:`requests`.
    """

    def __init__(self, response: Optional[str] = None, *, model: str = "offline") -> None:
        super().__init__(model=model, transport=self._replay)
        self._response = response
        self.requests: list[LLMRequest] = []

    @classmethod
    def from_file(cls, path: Path | str) -> "StaticResponseClient":
        response_path = Path(path)
        try:
            return cls(response_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as error:
            raise LLMClientError(f"Unable to read saved response {response_path}: {error}") from error

    def invoke(self, request: LLMRequest) -> str:
        self.requests.append(request)
        return super().invoke(request)

    def _build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        return {"model": request.model or self._model, "prompt": request.prompt}

    def _replay(self, payload: Dict[str, Any]) -> str:
        if self._response is None:
            raise LLMClientError("No offline response configured; pass --response-file or pick a model provider.")
        return self._response

    def _extract_text(self, raw_response: str) -> Optional[str]:
        return raw_response

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from healer.models import (
    LLMClientError,
    LLMResponseFormatError,
    LLMTransportError,
    OllamaClient,
    OpenAIChatClient,
    StaticResponseClient,
)


def test_openai_client_sends_system_prompt_first() -> None:
    payloads: List[Dict[str, Any]] = []

    def transport(payload: Dict[str, Any]) -> str:
        payloads.append(payload)
        return json.dumps({"choices": [{"message": {"role": "assistant", "content": "  fixed  "}}]})

    client = OpenAIChatClient(model="gpt-4o-mini", transport=transport)

    assert client.complete("fix it", system_prompt="be terse") == "fixed"
    (payload,) = payloads
    assert payload["model"] == "gpt-4o-mini"
    assert payload["messages"] == [
        {"role": "system", "content": "be terse"},
        {"role": "user", "content": "fix it"},
    ]


def test_openai_client_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        OpenAIChatClient()


def test_openai_client_rejects_empty_choices() -> None:
    client = OpenAIChatClient(transport=lambda payload: json.dumps({"choices": []}))

    with pytest.raises(LLMResponseFormatError):
        client.complete("fix it")


def test_ollama_client_builds_generate_payload() -> None:
    payloads: List[Dict[str, Any]] = []

    def transport(payload: Dict[str, Any]) -> str:
        payloads.append(payload)
        return json.dumps({"model": payload["model"], "response": "```js\nreturn 1;\n```", "done": True})

    client = OllamaClient(model="codellama:7b", transport=transport)

    assert client.complete("prompt", system_prompt="system") == "```js\nreturn 1;\n```"
    assert payloads[0] == {"model": "codellama:7b", "prompt": "prompt", "stream": False, "system": "system"}


def test_transport_failures_become_client_errors() -> None:
    def broken(payload: Dict[str, Any]) -> str:
        raise ConnectionError("connection refused")

    client = OllamaClient(transport=broken)

    with pytest.raises(LLMTransportError, match="connection refused"):
        client.complete("prompt")
    with pytest.raises(LLMResponseFormatError):
        OllamaClient(transport=lambda payload: "not json").complete("prompt")


def test_static_client_replays_and_records(tmp_path: Path) -> None:
    saved = tmp_path / "reply.md"
    saved.write_text("```python\nx = 1\n```\n", encoding="utf-8")

    client = StaticResponseClient.from_file(saved)

    assert client.complete("first") == "```python\nx = 1\n```"
    assert [request.prompt for request in client.requests] == ["first"]


def test_static_client_without_reply_fails(tmp_path: Path) -> None:
    with pytest.raises(LLMClientError):
        StaticResponseClient().complete("prompt")
    with pytest.raises(LLMClientError):
        StaticResponseClient.from_file(tmp_path / "missing.md")

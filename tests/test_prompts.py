from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from healer.analysis.findings import BugFinding, Severity
from healer.analysis.registry import build_default_registry
from healer.prompts import CODE_BLOCK_INSTRUCTION, build_repair_prompt
from healer.telemetry import emit_event


def test_language_prompt_embeds_code_failure_and_common_issues() -> None:
    profile = build_default_registry().profile_for("javascript")

    prompt = build_repair_prompt(profile, "function sum(a) {}", "Expected 6, received 7")

    assert prompt.startswith("You are an expert javascript developer.")
    assert "**Language:** javascript" in prompt
    assert "**Common javascript bugs to check for:** null reference, undefined variable" in prompt
    assert "```javascript\nfunction sum(a) {}\n```" in prompt
    assert "**Test Output:**\n```\nExpected 6, received 7\n```" in prompt
    assert CODE_BLOCK_INSTRUCTION in prompt
    assert "4. Ensure the fix follows javascript best practices" in prompt


def test_generic_prompt_without_profile() -> None:
    prompt = build_repair_prompt(None, "x = 1", "boom")

    assert prompt.startswith("You are an expert programmer.")
    assert "**Language:**" not in prompt
    assert "4. Ensure" not in prompt


def test_findings_are_listed_as_hints() -> None:
    profile = build_default_registry().profile_for("python")
    finding = BugFinding(
        name="Unsafe File Operation",
        severity=Severity.ERROR,
        description="Potential unsafe file operation detected",
        path=Path("io.py"),
        line=3,
    )

    prompt = build_repair_prompt(profile, "data = open(path)", "failed", findings=[finding])

    assert "**Static analysis hints:**\n- Unsafe File Operation (line 3)" in prompt
    assert "# Your fixed code here" in prompt


def test_emit_event_writes_json(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="healer.telemetry")

    emit_event("patch_applied", path=Path("src/app.js"), kinds=("fragment",), bytes_written=12)

    (record,) = [record for record in caplog.records if record.name == "healer.telemetry"]
    payload = json.loads(record.getMessage())
    assert payload["event"] == "patch_applied"
    assert payload["path"] == "src/app.js"
    assert payload["kinds"] == ["fragment"]
    assert "timestamp" in payload

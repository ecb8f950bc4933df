from __future__ import annotations

import json
import shutil
import textwrap
from pathlib import Path
from typing import List

import pytest

from conftest import BROKEN_CALC, FIXED_CALC_RESPONSE, CalcProject
from healer.analysis.findings import Concern
from healer.analysis.registry import build_default_registry
from healer.analysis.scanner import FilesystemError, scan_project
from healer.models import StaticResponseClient
from healer.orchestrator import HealingSettings, HealingState, Orchestrator, select_target


def _states(run) -> List[str]:
    return [state.value for state in run.history]


def test_failing_suite_is_healed(calc_project: CalcProject) -> None:
    client = StaticResponseClient(FIXED_CALC_RESPONSE)
    orchestrator = Orchestrator.from_config(calc_project.config(), client=client)

    run = orchestrator.heal(calc_project.root)

    assert run.state is HealingState.HEALED
    assert run.ok
    assert _states(run) == [
        "idle",
        "testing-baseline",
        "analyzing",
        "awaiting-patch",
        "patch-proposed",
        "applied",
        "retesting",
        "healed",
    ]
    assert run.target == calc_project.target.resolve()
    assert run.language == "python"
    assert run.baseline is not None and not run.baseline.passed
    assert run.retest is not None and run.retest.passed
    assert run.patch is not None and run.patch.kind == "fragment"
    assert calc_project.target.read_text(encoding="utf-8") == "# calc.py\ndef add(a, b):\n    return a + b\n"

    (request,) = client.requests
    assert "**Language:** python" in request.prompt
    assert "def add(a, b):\n    return a - b" in request.prompt
    assert "test_add_returns_sum" in request.prompt


def test_rejected_patch_leaves_target_unchanged(calc_project: CalcProject) -> None:
    seen: List[str] = []

    def decline(response: str) -> bool:
        seen.append(response)
        return False

    orchestrator = Orchestrator.from_config(
        calc_project.config(),
        client=StaticResponseClient(FIXED_CALC_RESPONSE),
        confirm=decline,
    )

    run = orchestrator.heal(calc_project.root)

    assert run.state is HealingState.REJECTED
    assert seen == [FIXED_CALC_RESPONSE.strip()]
    assert calc_project.target.read_text(encoding="utf-8") == BROKEN_CALC


def test_prompt_mode_without_callback_rejects(calc_project: CalcProject) -> None:
    config = calc_project.config()
    config["repair"] = {"confirm": "prompt"}
    orchestrator = Orchestrator.from_config(config, client=StaticResponseClient(FIXED_CALC_RESPONSE))

    run = orchestrator.heal(calc_project.root)

    assert run.state is HealingState.REJECTED


def test_passing_suite_stops_after_analysis(calc_project: CalcProject) -> None:
    calc_project.target.write_text("def add(a, b):\n    return a + b\n", encoding="utf-8")
    client = StaticResponseClient(FIXED_CALC_RESPONSE)

    run = Orchestrator.from_config(calc_project.config(), client=client).heal(calc_project.root)

    assert _states(run) == ["idle", "testing-baseline", "analyzing", "all-passing"]
    assert set(run.analyses) == {Concern.BUG, Concern.ARCHITECTURE, Concern.SECURITY}
    assert client.requests == []


def test_model_failure_aborts(calc_project: CalcProject) -> None:
    run = Orchestrator.from_config(calc_project.config(), client=StaticResponseClient()).heal(calc_project.root)

    assert run.state is HealingState.ABORTED
    assert run.errors and run.errors[0].startswith("Model service failed:")
    assert calc_project.target.read_text(encoding="utf-8") == BROKEN_CALC


def test_prose_reply_is_patch_failure(calc_project: CalcProject) -> None:
    client = StaticResponseClient("Try adding instead of subtracting.")

    run = Orchestrator.from_config(calc_project.config(), client=client).heal(calc_project.root)

    assert run.state is HealingState.PATCH_FAILED
    assert run.patch is None
    assert calc_project.target.read_text(encoding="utf-8") == BROKEN_CALC


def test_unlaunchable_test_command_aborts_after_analysis(calc_project: CalcProject) -> None:
    config = calc_project.config(test_command="definitely-not-a-real-test-runner")

    run = Orchestrator.from_config(config, client=StaticResponseClient()).heal(calc_project.root)

    assert _states(run) == ["idle", "testing-baseline", "analyzing", "aborted"]
    assert run.baseline is None
    assert run.analyses
    assert run.errors[0].startswith("Test runner failed:")


def test_wrong_fix_is_still_failing(calc_project: CalcProject) -> None:
    client = StaticResponseClient("```python\ndef add(a, b):\n    return a * b\n```")

    run = Orchestrator.from_config(calc_project.config(), client=client).heal(calc_project.root)

    assert run.state is HealingState.STILL_FAILING
    assert not run.ok
    assert run.retest is not None and not run.retest.passed


def test_missing_root_propagates(tmp_path: Path) -> None:
    orchestrator = Orchestrator(client=StaticResponseClient())

    with pytest.raises(FilesystemError):
        orchestrator.heal(tmp_path / "missing")


def test_run_serialises_to_json(calc_project: CalcProject) -> None:
    run = Orchestrator.from_config(calc_project.config(), client=StaticResponseClient()).heal(calc_project.root)

    payload = json.loads(json.dumps(run.to_dict()))

    assert payload["state"] == "aborted"
    assert payload["baseline"]["passed"] is False
    assert set(payload["analysis"]) == {"bug", "architecture", "security"}


def test_select_target_skips_test_files(tmp_path: Path) -> None:
    (tmp_path / "tests").mkdir()
    (tmp_path / "tests" / "a_test.py").write_text("", encoding="utf-8")
    (tmp_path / "app.test.js").write_text("", encoding="utf-8")
    (tmp_path / "index.js").write_text("", encoding="utf-8")
    project = scan_project(tmp_path, build_default_registry())

    assert select_target(project) == tmp_path / "index.js"
    assert select_target(project, Path("lib/other.js")) == tmp_path / "lib" / "other.js"


def test_select_target_skips_conftest_and_setup(tmp_path: Path) -> None:
    for name in ("conftest.py", "setup.py", "widget.py"):
        (tmp_path / name).write_text("x = 1\n", encoding="utf-8")
    project = scan_project(tmp_path, build_default_registry())

    assert project.files[0] == tmp_path / "conftest.py"
    assert select_target(project) == tmp_path / "widget.py"


def test_settings_reject_unknown_confirm_mode() -> None:
    with pytest.raises(ValueError, match="repair.confirm"):
        HealingSettings.from_config({"repair": {"confirm": "sometimes"}})


@pytest.mark.skipif(shutil.which("node") is None, reason="node is not installed")
def test_javascript_sum_fragment_is_healed(tmp_path: Path) -> None:
    root = tmp_path / "sum-project"
    root.mkdir()
    target = root / "sum.js"
    target.write_text("function sum(a){ return a.reduce((s,n)=>s+n,0)+1 }\nmodule.exports = { sum };\n", encoding="utf-8")
    (root / "check.test.js").write_text(
        textwrap.dedent(
            """
            const assert = require('assert');
            const { sum } = require('./sum');
            assert.strictEqual(sum([1, 2, 3]), 6);
            assert.strictEqual(sum([]), 0);
            """
        ).lstrip(),
        encoding="utf-8",
    )
    config = {
        "project": {"target": "sum.js", "test_command": ["node", "check.test.js"]},
        "repair": {"confirm": "always"},
    }
    client = StaticResponseClient("```\nreturn a.reduce((s, n) => s + n, 0);\n```")

    run = Orchestrator.from_config(config, client=client).heal(root)

    assert run.state is HealingState.HEALED
    assert "function sum(a) {" in target.read_text(encoding="utf-8")
    assert "AssertionError" in client.requests[0].prompt

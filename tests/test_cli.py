from __future__ import annotations

import shlex
import sys
from pathlib import Path

import yaml
from typer.testing import CliRunner

from conftest import BROKEN_CALC, FIXED_CALC_RESPONSE, CalcProject
from healer.cli import app

PYTEST_COMMAND_LINE = shlex.join([sys.executable, "-m", "pytest", "-q", "-p", "no:cacheprovider"])


def _init_config(runner: CliRunner, project: CalcProject) -> Path:
    config_path = project.root / "healer.yaml"
    result = runner.invoke(
        app,
        [
            "init",
            "--config",
            str(config_path),
            "--provider",
            "offline",
            "--test-command",
            PYTEST_COMMAND_LINE,
        ],
        catch_exceptions=False,
    )
    assert result.exit_code == 0, result.output
    return config_path


def test_init_writes_default_configuration(tmp_path: Path) -> None:
    runner = CliRunner()
    config_path = tmp_path / "nested" / "healer.yaml"

    result = runner.invoke(app, ["init", "--config", str(config_path), "--target", "src/app.js"], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "Created configuration" in result.output
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert list(data) == ["project", "analysis", "repair", "models"]
    assert data["project"]["target"] == "src/app.js"
    assert data["analysis"]["max_root_files"] == 10
    assert data["repair"]["confirm"] == "prompt"

    again = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)
    assert again.exit_code == 0
    assert "already exists" in again.output


def test_analyze_prints_all_sections(calc_project: CalcProject) -> None:
    runner = CliRunner()
    (calc_project.root / "secrets.py").write_text('api_key = "abc123"\n', encoding="utf-8")
    config_path = _init_config(runner, calc_project)

    result = runner.invoke(app, ["analyze", "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "STATIC ANALYSIS" in result.output
    assert "ARCHITECTURAL ANALYSIS" in result.output
    assert "CRITICAL (1)" in result.output
    assert "Credential Management Fix" in result.output
    assert "SUMMARY: Found 1 total issue(s) to address" in result.output


def test_heal_with_saved_response(calc_project: CalcProject, tmp_path: Path) -> None:
    runner = CliRunner()
    config_path = _init_config(runner, calc_project)
    response_file = tmp_path / "reply.md"
    response_file.write_text(FIXED_CALC_RESPONSE, encoding="utf-8")

    result = runner.invoke(
        app,
        ["heal", "--config", str(config_path), "--response-file", str(response_file), "--yes"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "Outcome: healed" in result.output
    assert "return a + b" in calc_project.target.read_text(encoding="utf-8")


def test_heal_prompt_can_be_declined(calc_project: CalcProject, tmp_path: Path) -> None:
    runner = CliRunner()
    config_path = _init_config(runner, calc_project)
    response_file = tmp_path / "reply.md"
    response_file.write_text(FIXED_CALC_RESPONSE, encoding="utf-8")

    result = runner.invoke(
        app,
        ["heal", "--config", str(config_path), "--response-file", str(response_file)],
        input="n\n",
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "Apply this patch?" in result.output
    assert "Outcome: rejected" in result.output
    assert calc_project.target.read_text(encoding="utf-8") == BROKEN_CALC


def test_heal_tolerates_empty_config_sections(calc_project: CalcProject, tmp_path: Path) -> None:
    config_path = tmp_path / "healer.yaml"
    config_path.write_text("project:\nrepair:\nmodels:\n  provider: offline\n", encoding="utf-8")
    response_file = tmp_path / "reply.md"
    response_file.write_text(FIXED_CALC_RESPONSE, encoding="utf-8")

    result = CliRunner().invoke(
        app,
        [
            "heal",
            str(calc_project.root),
            "--config",
            str(config_path),
            "--test-command",
            PYTEST_COMMAND_LINE,
            "--response-file",
            str(response_file),
            "--yes",
        ],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "Outcome: healed" in result.output
    assert "return a + b" in calc_project.target.read_text(encoding="utf-8")


def test_missing_config_is_rejected(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["analyze", "--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code != 0


def test_non_mapping_config_exits(tmp_path: Path) -> None:
    config_path = tmp_path / "healer.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["analyze", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Configuration must be a mapping at the top level." in result.output


def test_languages_lists_profiles() -> None:
    result = CliRunner().invoke(app, ["languages"], catch_exceptions=False)

    assert result.exit_code == 0
    assert "javascript (default)" in result.output
    assert "python" in result.output
    assert "  extensions: .py" in result.output

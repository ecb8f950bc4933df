"""CLI commands for analysing and healing a project."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml

from .analysis.registry import AnalysisThresholds, build_default_registry
from .analysis.scanner import FilesystemError, scan_project
from .models import LLMClient, LLMClientError, OllamaClient, OpenAIChatClient, StaticResponseClient
from .models.ollama import DEFAULT_OLLAMA_URL
from .models.openai_chat import DEFAULT_OPENAI_MODEL
from .orchestrator import HealingSettings, Orchestrator
from .report import render_analysis, render_json, render_report

APP_HELP = "Self-healing agent: run tests, scan for known issues, and repair failures with a language model."
DEFAULT_CONFIG_NAME = "healer.yaml"
PROVIDERS = ("openai", "ollama", "offline")

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "project": {
        "root": ".",
        "target": None,
        "test_command": None,
        "test_timeout": None,
    },
    "analysis": {
        "max_methods": 10,
        "max_properties": 15,
        "max_chain_depth": 3,
        "max_function_lines": 50,
        "max_root_files": 10,
        "max_dependencies": 50,
        "max_dev_dependencies": 30,
    },
    "repair": {
        "confirm": "prompt",
    },
    "models": {
        "provider": "ollama",
        "name": None,
        "base_url": None,
        "timeout": 120,
    },
}

app = typer.Typer(help=APP_HELP)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level for diagnostic output (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def _load_or_default(config: Optional[str]) -> tuple[Dict[str, Any], Path]:
    """Load an explicit config, or ``healer.yaml`` when present, else the defaults."""
    if config is not None:
        config_path = Path(config)
        return load_config(config_path), config_path
    config_path = Path(DEFAULT_CONFIG_NAME)
    if config_path.exists():
        return load_config(config_path), config_path
    return _copy_config_template(), config_path


def _resolve_project_root(config: Dict[str, Any], config_path: Path, override: Optional[Path]) -> Path:
    """Resolve the project root from the command line or configuration."""
    if override is not None:
        return override.resolve()
    project_cfg = config.get("project") or {}
    root_path = Path(str(project_cfg.get("root") or "."))
    if not root_path.is_absolute():
        root_path = (config_path.parent / root_path).resolve()
    return root_path


def _build_client(config: Dict[str, Any], *, response_file: Optional[Path]) -> LLMClient:
    """Select the model client named by ``models.provider``."""
    if response_file is not None:
        typer.echo(f"Replaying saved model response from {response_file}.", err=True)
        try:
            return StaticResponseClient.from_file(response_file)
        except LLMClientError as error:
            typer.echo(str(error))
            raise typer.Exit(code=1) from error

    models_cfg = config.get("models") or {}
    provider = str(models_cfg.get("provider") or "ollama").lower()
    if provider not in PROVIDERS:
        typer.echo(f"Unknown model provider '{provider}'; expected one of {', '.join(PROVIDERS)}.")
        raise typer.Exit(code=1)

    client_kwargs: Dict[str, Any] = {}
    timeout_value = models_cfg.get("timeout")
    if isinstance(timeout_value, (int, float)) and timeout_value > 0:
        client_kwargs["timeout"] = float(timeout_value)
    base_url_value = models_cfg.get("base_url")
    if isinstance(base_url_value, str) and base_url_value.strip():
        client_kwargs["base_url"] = base_url_value.strip()
    name_value = models_cfg.get("name")
    if isinstance(name_value, str) and name_value.strip():
        client_kwargs["model"] = name_value.strip()

    if provider == "offline":
        typer.echo("Using offline client; pass --response-file to supply a reply.", err=True)
        return StaticResponseClient()
    if provider == "ollama":
        typer.echo(
            f"Using Ollama client ({client_kwargs.get('model') or 'default model'} at "
            f"{client_kwargs.get('base_url', DEFAULT_OLLAMA_URL)}).",
            err=True,
        )
        return OllamaClient(**client_kwargs)
    try:
        client = OpenAIChatClient(**client_kwargs)
    except ValueError as error:
        typer.echo(f"{error} Set OPENAI_API_KEY or use --response-file.")
        raise typer.Exit(code=1) from error
    typer.echo(f"Using OpenAI client ({client_kwargs.get('model', DEFAULT_OPENAI_MODEL)}).", err=True)
    return client


def _prompt_confirm(response: str) -> bool:
    typer.echo("\nProposed patch:\n", err=True)
    typer.echo(response, err=True)
    return typer.confirm("\nApply this patch?", default=False, err=True)


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the healer configuration file.",
    ),
    root: str = typer.Option(".", "--root", help="Project root, relative to the configuration file."),
    target: Optional[str] = typer.Option(None, "--target", help="File to repair when tests fail."),
    test_command: Optional[str] = typer.Option(None, "--test-command", help="Command that runs the test suite."),
    provider: str = typer.Option("ollama", "--provider", help="Model provider: openai, ollama, or offline."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write a default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        return
    if provider not in PROVIDERS:
        raise typer.BadParameter(f"Provider must be one of {', '.join(PROVIDERS)}.", param_hint="--provider")

    config_data = _copy_config_template()
    config_data["project"]["root"] = root
    config_data["project"]["target"] = target
    config_data["project"]["test_command"] = test_command
    config_data["models"]["provider"] = provider
    _write_config(config_path, config_data)
    typer.echo(f"Created configuration at {config_path}.")


@app.command()
def analyze(
    root: Optional[Path] = typer.Argument(None, help="Project root (defaults to project.root from the config)."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the healer configuration file.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print findings as JSON."),
) -> None:
    """Run the bug, architecture, and security passes and print their reports."""
    config_data, config_path = _load_or_default(config)
    project_root = _resolve_project_root(config_data, config_path, root)
    registry = build_default_registry(AnalysisThresholds.from_config(config_data))
    orchestrator = Orchestrator(client=StaticResponseClient(), registry=registry)

    try:
        project = scan_project(project_root, registry)
    except FilesystemError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    analyses = orchestrator.analyze(project)
    if as_json:
        payload = {concern.value: result.to_dict() for concern, result in analyses.items()}
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    typer.echo(f"Scanned {len(project.files)} source file(s) under {project_root.as_posix()}.")
    typer.echo("")
    typer.echo(render_analysis(analyses, root=project_root))
    total = sum(result.count for result in analyses.values())
    typer.echo("")
    typer.echo(f"SUMMARY: Found {total} total issue(s) to address")


@app.command()
def heal(
    root: Optional[Path] = typer.Argument(None, help="Project root (defaults to project.root from the config)."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the healer configuration file.",
    ),
    target: Optional[str] = typer.Option(None, "--target", help="File to repair, relative to the project root."),
    test_command: Optional[str] = typer.Option(None, "--test-command", help="Override the test command."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Apply the proposed patch without asking."),
    response_file: Optional[Path] = typer.Option(
        None,
        "--response-file",
        help="Replay a saved model reply instead of calling a model service.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the run as JSON."),
) -> None:
    """Run tests, analyse the project, and attempt one repair when tests fail."""
    config_data, config_path = _load_or_default(config)
    project_cfg = config_data.get("project") or {}
    config_data["project"] = project_cfg
    project_cfg["root"] = _resolve_project_root(config_data, config_path, root).as_posix()
    if target is not None:
        project_cfg["target"] = target
    if test_command is not None:
        project_cfg["test_command"] = test_command
    if yes:
        config_data["repair"] = {**(config_data.get("repair") or {}), "confirm": "always"}

    try:
        settings = HealingSettings.from_config(config_data)
    except ValueError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    client = _build_client(config_data, response_file=response_file)
    confirm = _prompt_confirm if settings.confirm == "prompt" else None
    orchestrator = Orchestrator.from_config(config_data, client=client, confirm=confirm)

    try:
        run = orchestrator.heal(Path(project_cfg["root"]))
    except FilesystemError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    typer.echo(render_json(run) if as_json else render_report(run))
    if not run.ok:
        raise typer.Exit(code=1)


@app.command()
def languages() -> None:
    """List the supported language profiles."""
    registry = build_default_registry()
    for language in registry.languages:
        profile = registry.profile_for(language)
        if profile is None:
            continue
        marker = " (default)" if language == registry.baseline else ""
        typer.echo(f"{language}{marker}")
        typer.echo(f"  extensions: {', '.join(profile.extensions)}")
        typer.echo(f"  test commands: {', '.join(profile.test_commands)}")
        typer.echo(
            "  detectors: "
            f"{len(profile.bug_detectors)} bug, "
            f"{len(profile.architecture_detectors)} architecture, "
            f"{len(profile.security_detectors)} security"
        )


__all__ = ["DEFAULT_CONFIG_TEMPLATE", "app", "load_config"]


if __name__ == "__main__":  # pragma: no cover - manual invocation
    app()

"""Test-suite execution helpers for the healing loop."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Sequence

import json
import logging
import os
import shlex
import subprocess

from ..analysis.registry import LanguageProfile

LOGGER = logging.getLogger(__name__)

# Build files checked in order when no explicit command is configured.
_BUILD_FILE_COMMANDS: tuple[tuple[str, str], ...] = (
    ("pom.xml", "mvn test"),
    ("build.gradle", "./gradlew test"),
    ("build.gradle.kts", "./gradlew test"),
    ("go.mod", "go test ./..."),
)


class TestRunnerError(RuntimeError):
    """Raised when the test command cannot be launched or does not finish."""

    __test__ = False

    def __init__(self, message: str, *, command: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.command = tuple(command)


@dataclass(slots=True)
class TestResult:
    """Outcome of one test-suite invocation."""

    __test__ = False

    command: tuple[str, ...]
    cwd: Path
    exit_code: int
    output: str

    @property
    def passed(self) -> bool:
        return self.exit_code == 0

    @property
    def failure_detail(self) -> str | None:
        return None if self.passed else self.output

    def to_dict(self) -> Dict[str, object]:
        return {
            "command": list(self.command),
            "cwd": self.cwd.as_posix(),
            "exit_code": self.exit_code,
            "passed": self.passed,
            "output": self.output,
        }


def _merge_env(extra: Mapping[str, str] | None) -> Dict[str, str]:
    """Merge provided environment overrides with the current process state."""
    env: Dict[str, str] = os.environ.copy()
    if extra:
        env.update({str(key): str(value) for key, value in extra.items()})
    return env


def _split_command(command: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(command, str):
        parts = tuple(shlex.split(command))
    else:
        parts = tuple(str(part) for part in command)
    if not parts:
        raise TestRunnerError("Test command is empty.")
    return parts


def _with_src_on_pythonpath(env: Dict[str, str], workdir: Path) -> None:
    src_dir = workdir / "src"
    if not src_dir.is_dir():
        return
    src_entry = str(src_dir)
    current = env.get("PYTHONPATH")
    if current:
        parts = current.split(os.pathsep)
        if src_entry not in parts:
            env["PYTHONPATH"] = os.pathsep.join([src_entry, current])
    else:
        env["PYTHONPATH"] = src_entry


def run_tests(
    project_path: Path | str,
    command: str | Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> TestResult:
    """Run ``command`` inside ``project_path`` and capture its combined output.

    Exit code 0 means the suite passed.  Any other exit code is a normal
    failing result; only a command that cannot start (or exceeds ``timeout``)
    raises :class:`TestRunnerError`.
    """

    workdir = Path(project_path).resolve()
    invocation = _split_command(command)
    if not workdir.is_dir():
        raise TestRunnerError(f"Project directory does not exist: {workdir}", command=invocation)

    env_vars = _merge_env(env)
    _with_src_on_pythonpath(env_vars, workdir)

    LOGGER.info("Running tests: %s (cwd=%s)", shlex.join(invocation), workdir)
    try:
        process = subprocess.run(
            invocation,
            cwd=workdir,
            env=env_vars,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as error:
        raise TestRunnerError(f"Test command not found: {invocation[0]}", command=invocation) from error
    except subprocess.TimeoutExpired as error:
        raise TestRunnerError(
            f"Test command timed out after {timeout} seconds: {shlex.join(invocation)}",
            command=invocation,
        ) from error
    except OSError as error:
        raise TestRunnerError(f"Unable to launch test command: {error}", command=invocation) from error

    output = "\n".join(part for part in (process.stdout, process.stderr) if part)
    LOGGER.info("Test command exited with %d", process.returncode)
    return TestResult(command=invocation, cwd=workdir, exit_code=process.returncode, output=output)


def _package_json_has_test_script(path: Path) -> bool:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as error:
        LOGGER.warning("Ignoring unreadable %s: %s", path, error)
        return False
    scripts = data.get("scripts") if isinstance(data, dict) else None
    return isinstance(scripts, dict) and bool(scripts.get("test"))


def resolve_test_command(
    project_path: Path | str,
    profile: LanguageProfile | None = None,
    override: str | Sequence[str] | None = None,
) -> str | Sequence[str]:
    """Pick the test command for ``project_path``.

    An explicit ``override`` wins, then build files found in the project root,
    then the language profile's first default runner, then ``npm test``.
    """

    if override:
        return override
    root = Path(project_path)
    package_json = root / "package.json"
    if package_json.is_file() and _package_json_has_test_script(package_json):
        return "npm test"
    for name, command in _BUILD_FILE_COMMANDS:
        if (root / name).is_file():
            return command
    if profile is not None and profile.test_commands:
        return profile.test_commands[0]
    return "npm test"


__all__ = ["TestResult", "TestRunnerError", "resolve_test_command", "run_tests"]

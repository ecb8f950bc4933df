"""Detect-diagnose-repair loop over one project and one target file."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence
from uuid import uuid4

from .analysis.architecture import ArchitecturePass
from .analysis.bugs import BugPass
from .analysis.engine import AnalysisPass, AnalysisResult, read_source
from .analysis.findings import Concern
from .analysis.registry import AnalysisThresholds, LanguageProfile, PatternRegistry, build_default_registry
from .analysis.scanner import FilesystemError, Project, scan_project
from .analysis.security import SecurityPass
from .models.llm_client import LLMClient, LLMClientError
from .prompts import REPAIR_SYSTEM_PROMPT, build_repair_prompt
from .telemetry import emit_event
from .tools.patch import PatchApplicationResult, PatchError, prepare_patch, write_patch
from .tools.test_runner import TestResult, TestRunnerError, resolve_test_command, run_tests

LOGGER = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

CONFIRM_MODES = ("prompt", "always", "never")

_TEST_FILE_RE = re.compile(
    r"(?:^|/)(?:tests?|__tests__|spec)/"
    r"|(?:^|/)test_[^/]+\.py$|_test\.(?:py|go)$"
    r"|\.(?:test|spec)\.[jt]sx?$|Tests?\.java$"
)
# Test support and packaging scripts are never repair targets.
_SUPPORT_FILE_RE = re.compile(r"^(?:conftest|setup|noxfile)\.py$")


class HealingState(str, Enum):
    """States visited by one healing run."""

    IDLE = "idle"
    TESTING_BASELINE = "testing-baseline"
    ANALYZING = "analyzing"
    ALL_PASSING = "all-passing"
    AWAITING_PATCH = "awaiting-patch"
    PATCH_PROPOSED = "patch-proposed"
    APPLIED = "applied"
    RETESTING = "retesting"
    HEALED = "healed"
    STILL_FAILING = "still-failing"
    REJECTED = "rejected"
    PATCH_FAILED = "patch-failed"
    ABORTED = "aborted"


TERMINAL_STATES: frozenset[HealingState] = frozenset(
    {
        HealingState.ALL_PASSING,
        HealingState.HEALED,
        HealingState.STILL_FAILING,
        HealingState.REJECTED,
        HealingState.PATCH_FAILED,
        HealingState.ABORTED,
    }
)

_TRANSITIONS: Dict[HealingState, frozenset[HealingState]] = {
    HealingState.IDLE: frozenset({HealingState.TESTING_BASELINE}),
    HealingState.TESTING_BASELINE: frozenset({HealingState.ANALYZING}),
    HealingState.ANALYZING: frozenset(
        {HealingState.ALL_PASSING, HealingState.AWAITING_PATCH, HealingState.ABORTED}
    ),
    HealingState.AWAITING_PATCH: frozenset({HealingState.PATCH_PROPOSED, HealingState.ABORTED}),
    HealingState.PATCH_PROPOSED: frozenset(
        {HealingState.APPLIED, HealingState.REJECTED, HealingState.PATCH_FAILED}
    ),
    HealingState.APPLIED: frozenset({HealingState.RETESTING}),
    HealingState.RETESTING: frozenset(
        {HealingState.HEALED, HealingState.STILL_FAILING, HealingState.ABORTED}
    ),
}


@dataclass(slots=True)
class HealingSettings:
    """Runtime configuration for one healing run."""

    target: Path | None = None
    test_command: str | Sequence[str] | None = None
    test_timeout: float | None = None
    confirm: str = "prompt"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "HealingSettings":
        project = config.get("project") or {}
        repair = config.get("repair") or {}
        target = project.get("target")
        command = project.get("test_command")
        timeout = project.get("test_timeout")
        mode = str(repair.get("confirm", "prompt")).lower()
        if mode not in CONFIRM_MODES:
            raise ValueError(f"repair.confirm must be one of {', '.join(CONFIRM_MODES)}; got {mode!r}")
        return cls(
            target=Path(target) if target else None,
            test_command=command or None,
            test_timeout=float(timeout) if isinstance(timeout, (int, float)) and timeout > 0 else None,
            confirm=mode,
        )


@dataclass(slots=True)
class HealingRun:
    """Aggregated outcome of one healing run, used for reporting only."""

    root: Path
    run_id: str = field(default_factory=lambda: uuid4().hex)
    target: Path | None = None
    language: str | None = None
    state: HealingState = HealingState.IDLE
    history: List[HealingState] = field(default_factory=lambda: [HealingState.IDLE])
    baseline: TestResult | None = None
    retest: TestResult | None = None
    analyses: Dict[Concern, AnalysisResult] = field(default_factory=dict)
    prompt: str | None = None
    response: str | None = None
    patch: PatchApplicationResult | None = None
    errors: List[str] = field(default_factory=list)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def ok(self) -> bool:
        return self.state in {HealingState.ALL_PASSING, HealingState.HEALED}

    def analysis(self, concern: Concern) -> AnalysisResult:
        return self.analyses.get(concern) or AnalysisResult(concern=concern)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "root": self.root.as_posix(),
            "target": self.target.as_posix() if self.target else None,
            "language": self.language,
            "state": self.state.value,
            "history": [state.value for state in self.history],
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "retest": self.retest.to_dict() if self.retest else None,
            "analysis": {concern.value: result.to_dict() for concern, result in self.analyses.items()},
            "prompt": self.prompt,
            "response": self.response,
            "patch": self.patch.to_dict() if self.patch else None,
            "errors": list(self.errors),
        }


def is_test_file(path: Path, root: Path) -> bool:
    try:
        relative = path.relative_to(root).as_posix()
    except ValueError:
        relative = path.as_posix()
    return bool(_TEST_FILE_RE.search(relative))


def select_target(project: Project, configured: Path | None = None) -> Path | None:
    """Return the file to repair: the configured one, else the first non-test, non-support source file."""
    if configured is not None:
        return configured if configured.is_absolute() else project.root / configured
    for path in project.files:
        if not is_test_file(path, project.root) and _SUPPORT_FILE_RE.search(path.name) is None:
            return path
    return None


def _confirm_for_mode(mode: str) -> Confirm:
    if mode == "always":
        return lambda response: True
    if mode == "never":
        return lambda response: False

    def _no_prompt_available(response: str) -> bool:
        LOGGER.warning("No confirmation prompt available; rejecting proposed patch")
        return False

    return _no_prompt_available


class Orchestrator:
    """Run tests, analysis, and at most one repair attempt for a project."""

    def __init__(
        self,
        *,
        client: LLMClient,
        registry: PatternRegistry | None = None,
        settings: HealingSettings | None = None,
        confirm: Confirm | None = None,
    ) -> None:
        self._client = client
        self._registry = registry or build_default_registry()
        self._settings = settings or HealingSettings()
        self._confirm = confirm or _confirm_for_mode(self._settings.confirm)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        client: LLMClient,
        confirm: Confirm | None = None,
    ) -> "Orchestrator":
        """Convenience constructor used by the CLI."""
        thresholds = AnalysisThresholds.from_config(config)
        return cls(
            client=client,
            registry=build_default_registry(thresholds),
            settings=HealingSettings.from_config(config),
            confirm=confirm,
        )

    @property
    def registry(self) -> PatternRegistry:
        return self._registry

    def analysis_passes(self) -> tuple[AnalysisPass, ...]:
        return (BugPass(self._registry), ArchitecturePass(self._registry), SecurityPass(self._registry))

    def analyze(self, project: Project) -> Dict[Concern, AnalysisResult]:
        return {analysis.concern: analysis.run(project) for analysis in self.analysis_passes()}

    def heal(self, root: Path | str) -> HealingRun:
        """Drive one run to a terminal state.

        :class:`FilesystemError` propagates; every other pipeline failure is
        recorded on the returned run.
        """

        root_path = Path(root).resolve()
        run = HealingRun(root=root_path)
        project = scan_project(root_path, self._registry)
        run.target = select_target(project, self._settings.target)
        profile = self._profile_for(project, run.target)
        run.language = profile.name if profile is not None else None
        command = resolve_test_command(root_path, profile, self._settings.test_command)

        self._transition(run, HealingState.TESTING_BASELINE)
        try:
            run.baseline = run_tests(root_path, command, timeout=self._settings.test_timeout)
        except TestRunnerError as error:
            self._record_error(run, f"Test runner failed: {error}")

        self._transition(run, HealingState.ANALYZING)
        run.analyses = self.analyze(project)

        if run.baseline is None:
            return self._transition(run, HealingState.ABORTED)
        if run.baseline.passed:
            return self._transition(run, HealingState.ALL_PASSING)
        if run.target is None:
            self._record_error(run, "Tests fail but no target file was found to repair.")
            return self._transition(run, HealingState.ABORTED)

        self._transition(run, HealingState.AWAITING_PATCH)
        source_text = read_source(run.target)
        if source_text is None:
            raise FilesystemError(f"Unable to read target file {run.target}")
        bug_findings = [
            finding for finding in run.analysis(Concern.BUG).findings if finding.path == run.target
        ]
        run.prompt = build_repair_prompt(
            profile,
            source_text,
            run.baseline.failure_detail or "",
            findings=bug_findings,
        )
        try:
            run.response = self._client.complete(run.prompt, system_prompt=REPAIR_SYSTEM_PROMPT)
        except LLMClientError as error:
            self._record_error(run, f"Model service failed: {error}")
            return self._transition(run, HealingState.ABORTED)

        self._transition(run, HealingState.PATCH_PROPOSED)
        if not self._confirm(run.response):
            return self._transition(run, HealingState.REJECTED)

        try:
            prepared = prepare_patch(
                run.target,
                run.response,
                fragment_style=profile.fragment_style if profile is not None else None,
            )
            run.patch = write_patch(prepared)
        except PatchError as error:
            self._record_error(run, f"Patch not applied: {error}")
            return self._transition(run, HealingState.PATCH_FAILED)

        self._transition(run, HealingState.APPLIED)
        self._transition(run, HealingState.RETESTING)
        try:
            run.retest = run_tests(root_path, command, timeout=self._settings.test_timeout)
        except TestRunnerError as error:
            self._record_error(run, f"Test runner failed: {error}")
            return self._transition(run, HealingState.ABORTED)

        if run.retest.passed:
            return self._transition(run, HealingState.HEALED)
        return self._transition(run, HealingState.STILL_FAILING)

    def _profile_for(self, project: Project, target: Path | None) -> LanguageProfile | None:
        if target is not None:
            language = project.language_of(target) or self._registry.classify(target)
        else:
            language = self._registry.baseline
        return self._registry.profile_for(language)

    def _transition(self, run: HealingRun, state: HealingState) -> HealingRun:
        allowed = _TRANSITIONS.get(run.state, frozenset())
        if state not in allowed:
            raise RuntimeError(f"Invalid healing transition {run.state.value} -> {state.value}")
        LOGGER.info("Healing run %s: %s -> %s", run.run_id[:8], run.state.value, state.value)
        emit_event("healing_transition", run_id=run.run_id, source=run.state, target=state)
        run.state = state
        run.history.append(state)
        return run

    def _record_error(self, run: HealingRun, message: str) -> None:
        text = (message or "").strip()
        if not text:
            return
        LOGGER.warning(text)
        if text not in run.errors:
            run.errors.append(text)


__all__ = [
    "CONFIRM_MODES",
    "Confirm",
    "HealingRun",
    "HealingSettings",
    "HealingState",
    "Orchestrator",
    "TERMINAL_STATES",
    "is_test_file",
    "select_target",
]

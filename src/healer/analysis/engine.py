"""Shared scan-and-match algorithm behind the bug, architecture, and security passes."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .findings import Concern, FINDING_TYPES, Finding, FixExample
from .manifest import DependencyManifest, ManifestParseError, find_manifests, load_manifest
from .registry import Detector, PatternRegistry
from .scanner import Project

LOGGER = logging.getLogger(__name__)


def line_number_at(text: str, offset: int) -> int:
    """Return the 1-based line containing ``offset``."""
    return text.count("\n", 0, offset) + 1


def read_source(path: Path) -> str | None:
    """Read ``path`` as UTF-8, returning ``None`` when it cannot be read."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        LOGGER.warning("Skipping %s: %s", path, error)
        return None


def display_path(path: Path, root: Path | None) -> str:
    """Render ``path`` relative to ``root`` when possible."""
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def match_detectors(
    detectors: Sequence[Detector],
    text: str,
    path: Path,
    finding_type: type[Finding],
) -> List[Finding]:
    """Apply ``detectors`` to ``text`` and build a finding for each accepted match."""

    accepts_example = "example" in finding_type.model_fields
    findings: List[Finding] = []
    for detector in detectors:
        for match in detector.pattern.finditer(text):
            if not detector.accepts(match, text):
                continue
            matched = match.group(0)
            extra: Dict[str, Any] = {}
            if accepts_example and detector.example is not None:
                extra["example"] = detector.example
            findings.append(
                finding_type(
                    name=detector.name,
                    severity=detector.severity,
                    description=detector.description,
                    path=path,
                    line=line_number_at(text, match.start()),
                    snippet=matched,
                    remediation=detector.remediation_for(matched),
                    steps=detector.steps,
                    **extra,
                )
            )
    return findings


@dataclass(slots=True)
class AnalysisResult:
    """Ordered findings for one concern plus the files that were skipped."""

    concern: Concern
    findings: Tuple[Finding, ...] = ()
    skipped: Tuple[Path, ...] = ()
    notes: Tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concern": self.concern.value,
            "findings": [finding.to_dict() for finding in self.findings],
            "skipped": [path.as_posix() for path in self.skipped],
            "notes": list(self.notes),
        }


@dataclass(slots=True)
class Suggestion:
    """Remediation plan shared by every finding of one type."""

    title: str
    description: str
    steps: Tuple[str, ...]
    example: FixExample | None = None


def collect_suggestions(
    findings: Iterable[Finding],
    titles: Mapping[str, Tuple[str, str]],
) -> List[Suggestion]:
    """Build one :class:`Suggestion` per finding type listed in ``titles``.

    Types are taken in first-seen order; findings without steps are ignored.
    """
    suggestions: List[Suggestion] = []
    seen: set[str] = set()
    for finding in findings:
        if finding.name in seen or finding.name not in titles or not finding.steps:
            continue
        seen.add(finding.name)
        title, description = titles[finding.name]
        suggestions.append(
            Suggestion(
                title=title,
                description=description,
                steps=finding.steps,
                example=getattr(finding, "example", None),
            )
        )
    return suggestions


def format_suggestions(suggestions: Sequence[Suggestion]) -> str:
    lines: List[str] = []
    for suggestion in suggestions:
        lines.append(f"{suggestion.title}: {suggestion.description}")
        lines.extend(f"  {index}. {step}" for index, step in enumerate(suggestion.steps, start=1))
        if suggestion.example is not None:
            lines.append("  Example:")
            lines.append(f"    Before: {suggestion.example.before}")
            lines.append(f"    After:  {suggestion.example.after}")
        lines.append("")
    return "\n".join(lines).rstrip()


def load_project_manifests(root: Path, notes: List[str]) -> List[DependencyManifest]:
    """Load every known manifest under ``root``, recording parse failures in ``notes``."""
    manifests: List[DependencyManifest] = []
    for path in find_manifests(root):
        try:
            manifests.append(load_manifest(path))
        except ManifestParseError as error:
            LOGGER.warning("Skipping manifest checks for %s: %s", path, error)
            notes.append(f"Manifest skipped: {error}")
    return manifests


class AnalysisPass:
    """Run one concern's detectors over a project.

    Subclasses set :attr:`concern` and may override :meth:`project_checks` to
    append project-level findings after the per-file pass.
    """

    concern: Concern = Concern.BUG

    def __init__(self, registry: PatternRegistry) -> None:
        self.registry = registry

    @property
    def finding_type(self) -> type[Finding]:
        return FINDING_TYPES[self.concern]

    def analyze_text(self, text: str, path: Path, language: str) -> List[Finding]:
        """Apply this concern's detectors for ``language`` to ``text``."""
        detectors = self.registry.detectors_for(language, self.concern)
        return match_detectors(detectors, text, path, self.finding_type)

    def run(self, project: Project) -> AnalysisResult:
        findings: List[Finding] = []
        skipped: List[Path] = []
        notes: List[str] = []

        for path in project.files:
            language = project.language_of(path) or self.registry.classify(path)
            if not self.registry.detectors_for(language, self.concern):
                continue
            text = read_source(path)
            if text is None:
                skipped.append(path)
                continue
            findings.extend(self.analyze_text(text, path, language))

        findings.extend(self.project_checks(project, notes))
        LOGGER.debug(
            "%s pass produced %d finding(s) across %d file(s)",
            self.concern.value,
            len(findings),
            len(project.files),
        )
        return AnalysisResult(
            concern=self.concern,
            findings=tuple(findings),
            skipped=tuple(skipped),
            notes=tuple(notes),
        )

    def project_checks(self, project: Project, notes: List[str]) -> Iterable[Finding]:
        return ()


__all__ = [
    "AnalysisPass",
    "AnalysisResult",
    "Suggestion",
    "collect_suggestions",
    "display_path",
    "format_suggestions",
    "line_number_at",
    "load_project_manifests",
    "match_detectors",
    "read_source",
]

"""Architecture pass: structural smells plus project layout and dependency counts."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Dict, List, Tuple

from .engine import (
    AnalysisPass,
    AnalysisResult,
    Suggestion,
    collect_suggestions,
    display_path,
    load_project_manifests,
)
from .findings import ArchitectureFinding, Concern, Finding, Severity
from .registry import PatternRegistry
from .scanner import Project

FILE_ORGANIZATION_STEPS: Tuple[str, ...] = (
    "Create directories: components/, utils/, services/, etc.",
    "Move files to appropriate directories",
    "Update import statements",
    "Update build configuration if needed",
)

REFACTORING_TITLES: Dict[str, Tuple[str, str]] = {
    "God Object": ("Class Refactoring", "Break large class into smaller classes"),
    "Callback Hell": ("Async Refactoring", "Convert callbacks to async/await"),
    "File Organization": ("Directory Restructuring", "Organize files into logical directories"),
}


class ArchitecturePass(AnalysisPass):
    concern = Concern.ARCHITECTURE

    def project_checks(self, project: Project, notes: List[str]) -> Iterable[Finding]:
        findings: List[Finding] = []
        organisation = self._file_organisation(project)
        if organisation is not None:
            findings.append(organisation)
        findings.extend(self._dependency_counts(project.root, notes))
        return findings

    def _file_organisation(self, project: Project) -> ArchitectureFinding | None:
        limit = self.registry.thresholds.max_root_files
        root_files = project.root_files()
        if len(root_files) <= limit:
            return None
        return ArchitectureFinding(
            name="File Organization",
            severity=Severity.MEDIUM,
            description=f"Too many files in root directory ({len(root_files)})",
            path=project.root,
            line=1,
            remediation="Organize files into logical directories (components, utils, services, etc.)",
            steps=FILE_ORGANIZATION_STEPS,
            files=root_files,
            count=len(root_files),
        )

    def _dependency_counts(self, root: Path, notes: List[str]) -> List[ArchitectureFinding]:
        thresholds = self.registry.thresholds
        findings: List[ArchitectureFinding] = []
        for manifest in load_project_manifests(root, notes):
            runtime = len(manifest.dependencies)
            development = len(manifest.dev_dependencies)
            if runtime > thresholds.max_dependencies:
                findings.append(
                    ArchitectureFinding(
                        name="Dependency Bloat",
                        severity=Severity.MEDIUM,
                        description=f"Too many production dependencies ({runtime})",
                        path=manifest.path,
                        line=1,
                        remediation="Review and remove unused dependencies. Consider using bundle analysis tools.",
                        count=runtime,
                    )
                )
            if development > thresholds.max_dev_dependencies:
                findings.append(
                    ArchitectureFinding(
                        name="Development Dependency Bloat",
                        severity=Severity.LOW,
                        description=f"Many development dependencies ({development})",
                        path=manifest.path,
                        line=1,
                        remediation="Review and consolidate development tools.",
                        count=development,
                    )
                )
        return findings


def analyze_architecture(project: Project, registry: PatternRegistry) -> AnalysisResult:
    return ArchitecturePass(registry).run(project)


def format_architecture_report(findings: Sequence[Finding], *, root: Path | None = None) -> str:
    """Render architecture findings in scan order, one block per finding."""
    if not findings:
        return "No architectural issues found."

    blocks = []
    for finding in findings:
        lines = [
            f"{finding.severity.value.upper()}: {finding.name}",
            f"Description: {finding.description}",
            f"File: {display_path(finding.path, root)}",
            f"Line: {finding.line}",
        ]
        files = getattr(finding, "files", ())
        if files:
            lines.append("Files: " + ", ".join(display_path(path, root) for path in files))
        lines.append(f"Suggestion: {finding.remediation}")
        blocks.append("\n".join(lines))
    body = "\n---\n".join(blocks)
    return f"Architectural analysis found {len(findings)} issue(s)\n\n{body}"


def refactoring_suggestions(findings: Iterable[Finding]) -> List[Suggestion]:
    """Return one refactoring plan per God Object, Callback Hell, or File Organization type."""
    return collect_suggestions(findings, REFACTORING_TITLES)


__all__ = [
    "ArchitecturePass",
    "FILE_ORGANIZATION_STEPS",
    "REFACTORING_TITLES",
    "analyze_architecture",
    "format_architecture_report",
    "refactoring_suggestions",
]

"""Bug pass: unguarded member access, unhandled promises, and missing cleanup calls.

The "missing cleanup" detectors (event listeners, timers, closable
resources) only check whether a cleanup token appears anywhere later in the
same file.  They do not follow control flow.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from .engine import AnalysisPass, AnalysisResult, display_path
from .findings import Concern, Finding
from .registry import PatternRegistry
from .scanner import Project


class BugPass(AnalysisPass):
    concern = Concern.BUG


def analyze_bugs(project: Project, registry: PatternRegistry) -> AnalysisResult:
    return BugPass(registry).run(project)


def format_bug_report(findings: Sequence[Finding], *, root: Path | None = None) -> str:
    """Render bug findings as a flat list of severity-labelled blocks."""
    if not findings:
        return "No potential bugs found in static analysis."

    blocks = []
    for finding in findings:
        blocks.append(
            "\n".join(
                [
                    f"{finding.severity.value.upper()}: {finding.name}",
                    f"File: {display_path(finding.path, root)}",
                    f"Line: {finding.line}",
                    f"Description: {finding.description}",
                    f"Code: `{finding.snippet}`",
                    f"Suggestion: {finding.remediation}",
                ]
            )
        )
    body = "\n---\n".join(blocks)
    return f"Static analysis found {len(findings)} potential issue(s)\n\n{body}"


__all__ = ["BugPass", "analyze_bugs", "format_bug_report"]

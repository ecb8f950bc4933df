"""Human-readable and JSON renderings of a healing run."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List

from .analysis.architecture import format_architecture_report, refactoring_suggestions
from .analysis.bugs import format_bug_report
from .analysis.engine import AnalysisResult, format_suggestions
from .analysis.findings import Concern
from .analysis.security import format_security_report, security_fix_suggestions
from .orchestrator import HealingRun, HealingState

_STATE_SUMMARIES: Dict[HealingState, str] = {
    HealingState.ALL_PASSING: "All tests are passing.",
    HealingState.HEALED: "Patch applied; all tests now pass.",
    HealingState.STILL_FAILING: "Patch applied but tests are still failing.",
    HealingState.REJECTED: "Proposed patch was rejected; target file left unchanged.",
    HealingState.PATCH_FAILED: "No usable code in the model response; target file left unchanged.",
    HealingState.ABORTED: "Run aborted before a patch could be verified.",
}

RULE = "=" * 50


def render_analysis(analyses: Dict[Concern, AnalysisResult], *, root: Path | None = None) -> str:
    """Render the three analysis sections with their suggestion lists."""
    sections: List[str] = []
    bugs = analyses.get(Concern.BUG)
    if bugs is not None:
        sections.append("STATIC ANALYSIS\n" + format_bug_report(bugs.findings, root=root))

    architecture = analyses.get(Concern.ARCHITECTURE)
    if architecture is not None:
        block = "ARCHITECTURAL ANALYSIS\n" + format_architecture_report(architecture.findings, root=root)
        suggestions = refactoring_suggestions(architecture.findings)
        if suggestions:
            block += "\n\nREFACTORING SUGGESTIONS\n" + format_suggestions(suggestions)
        sections.append(block)

    security = analyses.get(Concern.SECURITY)
    if security is not None:
        block = "SECURITY ANALYSIS\n" + format_security_report(security.findings, root=root)
        fixes = security_fix_suggestions(security.findings)
        if fixes:
            block += "\n\nSECURITY FIXES NEEDED\n" + format_suggestions(fixes)
        sections.append(block)

    notes = list(dict.fromkeys(note for result in analyses.values() for note in result.notes))
    skipped = [path for result in analyses.values() for path in result.skipped]
    if notes or skipped:
        lines = [f"- {note}" for note in notes]
        lines.extend(f"- Unreadable file skipped: {path.as_posix()}" for path in dict.fromkeys(skipped))
        sections.append("NOTES\n" + "\n".join(lines))
    return "\n\n".join(sections)


def count_issues(run: HealingRun) -> int:
    failing = 1 if run.baseline is not None and not run.baseline.passed else 0
    return failing + sum(result.count for result in run.analyses.values())


def render_report(run: HealingRun) -> str:
    """Render ``run`` as the plain-text report printed by ``healer heal``."""
    lines = [
        "HEALING REPORT",
        RULE,
        f"Project: {run.root.as_posix()}",
        f"Target: {run.target.as_posix() if run.target else 'n/a'}",
        f"Language: {run.language or 'unknown'}",
        f"Outcome: {run.state.value}",
        f"Path: {' -> '.join(state.value for state in run.history)}",
    ]
    summary = _STATE_SUMMARIES.get(run.state)
    if summary:
        lines.append(summary)

    if run.baseline is not None and not run.baseline.passed:
        lines.extend(["", "BASELINE TEST FAILURE", run.baseline.output.strip() or "(no output)"])
    if run.patch is not None:
        lines.extend(
            [
                "",
                f"PATCH: {run.patch.kind} from {run.patch.source}, "
                f"{run.patch.bytes_written} bytes written to {run.patch.path.as_posix()}",
            ]
        )
    if run.retest is not None and not run.retest.passed:
        lines.extend(["", "TESTS STILL FAILING", run.retest.output.strip() or "(no output)"])
    if run.errors:
        lines.extend(["", "ERRORS"])
        lines.extend(f"- {error}" for error in run.errors)

    analysis = render_analysis(run.analyses, root=run.root)
    if analysis:
        lines.extend(["", analysis])
    lines.extend(["", f"SUMMARY: Found {count_issues(run)} total issue(s) to address"])
    return "\n".join(lines)


def render_json(run: HealingRun) -> str:
    return json.dumps(run.to_dict(), indent=2, sort_keys=True)


__all__ = ["count_issues", "render_analysis", "render_json", "render_report"]

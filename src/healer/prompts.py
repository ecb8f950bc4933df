"""Prompt templates for the repair step of the healing loop."""

from __future__ import annotations

from typing import Sequence

from .analysis.findings import Finding
from .analysis.registry import LanguageProfile

REPAIR_SYSTEM_PROMPT = (
    "You repair source files so that a failing test suite passes. "
    "Reply with the corrected code in a single fenced code block and nothing else. "
    "Prefer the complete corrected file; keep unrelated code unchanged."
)

CODE_BLOCK_INSTRUCTION = "Return ONLY the corrected code block"


def _fence(body: str, tag: str = "") -> str:
    return f"```{tag}\n{body.rstrip()}\n```"


def render_findings_hint(findings: Sequence[Finding], *, limit: int = 5) -> str:
    """Format the first ``limit`` static-analysis findings as a bullet list block."""
    if not findings:
        return ""
    lines = [
        f"- {finding.name} (line {finding.line}): {finding.description}"
        for finding in list(findings)[:limit]
    ]
    return "**Static analysis hints:**\n" + "\n".join(lines)


def build_repair_prompt(
    profile: LanguageProfile | None,
    source_text: str,
    failure_text: str,
    *,
    findings: Sequence[Finding] = (),
) -> str:
    """Build the user prompt asking a model to fix ``source_text``.

    A language profile adds the language name and its common bug labels and
    tags the code fences; without one the prompt stays language-neutral.
    """

    language = profile.name if profile is not None else None
    sections: list[str] = []
    if language:
        sections.append(f"You are an expert {language} developer. Analyze the following code and fix the bugs.")
        sections.append(f"**Language:** {language}")
        if profile.common_issues:
            sections.append(f"**Common {language} bugs to check for:** {', '.join(profile.common_issues)}")
    else:
        sections.append("You are an expert programmer. Analyze the following code and fix the bugs.")

    sections.append("**Code:**\n" + _fence(source_text, language or ""))
    sections.append("**Test Output:**\n" + _fence(failure_text))

    hint = render_findings_hint(findings)
    if hint:
        sections.append(hint)

    target = f"{language} bugs" if language else "bugs"
    instructions = [
        f"1. Identify the specific {target} in the code",
        "2. Provide a minimal fix that addresses the test failures",
        f"3. {CODE_BLOCK_INSTRUCTION}",
    ]
    if language:
        instructions.append(f"4. Ensure the fix follows {language} best practices")
    sections.append("**Instructions:**\n" + "\n".join(instructions))

    placeholder = "# Your fixed code here" if profile is not None and profile.fragment_style == "python" else "// Your fixed code here"
    sections.append("**Response format:**\n" + _fence(placeholder, language or ""))
    return "\n\n".join(sections) + "\n"


__all__ = [
    "CODE_BLOCK_INSTRUCTION",
    "REPAIR_SYSTEM_PROMPT",
    "build_repair_prompt",
    "render_findings_hint",
]

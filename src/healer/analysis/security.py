"""Security pass: vulnerable code patterns, exposed configuration, and denylisted packages.

Dependency checks are name-only: a package on the denylist is reported
whatever version the manifest pins.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from .engine import (
    AnalysisPass,
    AnalysisResult,
    Suggestion,
    collect_suggestions,
    display_path,
    line_number_at,
    load_project_manifests,
    read_source,
)
from .findings import Concern, Finding, SECURITY_SEVERITY_ORDER, SecurityFinding, Severity, group_by_severity
from .registry import PatternRegistry
from .scanner import Project

CONFIG_FILES: Tuple[str, ...] = (".env", "config.json", "webpack.config.js", "next.config.js")

VULNERABLE_PACKAGES: Mapping[str, frozenset[str]] = {
    "npm": frozenset({"lodash", "moment", "jquery"}),
    "pypi": frozenset({"pycrypto"}),
}

SECURITY_FIX_TITLES: Dict[str, Tuple[str, str]] = {
    "SQL Injection": ("SQL Injection Fix", "Replace string concatenation with parameterized queries"),
    "XSS Vulnerability": ("XSS Fix", "Sanitize user input before rendering"),
    "Hardcoded Credentials": ("Credential Management Fix", "Move credentials to environment variables"),
}

_SECRET_RE = re.compile(r"password|secret")
_DEBUG_RE = re.compile(r"debug\s*=\s*true", re.IGNORECASE)
_NODE_ENV_RE = re.compile(r"NODE_ENV\s*=\s*['\"]?(?:development|production)\b")


class SecurityPass(AnalysisPass):
    concern = Concern.SECURITY

    def project_checks(self, project: Project, notes: List[str]) -> Iterable[Finding]:
        findings: List[Finding] = []
        findings.extend(self._dependency_denylist(project.root, notes))
        findings.extend(self._config_files(project.root, notes))
        return findings

    def _dependency_denylist(self, root: Path, notes: List[str]) -> List[SecurityFinding]:
        findings: List[SecurityFinding] = []
        for manifest in load_project_manifests(root, notes):
            denylist = VULNERABLE_PACKAGES.get(manifest.ecosystem, frozenset())
            for name, version in manifest.all_dependencies().items():
                if name.lower() not in denylist:
                    continue
                audit = "npm audit" if manifest.ecosystem == "npm" else "pip-audit"
                findings.append(
                    SecurityFinding(
                        name="Vulnerable Dependency",
                        severity=Severity.HIGH,
                        description=f"Potentially vulnerable package: {name}",
                        path=manifest.path,
                        line=1,
                        remediation=f"Update {name} to latest version or check {audit}",
                        package=name,
                        version=version,
                    )
                )
        return findings

    def _config_files(self, root: Path, notes: List[str]) -> List[SecurityFinding]:
        findings: List[SecurityFinding] = []
        for name in CONFIG_FILES:
            path = root / name
            if not path.is_file():
                continue
            content = read_source(path)
            if content is None:
                notes.append(f"Configuration file skipped: {name}")
                continue
            findings.extend(scan_config_text(content, path))
        return findings


def scan_config_text(content: str, path: Path) -> List[SecurityFinding]:
    """Check one configuration file's text for exposed secrets and debug flags."""
    findings: List[SecurityFinding] = []
    secret = _SECRET_RE.search(content)
    if secret is not None:
        findings.append(
            SecurityFinding(
                name="Exposed Secrets",
                severity=Severity.CRITICAL,
                description=f"Potential secrets in {path.name}",
                path=path,
                line=line_number_at(content, secret.start()),
                snippet=secret.group(0),
                remediation="Move secrets to environment variables or secure storage",
            )
        )
    debug = _DEBUG_RE.search(content)
    if debug is not None and _NODE_ENV_RE.search(content):
        findings.append(
            SecurityFinding(
                name="Debug Mode Enabled",
                severity=Severity.MEDIUM,
                description="Debug mode enabled in configuration",
                path=path,
                line=line_number_at(content, debug.start()),
                snippet=debug.group(0),
                remediation="Disable debug mode in production",
            )
        )
    return findings


def analyze_security(project: Project, registry: PatternRegistry) -> AnalysisResult:
    return SecurityPass(registry).run(project)


def format_security_report(findings: Sequence[Finding], *, root: Path | None = None) -> str:
    """Render security findings grouped by severity, most severe first.

    Grouping is a projection of the scan-ordered list; entries inside each
    group keep their original order.
    """

    if not findings:
        return "No security vulnerabilities found."

    sections = [f"Security analysis found {len(findings)} issue(s)"]
    for severity, bucket in group_by_severity(findings, SECURITY_SEVERITY_ORDER).items():
        if not bucket:
            continue
        lines = [f"{severity.value.upper()} ({len(bucket)})"]
        for finding in bucket:
            lines.append(f"- {finding.name}: {finding.description}")
            lines.append(f"  File: {display_path(finding.path, root)}:{finding.line}")
            lines.append(f"  Fix: {finding.remediation}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def security_fix_suggestions(findings: Iterable[Finding]) -> List[Suggestion]:
    """Return one fix plan per SQL injection, XSS, or hardcoded-credential finding type."""
    return collect_suggestions(findings, SECURITY_FIX_TITLES)


__all__ = [
    "CONFIG_FILES",
    "SECURITY_FIX_TITLES",
    "SecurityPass",
    "VULNERABLE_PACKAGES",
    "analyze_security",
    "format_security_report",
    "scan_config_text",
    "security_fix_suggestions",
]

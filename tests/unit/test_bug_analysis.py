from __future__ import annotations

import textwrap
from pathlib import Path

from healer.analysis.bugs import BugPass, analyze_bugs, format_bug_report
from healer.analysis.findings import BugFinding, Severity
from healer.analysis.registry import build_default_registry
from healer.analysis.scanner import scan_project


def test_javascript_detectors_report_one_based_lines() -> None:
    text = textwrap.dedent(
        """
        const name = user.getName();
        const p = new Promise(executor);
        window.addEventListener('resize', onResize);
        if (order && order.total()) {}
        """
    ).lstrip()
    findings = BugPass(build_default_registry()).analyze_text(text, Path("app.js"), "javascript")

    assert [(finding.name, finding.line) for finding in findings] == [
        ("Potential Null Reference", 1),
        ("Unhandled Promise", 2),
        ("Memory Leak - Event Listener", 3),
    ]
    assert all(isinstance(finding, BugFinding) for finding in findings)
    assert findings[1].severity is Severity.ERROR
    assert findings[1].remediation == "new Promise(executor).catch(err => console.error(err))"


def test_cleanup_token_later_in_file_suppresses_finding() -> None:
    text = "el.addEventListener('click', go);\nel.removeEventListener('click', go);\n"

    findings = BugPass(build_default_registry()).analyze_text(text, Path("view.js"), "javascript")

    assert [finding.name for finding in findings] == []


def test_python_unsafe_open_is_reported() -> None:
    text = 'data = open("notes.txt")\n'

    findings = BugPass(build_default_registry()).analyze_text(text, Path("io.py"), "python")

    assert [finding.name for finding in findings] == ["Unsafe File Operation"]
    assert findings[0].remediation == 'with open("notes.txt") as f:'


def test_unreadable_file_is_skipped_and_pass_continues(tmp_path: Path) -> None:
    (tmp_path / "bad.js").write_bytes(b"\xff\xfe\x00broken")
    (tmp_path / "good.js").write_text("user.getName();\n", encoding="utf-8")
    registry = build_default_registry()

    result = analyze_bugs(scan_project(tmp_path, registry), registry)

    assert result.skipped == (tmp_path / "bad.js",)
    assert [finding.path for finding in result.findings] == [tmp_path / "good.js"]


def test_format_bug_report(tmp_path: Path) -> None:
    assert format_bug_report([]) == "No potential bugs found in static analysis."

    finding = BugFinding(
        name="Potential Null Reference",
        severity=Severity.WARNING,
        description="Potential null reference detected",
        path=tmp_path / "src" / "app.js",
        line=4,
        snippet="user.getName()",
        remediation="user?.getName()",
    )
    report = format_bug_report([finding], root=tmp_path)

    assert report.startswith("Static analysis found 1 potential issue(s)")
    assert "WARNING: Potential Null Reference" in report
    assert "File: src/app.js" in report
    assert "Line: 4" in report
    assert "Suggestion: user?.getName()" in report


def test_repeated_timeouts_without_clear_are_a_race() -> None:
    registry = build_default_registry()
    racing = "setTimeout(tick, 10);\nsetTimeout(tock, 20);\n"
    cleared = racing + "clearTimeout(timer);\n"

    findings = BugPass(registry).analyze_text(racing, Path("poll.js"), "javascript")

    assert [(finding.name, finding.line) for finding in findings] == [("Potential Race Condition", 1)]
    assert BugPass(registry).analyze_text(cleared, Path("poll.js"), "javascript") == []
    assert BugPass(registry).analyze_text("setTimeout(tick, 10);\n", Path("once.js"), "javascript") == []


def test_promise_with_then_is_handled() -> None:
    findings = BugPass(build_default_registry()).analyze_text("new Promise(run).then(done);\n", Path("job.js"), "javascript")

    assert findings == []


def test_python_division_without_guard() -> None:
    registry = build_default_registry()
    guarded = "ratio = total / count\nif count == 0:\n    ratio = 0\n"

    findings = BugPass(registry).analyze_text("ratio = total / count\n", Path("stats.py"), "python")

    assert [(finding.name, finding.line, finding.snippet) for finding in findings] == [
        ("Potential Division by Zero", 1, "total / count")
    ]
    assert BugPass(registry).analyze_text(guarded, Path("stats.py"), "python") == []


def test_java_resource_leak_until_closed() -> None:
    registry = build_default_registry()
    leaking = "FileReader reader = new FileReader(path);\nreader.read();\n"

    findings = BugPass(registry).analyze_text(leaking, Path("Load.java"), "java")

    assert [(finding.name, finding.severity) for finding in findings] == [("Resource Leak", Severity.WARNING)]
    assert findings[0].remediation == "// Consider using try-with-resources"
    assert BugPass(registry).analyze_text(leaking + "reader.close();\n", Path("Load.java"), "java") == []

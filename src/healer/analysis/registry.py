"""Language profiles and the detector tables used by the analysis passes.

Two public abstractions live here:

``LanguageProfile``
    Everything the pipeline knows about one language: file extensions, the
    bug/architecture/security detectors, the common-issue labels used by the
    repair prompt, default test commands, and the shape of a function
    fragment.

``PatternRegistry``
    Immutable lookup over a set of profiles.  It is built once at startup
    (see :func:`build_default_registry`) and passed explicitly to the scanner,
    the analysis passes, and the orchestrator.

Detectors follow a pattern-then-filter scheme: a regular expression proposes
candidates and a predicate, given the match and the full file text, accepts or
rejects each one.  All checks are textual heuristics rather than parses, so
their false positives and negatives are part of the contract.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Tuple, Union

from .findings import Concern, FixExample, Severity

Predicate = Callable[[re.Match[str], str], bool]
Remediation = Union[str, Callable[[str], str]]

BASELINE_LANGUAGE = "javascript"


def _always(match: re.Match[str], text: str) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class Detector:
    """Named rule pairing a pattern with an acceptance check and metadata."""

    name: str
    pattern: re.Pattern[str]
    severity: Severity
    description: str
    remediation: Remediation
    predicate: Predicate = _always
    steps: Tuple[str, ...] = ()
    example: FixExample | None = None

    def accepts(self, match: re.Match[str], text: str) -> bool:
        return bool(self.predicate(match, text))

    def remediation_for(self, matched: str) -> str:
        """Render the remediation for ``matched`` text."""
        if callable(self.remediation):
            return self.remediation(matched)
        return self.remediation


@dataclass(frozen=True, slots=True)
class AnalysisThresholds:
    """Numeric limits for the structural and project-level checks."""

    max_methods: int = 10
    max_properties: int = 15
    max_chain_depth: int = 3
    max_function_lines: int = 50
    max_root_files: int = 10
    max_dependencies: int = 50
    max_dev_dependencies: int = 30

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AnalysisThresholds":
        """Read overrides from the ``analysis`` section of the configuration."""
        section = config.get("analysis") or {}
        if not isinstance(section, Mapping):
            return cls()
        overrides: Dict[str, int] = {}
        for spec in fields(cls):
            name = spec.name
            value = section.get(name)
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                overrides[name] = value
        return cls(**overrides)


@dataclass(frozen=True, slots=True)
class LanguageProfile:
    """Per-language settings threaded through scanning, prompting, and patching."""

    name: str
    extensions: Tuple[str, ...]
    bug_detectors: Tuple[Detector, ...] = ()
    architecture_detectors: Tuple[Detector, ...] = ()
    security_detectors: Tuple[Detector, ...] = ()
    common_issues: Tuple[str, ...] = ()
    test_commands: Tuple[str, ...] = ()
    fragment_style: str = "brace"

    def detectors(self, concern: Concern) -> Tuple[Detector, ...]:
        if concern is Concern.BUG:
            return self.bug_detectors
        if concern is Concern.ARCHITECTURE:
            return self.architecture_detectors
        return self.security_detectors


class PatternRegistry:
    """Read-only index of language profiles keyed by name and extension."""

    def __init__(
        self,
        profiles: Iterable[LanguageProfile],
        *,
        thresholds: AnalysisThresholds | None = None,
        baseline: str = BASELINE_LANGUAGE,
    ) -> None:
        ordered = tuple(profiles)
        by_name = {profile.name: profile for profile in ordered}
        if baseline not in by_name:
            raise ValueError(f"Baseline language '{baseline}' has no profile.")
        by_extension: Dict[str, str] = {}
        for profile in ordered:
            for extension in profile.extensions:
                by_extension.setdefault(extension.lower(), profile.name)

        self._profiles: Mapping[str, LanguageProfile] = MappingProxyType(by_name)
        self._extensions: Mapping[str, str] = MappingProxyType(by_extension)
        self._baseline = baseline
        self._thresholds = thresholds or AnalysisThresholds()

    @property
    def baseline(self) -> str:
        return self._baseline

    @property
    def thresholds(self) -> AnalysisThresholds:
        return self._thresholds

    @property
    def languages(self) -> Tuple[str, ...]:
        return tuple(self._profiles)

    @property
    def extensions(self) -> frozenset[str]:
        return frozenset(self._extensions)

    def profile_for(self, language: str) -> LanguageProfile | None:
        return self._profiles.get(language)

    def detectors_for(self, language: str, concern: Concern) -> Tuple[Detector, ...]:
        """Return ``language``'s detectors for ``concern`` (empty when unknown)."""
        profile = self._profiles.get(language)
        if profile is None:
            return ()
        return profile.detectors(concern)

    def is_source_file(self, path: Path | str) -> bool:
        return Path(path).suffix.lower() in self._extensions

    def classify(self, path: Path | str) -> str:
        """Map ``path`` to a language tag, defaulting to the baseline language."""
        return self._extensions.get(Path(path).suffix.lower(), self._baseline)


# ---------------------------------------------------------------------------
# Predicate helpers


def _before(match: re.Match[str], text: str) -> str:
    return text[: match.start()]


def _after(match: re.Match[str], text: str) -> str:
    return text[match.end() :]


def _none_before(*tokens: str) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        before = _before(match, text)
        return not any(token in before for token in tokens)

    return predicate


def _none_after(*tokens: str) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        after = _after(match, text)
        return not any(token in after for token in tokens)

    return predicate


def _repeated_without(token: str, cleanup: str) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        after = _after(match, text)
        return token in after and cleanup not in after

    return predicate


def _text_lacks(token: str) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        return token not in text

    return predicate


def _text_contains(token: str) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        return token in text

    return predicate


_METHOD_LINE_RE = re.compile(r"^\s*\w+\s*\([^)]*\)", re.MULTILINE)
_PROPERTY_LINE_RE = re.compile(r"^\s*\w+\s*[:=]", re.MULTILINE)


def _oversized_body(max_methods: int, max_properties: int) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        body = match.group(0)
        methods = len(_METHOD_LINE_RE.findall(body))
        properties = len(_PROPERTY_LINE_RE.findall(body))
        return methods > max_methods or properties > max_properties

    return predicate


def _chain_deeper_than(token: str, depth: int) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        return text.count(token, match.start()) > depth

    return predicate


def _spans_more_than(lines: int) -> Predicate:
    def predicate(match: re.Match[str], text: str) -> bool:
        return len(match.group(0).split("\n")) > lines

    return predicate


def _optional_call(matched: str) -> str:
    return re.sub(r"\.(\w+)\(\)", r"?.\1()", matched, count=1)


# ---------------------------------------------------------------------------
# Bug detectors


def _javascript_bug_detectors() -> Tuple[Detector, ...]:
    return (
        Detector(
            name="Potential Null Reference",
            pattern=re.compile(r"\w+\.\w+\(\)"),
            severity=Severity.WARNING,
            description="Potential null reference detected",
            remediation=_optional_call,
            predicate=_none_before("?.", "&&"),
        ),
        Detector(
            name="Unhandled Promise",
            pattern=re.compile(r"new Promise\([^)]*\)"),
            severity=Severity.ERROR,
            description="Potential unhandled promise detected",
            remediation=lambda matched: f"{matched}.catch(err => console.error(err))",
            predicate=_none_after(".catch(", ".then("),
        ),
        Detector(
            name="Memory Leak - Event Listener",
            pattern=re.compile(r"addEventListener\([^)]*\)"),
            severity=Severity.WARNING,
            description="Potential memory leak - event listener detected",
            remediation="// Consider removing event listener when component unmounts",
            predicate=_none_after("removeEventListener"),
        ),
        Detector(
            name="Potential Race Condition",
            pattern=re.compile(r"setTimeout\([^)]*\)"),
            severity=Severity.WARNING,
            description="Potential race condition detected",
            remediation="// Consider using clearTimeout to prevent race conditions",
            predicate=_repeated_without("setTimeout", "clearTimeout"),
        ),
    )


def _python_bug_detectors() -> Tuple[Detector, ...]:
    return (
        Detector(
            name="Unsafe File Operation",
            pattern=re.compile(r"open\([^)]*\)"),
            severity=Severity.ERROR,
            description="Potential unsafe file operation detected",
            remediation=lambda matched: f"with {matched} as f:",
            predicate=_text_lacks("with open("),
        ),
        Detector(
            name="Potential Division by Zero",
            pattern=re.compile(r"\w+\s*/\s*\w+"),
            severity=Severity.WARNING,
            description="Potential division by zero detected",
            remediation="# Check for zero before division",
            predicate=_none_after("if", "except"),
        ),
    )


def _java_bug_detectors() -> Tuple[Detector, ...]:
    return (
        Detector(
            name="Resource Leak",
            pattern=re.compile(r"new\s+\w+\([^)]*\)"),
            severity=Severity.WARNING,
            description="Potential resource leak detected",
            remediation="// Consider using try-with-resources",
            predicate=_none_after("try-with-resources", ".close()"),
        ),
    )


# ---------------------------------------------------------------------------
# Architecture detectors

GOD_OBJECT_STEPS: Tuple[str, ...] = (
    "Identify distinct responsibilities in the class",
    "Create separate classes for each responsibility",
    "Use composition or inheritance as appropriate",
    "Update references to use new classes",
)

CALLBACK_HELL_STEPS: Tuple[str, ...] = (
    "Identify the promise chain",
    "Convert to async function",
    "Replace .then() with await",
    "Add proper error handling with try/catch",
)


def _javascript_architecture_detectors(thresholds: AnalysisThresholds) -> Tuple[Detector, ...]:
    return (
        Detector(
            name="God Object",
            pattern=re.compile(r"class\s+\w+\s*\{[\s\S]*?\}"),
            severity=Severity.HIGH,
            description="Oversized component: class declares too many methods or properties",
            remediation=(
                "Consider breaking this class into smaller, focused classes following "
                "Single Responsibility Principle"
            ),
            predicate=_oversized_body(thresholds.max_methods, thresholds.max_properties),
            steps=GOD_OBJECT_STEPS,
        ),
        Detector(
            name="Callback Hell",
            pattern=re.compile(r"\.then\([^)]*\)"),
            severity=Severity.MEDIUM,
            description="Deep chaining: promise continuation chain is too long",
            remediation="Consider using async/await or breaking into smaller functions",
            predicate=_chain_deeper_than(".then(", thresholds.max_chain_depth),
            steps=CALLBACK_HELL_STEPS,
        ),
        Detector(
            name="Circular Dependencies",
            pattern=re.compile(r"import.*from.*['\"]\.\.?/.*['\"]"),
            severity=Severity.HIGH,
            description="Relative import that may participate in a dependency cycle",
            remediation="Review import structure and consider dependency injection or restructuring",
        ),
    )


def _python_architecture_detectors(thresholds: AnalysisThresholds) -> Tuple[Detector, ...]:
    return (
        Detector(
            name="Monolithic Function",
            pattern=re.compile(r"def\s+\w+\s*\([^)]*\):[\s\S]*?return"),
            severity=Severity.MEDIUM,
            description="Function body spans too many lines",
            remediation="Break this function into smaller, focused functions",
            predicate=_spans_more_than(thresholds.max_function_lines),
        ),
    )


# ---------------------------------------------------------------------------
# Security detectors

SQL_INJECTION_STEPS: Tuple[str, ...] = (
    "Identify the vulnerable query",
    "Replace string concatenation with placeholders",
    "Use prepared statements or parameterized queries",
    "Validate and sanitize all inputs",
)

XSS_STEPS: Tuple[str, ...] = (
    "Identify where user input is rendered",
    "Use textContent instead of innerHTML",
    "Sanitize input with DOMPurify or similar",
    "Implement Content Security Policy (CSP)",
)

CREDENTIAL_STEPS: Tuple[str, ...] = (
    "Identify hardcoded credentials",
    "Create environment variables",
    "Update code to read credentials from the environment",
    "Add .env to .gitignore",
    "Document required environment variables",
)

_SQL_EXAMPLE = FixExample(
    before='query("SELECT * FROM users WHERE id = " + userId)',
    after='query("SELECT * FROM users WHERE id = ?", [userId])',
)
_XSS_EXAMPLE = FixExample(
    before="element.innerHTML = userInput",
    after="element.textContent = userInput",
)
_CREDENTIAL_EXAMPLE = FixExample(
    before='const password = "secret123"',
    after="const password = process.env.DB_PASSWORD",
)
_PY_CREDENTIAL_EXAMPLE = FixExample(
    before='password = "secret123"',
    after='password = os.environ["DB_PASSWORD"]',
)

_CREDENTIAL_NAME = r"(password|secret|key|token)"


def _sql_injection(call: str, remediation: str) -> Detector:
    return Detector(
        name="SQL Injection",
        pattern=re.compile(call + r"\([^)]*\+\s*\w+[^)]*\)"),
        severity=Severity.CRITICAL,
        description="Potential SQL injection vulnerability",
        remediation=remediation,
        steps=SQL_INJECTION_STEPS,
        example=_SQL_EXAMPLE,
    )


def _hardcoded_credentials(pattern: str, example: FixExample) -> Detector:
    return Detector(
        name="Hardcoded Credentials",
        pattern=re.compile(pattern, re.IGNORECASE),
        severity=Severity.CRITICAL,
        description="Hardcoded credentials found",
        remediation="Use environment variables or secure credential management",
        steps=CREDENTIAL_STEPS,
        example=example,
    )


def _insecure_http() -> Detector:
    return Detector(
        name="Insecure HTTP",
        pattern=re.compile(r"http://"),
        severity=Severity.MEDIUM,
        description="Insecure HTTP protocol usage",
        remediation="Use HTTPS for all external requests",
    )


def _javascript_security_detectors() -> Tuple[Detector, ...]:
    return (
        _sql_injection(r"query", "Use parameterized queries or prepared statements"),
        Detector(
            name="XSS Vulnerability",
            pattern=re.compile(r"innerHTML\s*=\s*[^;]+"),
            severity=Severity.HIGH,
            description="Potential XSS vulnerability through innerHTML",
            remediation="Use textContent or sanitize input with DOMPurify",
            steps=XSS_STEPS,
            example=_XSS_EXAMPLE,
        ),
        _hardcoded_credentials(_CREDENTIAL_NAME + r"\s*[:=]\s*['\"][^'\"]+['\"]", _CREDENTIAL_EXAMPLE),
        Detector(
            name="Insecure Random",
            pattern=re.compile(r"Math\.random\(\)"),
            severity=Severity.MEDIUM,
            description="Insecure random number generation",
            remediation="Use crypto.getRandomValues() for security-critical operations",
        ),
        Detector(
            name="Eval Usage",
            pattern=re.compile(r"eval\s*\("),
            severity=Severity.CRITICAL,
            description="Dangerous eval() usage",
            remediation="Avoid eval(). Use JSON.parse() or other safe alternatives",
        ),
        _insecure_http(),
    )


def _python_security_detectors() -> Tuple[Detector, ...]:
    return (
        _sql_injection(r"execute", "Use parameterized queries with placeholders"),
        Detector(
            name="Shell Injection",
            pattern=re.compile(r"os\.system\([^)]*\+\s*\w+[^)]*\)"),
            severity=Severity.CRITICAL,
            description="Potential shell injection vulnerability",
            remediation="Use subprocess.run() with proper argument lists",
        ),
        _hardcoded_credentials(_CREDENTIAL_NAME + r"\s*=\s*['\"][^'\"]+['\"]", _PY_CREDENTIAL_EXAMPLE),
        Detector(
            name="Eval Usage",
            pattern=re.compile(r"\b(?:eval|exec)\s*\("),
            severity=Severity.CRITICAL,
            description="Dynamic code execution with eval() or exec()",
            remediation="Avoid eval()/exec(). Use ast.literal_eval() or explicit parsing",
        ),
        Detector(
            name="Insecure Random",
            pattern=re.compile(r"\brandom\.(?:random|randint|randrange|choice|uniform)\s*\("),
            severity=Severity.MEDIUM,
            description="Insecure random number generation",
            remediation="Use the secrets module for security-critical values",
        ),
        _insecure_http(),
    )


def _java_security_detectors() -> Tuple[Detector, ...]:
    return (
        _sql_injection(r"executeQuery", "Use PreparedStatement with parameterized queries"),
        _hardcoded_credentials(_CREDENTIAL_NAME + r"\s*=\s*['\"][^'\"]+['\"]", _CREDENTIAL_EXAMPLE),
        _insecure_http(),
    )


def _go_security_detectors() -> Tuple[Detector, ...]:
    return (
        _hardcoded_credentials(_CREDENTIAL_NAME + r"\s*:?=\s*\"[^\"]+\"", _CREDENTIAL_EXAMPLE),
        Detector(
            name="Insecure Random",
            pattern=re.compile(r"\brand\.(?:Intn|Int63|Int|Float64|Perm)\("),
            severity=Severity.MEDIUM,
            description="Insecure random number generation",
            remediation="Use crypto/rand for security-critical operations",
            predicate=_text_contains('"math/rand"'),
        ),
        _insecure_http(),
    )


# ---------------------------------------------------------------------------
# Registry construction


def build_default_profiles(thresholds: AnalysisThresholds) -> Tuple[LanguageProfile, ...]:
    """Assemble the built-in language profiles."""
    javascript_bugs = _javascript_bug_detectors()
    javascript_architecture = _javascript_architecture_detectors(thresholds)
    javascript_security = _javascript_security_detectors()
    return (
        LanguageProfile(
            name="javascript",
            extensions=(".js", ".jsx", ".mjs"),
            bug_detectors=javascript_bugs,
            architecture_detectors=javascript_architecture,
            security_detectors=javascript_security,
            common_issues=(
                "null reference",
                "undefined variable",
                "async/await error",
                "promise rejection",
                "type coercion",
            ),
            test_commands=("npm test", "npm run test"),
        ),
        LanguageProfile(
            name="typescript",
            extensions=(".ts", ".tsx"),
            bug_detectors=javascript_bugs,
            architecture_detectors=javascript_architecture,
            security_detectors=javascript_security,
            common_issues=(
                "type error",
                "interface mismatch",
                "null reference",
                "async/await error",
            ),
            test_commands=("npm test", "npm run test"),
        ),
        LanguageProfile(
            name="python",
            extensions=(".py",),
            bug_detectors=_python_bug_detectors(),
            architecture_detectors=_python_architecture_detectors(thresholds),
            security_detectors=_python_security_detectors(),
            common_issues=(
                "indentation error",
                "import error",
                "type error",
                "attribute error",
                "key error",
            ),
            test_commands=("pytest", "python -m unittest", "nosetests"),
            fragment_style="python",
        ),
        LanguageProfile(
            name="java",
            extensions=(".java",),
            bug_detectors=_java_bug_detectors(),
            security_detectors=_java_security_detectors(),
            common_issues=(
                "null pointer exception",
                "class not found",
                "compilation error",
                "type mismatch",
            ),
            test_commands=("mvn test", "./gradlew test"),
            fragment_style="java",
        ),
        LanguageProfile(
            name="go",
            extensions=(".go",),
            bug_detectors=javascript_bugs,
            security_detectors=_go_security_detectors(),
            common_issues=(
                "nil pointer dereference",
                "import error",
                "type error",
                "compilation error",
            ),
            test_commands=("go test ./...", "go test -v ./..."),
            fragment_style="go",
        ),
    )


def build_default_registry(thresholds: AnalysisThresholds | None = None) -> PatternRegistry:
    """Construct the registry used by the CLI and orchestrator."""
    limits = thresholds or AnalysisThresholds()
    return PatternRegistry(build_default_profiles(limits), thresholds=limits)


__all__ = [
    "AnalysisThresholds",
    "BASELINE_LANGUAGE",
    "CALLBACK_HELL_STEPS",
    "CREDENTIAL_STEPS",
    "Detector",
    "GOD_OBJECT_STEPS",
    "LanguageProfile",
    "PatternRegistry",
    "SQL_INJECTION_STEPS",
    "XSS_STEPS",
    "build_default_profiles",
    "build_default_registry",
]

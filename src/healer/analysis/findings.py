"""Typed findings emitted by the bug, architecture, and security passes."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Concern(str, Enum):
    """Analysis concern a detector or finding belongs to."""

    BUG = "bug"
    ARCHITECTURE = "architecture"
    SECURITY = "security"


class Severity(str, Enum):
    """Severity labels drawn from each concern's fixed vocabulary.

    Bug detectors use ``warning``/``error``; architecture and security
    detectors use ``low`` through ``critical``.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.WARNING: 1,
    Severity.MEDIUM: 2,
    Severity.ERROR: 3,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

SECURITY_SEVERITY_ORDER: Tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
)

BUG_SEVERITIES: FrozenSet[Severity] = frozenset({Severity.WARNING, Severity.ERROR})
TIERED_SEVERITIES: FrozenSet[Severity] = frozenset(SECURITY_SEVERITY_ORDER)


class FindingModel(BaseModel):
    """Base Pydantic model for immutable finding records."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class FixExample(FindingModel):
    """Before/after illustration attached to a remediation."""

    before: str
    after: str


class Finding(FindingModel):
    """Common shape shared by every finding variant."""

    kind: Concern
    name: str
    severity: Severity
    description: str
    path: Path
    line: int = Field(ge=1)
    snippet: str = ""
    remediation: str = ""
    steps: Tuple[str, ...] = ()

    allowed_severities: ClassVar[FrozenSet[Severity]] = frozenset(Severity)

    @field_validator("severity")
    @classmethod
    def severity_in_vocabulary(cls, value: Severity) -> Severity:
        if value not in cls.allowed_severities:
            allowed = ", ".join(sorted(item.value for item in cls.allowed_severities))
            raise ValueError(f"{value.value!r} is not a {cls.__name__} severity (expected one of: {allowed})")
        return value

    @property
    def location(self) -> str:
        return f"{self.path.as_posix()}:{self.line}"

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-compatible view of the finding."""

        return self.model_dump(mode="json")


class BugFinding(Finding):
    """Likely defect reported by the bug pass."""

    kind: Literal[Concern.BUG] = Concern.BUG
    allowed_severities: ClassVar[FrozenSet[Severity]] = BUG_SEVERITIES


class ArchitectureFinding(Finding):
    """Structural smell reported by the architecture pass."""

    kind: Literal[Concern.ARCHITECTURE] = Concern.ARCHITECTURE
    allowed_severities: ClassVar[FrozenSet[Severity]] = TIERED_SEVERITIES
    files: Tuple[Path, ...] = ()
    count: Optional[int] = None


class SecurityFinding(Finding):
    """Vulnerability or misconfiguration reported by the security pass."""

    kind: Literal[Concern.SECURITY] = Concern.SECURITY
    allowed_severities: ClassVar[FrozenSet[Severity]] = TIERED_SEVERITIES
    package: Optional[str] = None
    version: Optional[str] = None
    example: Optional[FixExample] = None


FINDING_TYPES: Dict[Concern, type[Finding]] = {
    Concern.BUG: BugFinding,
    Concern.ARCHITECTURE: ArchitectureFinding,
    Concern.SECURITY: SecurityFinding,
}


def group_by_severity(
    findings: Iterable[Finding],
    order: Sequence[Severity] = SECURITY_SEVERITY_ORDER,
) -> Dict[Severity, Tuple[Finding, ...]]:
    """Project ``findings`` into severity buckets without reordering them.

    Buckets follow ``order``; severities outside ``order`` are dropped from the
    projection.  Each bucket preserves scan order.
    """

    buckets: Dict[Severity, list[Finding]] = {severity: [] for severity in order}
    for finding in findings:
        bucket = buckets.get(finding.severity)
        if bucket is not None:
            bucket.append(finding)
    return {severity: tuple(items) for severity, items in buckets.items()}


__all__ = [
    "ArchitectureFinding",
    "BUG_SEVERITIES",
    "BugFinding",
    "Concern",
    "FINDING_TYPES",
    "Finding",
    "FixExample",
    "SECURITY_SEVERITY_ORDER",
    "SecurityFinding",
    "Severity",
    "TIERED_SEVERITIES",
    "group_by_severity",
]

"""Pattern-based bug, architecture, and security analysis."""

from .architecture import ArchitecturePass, analyze_architecture, format_architecture_report, refactoring_suggestions
from .bugs import BugPass, analyze_bugs, format_bug_report
from .engine import AnalysisPass, AnalysisResult, Suggestion, format_suggestions
from .findings import ArchitectureFinding, BugFinding, Concern, Finding, SecurityFinding, Severity
from .manifest import ManifestParseError
from .registry import AnalysisThresholds, Detector, LanguageProfile, PatternRegistry, build_default_registry
from .scanner import FilesystemError, Project, scan_project
from .security import SecurityPass, analyze_security, format_security_report, security_fix_suggestions

__all__ = [
    "AnalysisPass",
    "AnalysisResult",
    "AnalysisThresholds",
    "ArchitectureFinding",
    "ArchitecturePass",
    "BugFinding",
    "BugPass",
    "Concern",
    "Detector",
    "FilesystemError",
    "Finding",
    "LanguageProfile",
    "ManifestParseError",
    "PatternRegistry",
    "Project",
    "SecurityFinding",
    "SecurityPass",
    "Severity",
    "Suggestion",
    "analyze_architecture",
    "analyze_bugs",
    "analyze_security",
    "build_default_registry",
    "format_architecture_report",
    "format_bug_report",
    "format_security_report",
    "format_suggestions",
    "refactoring_suggestions",
    "scan_project",
    "security_fix_suggestions",
]

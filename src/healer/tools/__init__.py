"""Tool integrations used by the healing loop."""

from .patch import (
    ExtractionFailure,
    PatchApplicationResult,
    PatchCandidate,
    PatchError,
    apply_patch,
    classify_candidate,
    extract_code,
    prepare_patch,
    write_patch,
)
from .test_runner import TestResult, TestRunnerError, resolve_test_command, run_tests

__all__ = [
    "ExtractionFailure",
    "PatchApplicationResult",
    "PatchCandidate",
    "PatchError",
    "TestResult",
    "TestRunnerError",
    "apply_patch",
    "classify_candidate",
    "extract_code",
    "prepare_patch",
    "resolve_test_command",
    "run_tests",
    "write_patch",
]

"""Recover source code from free-form model replies and write it to the target file.

Extraction runs three independent tiers, first match wins:

1. a fenced block tagged with a known language identifier,
2. a fenced block with no identifier,
3. the whole trimmed reply, when it holds no fence at all but carries a
   structural keyword and spans more than :data:`BARE_CODE_MIN_LINES` lines.

The extracted candidate is then classified as a whole file, a single-function
fragment, or an unrecoverable snippet, and rendered into the text that fully
replaces the target file.  No backup is taken.
"""

from __future__ import annotations

import logging
import re
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Literal, Mapping

from ..telemetry import emit_event

LOGGER = logging.getLogger(__name__)

PatchKind = Literal["whole-file", "fragment", "unrecoverable"]
ExtractionTier = Literal["tagged-fence", "untagged-fence", "bare-code"]
FragmentStyle = Literal["brace", "python", "go", "java"]

KNOWN_LANGUAGE_TAGS: frozenset[str] = frozenset(
    {"js", "javascript", "jsx", "ts", "typescript", "tsx", "py", "python", "java", "go"}
)
BARE_CODE_MIN_LINES = 5
WHOLE_FILE_MIN_LINES = 20

_FENCE_RE = re.compile(r"```(?P<tag>[^\n`]*)\n(?P<body>[\s\S]*?)\n?[ \t]*```")
_STRUCTURAL_KEYWORD_RE = re.compile(r"\b(?:function|class|import|export|def)\b")
_WHOLE_FILE_RE = re.compile(
    r"module\.exports|\bexports\.\w+"
    r"|^\s*(?:import|export)\b"
    r"|^\s*from\s+[\w.]+\s+import\b"
    r"|^\s*package\s+[\w.]+"
    r"|\b(?:class|interface|struct)\s+\w+"
    r"|\btype\s+\w+\s+(?:struct|interface)\b",
    re.MULTILINE,
)
# JavaScript and TypeScript; the return annotation only appears in TypeScript.
_BRACE_FUNCTION_RE = re.compile(
    r"(?:export\s+(?:default\s+)?)?(?P<modifiers>async\s+)?function\s+(?P<name>\w+)\s*(?:<[^>(]*>)?\s*"
    r"\((?P<params>[^)]*)\)(?:\s*:\s*(?P<returns>[^{=]+?))?\s*\{(?P<body>[\s\S]*)\}"
)
_ARROW_FUNCTION_RE = re.compile(
    r"(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*=\s*(?P<modifiers>async\s*)?"
    r"\((?P<params>[^)]*)\)(?:\s*:\s*(?P<returns>[^{=]+?))?\s*=>\s*\{(?P<body>[\s\S]*)\}"
)
_PYTHON_FUNCTION_RE = re.compile(
    r"^def\s+(?P<name>\w+)\s*\((?P<params>[^)]*)\)\s*(?:->\s*(?P<returns>[^:\n]+))?:[ \t]*\n"
    r"(?P<body>(?:[ \t]+\S.*(?:\n|$)|[ \t]*\n)+)",
    re.MULTILINE,
)
_GO_FUNCTION_RE = re.compile(
    r"^func\s+(?P<modifiers>\([^)]*\)\s*)?(?P<name>\w+)\s*\((?P<params>[^)]*)\)[ \t]*"
    r"(?P<returns>[^{\n]*?)\s*\{(?P<body>[\s\S]*)\}",
    re.MULTILINE,
)
_JAVA_METHOD_RE = re.compile(
    r"^[ \t]*(?!(?:return|new|else|throw)\b)(?P<modifiers>(?:[\w<>\[\],.?]+[ \t]+)+?)"
    r"(?P<name>\w+)\s*\((?P<params>[^)]*)\)(?:\s*(?P<returns>throws\s+[\w.,\s]+?))?\s*\{(?P<body>[\s\S]*)\}",
    re.MULTILINE,
)
_RETURN_RE = re.compile(r"^\s*return\b", re.MULTILINE)
_FUNCTION_HEADER_RE = {
    "brace": re.compile(
        r"\bfunction\s+\w+\s*(?:<[^>(]*>)?\s*\("
        r"|\b(?:const|let|var)\s+\w+\s*=\s*(?:async\s*)?\([^)]*\)(?:\s*:\s*[^{=]+?)?\s*=>"
    ),
    "python": re.compile(r"^\s*(?:async\s+)?def\s+\w+\s*\(", re.MULTILINE),
    "go": re.compile(r"^\s*func\s+(?:\([^)]*\)\s*)?\w+\s*\(", re.MULTILINE),
    "java": re.compile(
        r"^[ \t]*(?!(?:return|new|else|throw)\b)(?:[\w<>\[\],.?]+[ \t]+)+?\w+\s*\([^)]*\)"
        r"(?:\s*throws\s+[\w.,\s]+?)?\s*\{",
        re.MULTILINE,
    ),
}
_FUNCTION_SHAPES = {
    "brace": (_BRACE_FUNCTION_RE, _ARROW_FUNCTION_RE),
    "python": (_PYTHON_FUNCTION_RE,),
    "go": (_GO_FUNCTION_RE,),
    "java": (_JAVA_METHOD_RE,),
}
_ES_EXPORT_RE = re.compile(r"^\s*export\b", re.MULTILINE)
_PACKAGE_RE = re.compile(r"^package[ \t]+[\w.]+[ \t]*;?[ \t]*$", re.MULTILINE)
_JAVA_CLASS_RE = re.compile(r"\bclass\s+(\w+)")
_SUFFIX_STYLES: dict[str, FragmentStyle] = {".py": "python", ".go": "go", ".java": "java"}


class PatchError(RuntimeError):
    """Raised when a patch cannot be prepared or written."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class ExtractionFailure(PatchError):
    """Raised when no code can be recovered from a model response."""


@dataclass(slots=True, frozen=True)
class FunctionSignature:
    """Name, parameters, and the text around them needed to re-emit a header.

    ``modifiers`` holds ``async`` for JavaScript, the receiver for Go, and the
    modifiers plus return type for Java.  ``returns`` holds the return
    annotation (TypeScript, Python, Go) or a Java ``throws`` clause.
    """

    name: str
    params: str
    returns: str = ""
    modifiers: str = ""


@dataclass(slots=True)
class PatchCandidate:
    """Code recovered from one model response and how it was classified."""

    response: str
    code: str | None = None
    kind: PatchKind | None = None
    source: ExtractionTier | None = None
    signature: FunctionSignature | None = None
    body: str | None = None


@dataclass(slots=True)
class PreparedPatch:
    """Target path plus the full text that will replace it."""

    path: Path
    candidate: PatchCandidate
    content: str


@dataclass(slots=True)
class PatchApplicationResult:
    """Outcome of writing a prepared patch."""

    path: Path
    kind: PatchKind
    source: ExtractionTier
    content: str
    bytes_written: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path.as_posix(),
            "kind": self.kind,
            "source": self.source,
            "bytes_written": self.bytes_written,
        }


# ---------------------------------------------------------------------------
# Extraction tiers


def _fences(response: str) -> Iterator[tuple[str, str]]:
    for match in _FENCE_RE.finditer(response):
        body = match.group("body").strip()
        if body:
            yield match.group("tag").strip().lower(), body


def extract_tagged_fence(response: str) -> str | None:
    """Return the first non-empty fenced block tagged with a known language."""
    for tag, body in _fences(response):
        if tag in KNOWN_LANGUAGE_TAGS:
            return body
    return None


def extract_untagged_fence(response: str) -> str | None:
    """Return the first non-empty fenced block that carries no language tag."""
    for tag, body in _fences(response):
        if not tag:
            return body
    return None


def extract_bare_code(response: str) -> str | None:
    """Treat the whole reply as code when it looks like an unfenced source file."""
    if "```" in response:
        return None
    trimmed = response.strip()
    if not _STRUCTURAL_KEYWORD_RE.search(trimmed):
        return None
    if len(trimmed.splitlines()) <= BARE_CODE_MIN_LINES:
        return None
    return trimmed


_TIERS: tuple[tuple[ExtractionTier, Any], ...] = (
    ("tagged-fence", extract_tagged_fence),
    ("untagged-fence", extract_untagged_fence),
    ("bare-code", extract_bare_code),
)


def extract_code(response: str) -> tuple[str, ExtractionTier]:
    """Run the extraction tiers in order and return the code plus the tier that matched."""
    for tier, extractor in _TIERS:
        code = extractor(response)
        if code is not None:
            return code, tier
    raise ExtractionFailure(
        "No code block found in model response",
        details={"response_lines": len(response.splitlines())},
    )


# ---------------------------------------------------------------------------
# Classification and rendering


def _signature_from(match: re.Match[str]) -> FunctionSignature:
    groups = match.groupdict()
    return FunctionSignature(
        name=match.group("name"),
        params=match.group("params").strip(),
        returns=" ".join((groups.get("returns") or "").split()),
        modifiers=" ".join((groups.get("modifiers") or "").split()),
    )


def _function_shape(code: str, fragment_style: FragmentStyle) -> tuple[FunctionSignature, str] | None:
    if len(_FUNCTION_HEADER_RE[fragment_style].findall(code)) != 1:
        return None
    for pattern in _FUNCTION_SHAPES[fragment_style]:
        match = pattern.search(code)
        if match is None:
            continue
        if fragment_style == "python":
            body = textwrap.dedent(match.group("body")).strip()
        else:
            body = textwrap.dedent(match.group("body").strip("\n")).strip()
        return _signature_from(match), body
    return None


def find_signature(text: str, fragment_style: FragmentStyle) -> FunctionSignature | None:
    """Return the first function signature declared in ``text``."""
    found: list[tuple[int, FunctionSignature]] = []
    for pattern in _FUNCTION_SHAPES[fragment_style]:
        match = pattern.search(text)
        if match is not None:
            found.append((match.start(), _signature_from(match)))
    if not found:
        return None
    return min(found, key=lambda item: item[0])[1]


def is_whole_file(code: str) -> bool:
    return bool(_WHOLE_FILE_RE.search(code)) or len(code.splitlines()) > WHOLE_FILE_MIN_LINES


def classify_candidate(code: str, *, fragment_style: FragmentStyle = "brace") -> PatchKind:
    """Decide whether ``code`` replaces the whole file, is one function, or neither."""
    if is_whole_file(code):
        return "whole-file"
    if _function_shape(code, fragment_style) is not None:
        return "fragment"
    # A bare body: a return statement with no function header of its own.
    if _RETURN_RE.search(code) and not _FUNCTION_HEADER_RE[fragment_style].search(code):
        return "fragment"
    return "unrecoverable"


def build_candidate(response: str, *, fragment_style: FragmentStyle = "brace") -> PatchCandidate:
    """Extract and classify ``response``; ``code`` is ``None`` when nothing was recovered."""
    try:
        code, source = extract_code(response)
    except ExtractionFailure:
        return PatchCandidate(response=response)
    kind = classify_candidate(code, fragment_style=fragment_style)
    candidate = PatchCandidate(response=response, code=code, kind=kind, source=source)
    if kind == "fragment":
        shape = _function_shape(code, fragment_style)
        if shape is not None:
            candidate.signature, candidate.body = shape
        else:
            candidate.body = textwrap.dedent(code).strip()
    return candidate


def _uses_es_exports(target_text: str) -> bool:
    return bool(_ES_EXPORT_RE.search(target_text))


def _preamble(fragment_style: FragmentStyle, file_name: str | None, target_text: str) -> list[str]:
    lines = []
    if file_name:
        lines.append(f"{'#' if fragment_style == 'python' else '//'} {file_name}")
    if fragment_style in ("go", "java"):
        package = _PACKAGE_RE.search(target_text)
        if package is not None:
            lines.extend([package.group(0).strip(), ""])
        elif fragment_style == "go":
            lines.extend(["package main", ""])
    return lines


def _java_class_name(target_text: str, file_name: str | None) -> str:
    match = _JAVA_CLASS_RE.search(target_text)
    if match is not None:
        return match.group(1)
    return Path(file_name).stem if file_name else "Main"


def default_signature(file_name: str | None, fragment_style: FragmentStyle = "brace") -> FunctionSignature:
    """Parameterless signature named after the file, for bodies with nothing else to go on."""
    stem = re.sub(r"\W", "_", Path(file_name).stem) if file_name else ""
    if not stem or stem[0].isdigit():
        stem = f"_{stem}"
    modifiers = "public static void" if fragment_style == "java" else ""
    return FunctionSignature(name=stem, params="", modifiers=modifiers)


def synthesize_fragment(
    body: str,
    signature: FunctionSignature,
    *,
    fragment_style: FragmentStyle = "brace",
    file_name: str | None = None,
    target_text: str = "",
) -> str:
    """Wrap a function body in a complete source file that keeps the target's exports."""
    lines = _preamble(fragment_style, file_name, target_text)
    name, params = signature.name, signature.params
    if fragment_style == "python":
        returns = f" -> {signature.returns}" if signature.returns else ""
        lines.append(f"def {name}({params}){returns}:")
        lines.append(textwrap.indent(body, "    "))
    elif fragment_style == "go":
        receiver = f"{signature.modifiers} " if signature.modifiers else ""
        returns = f" {signature.returns}" if signature.returns else ""
        lines.append(f"func {receiver}{name}({params}){returns} {{")
        lines.append(textwrap.indent(body, "\t"))
        lines.append("}")
    elif fragment_style == "java":
        modifiers = signature.modifiers or "public static void"
        throws = f" {signature.returns}" if signature.returns else ""
        lines.append(f"public class {_java_class_name(target_text, file_name)} {{")
        lines.append(f"    {modifiers} {name}({params}){throws} {{")
        lines.append(textwrap.indent(body, "        "))
        lines.append("    }")
        lines.append("}")
    else:
        es_module = _uses_es_exports(target_text)
        export = "export " if es_module else ""
        prefix = f"{signature.modifiers} " if signature.modifiers else ""
        returns = f": {signature.returns}" if signature.returns else ""
        lines.append(f"{export}{prefix}function {name}({params}){returns} {{")
        lines.append(textwrap.indent(body, "  "))
        lines.append("}")
        if not es_module:
            lines.append("")
            lines.append(f"module.exports = {{ {name} }};")
    return "\n".join(lines) + "\n"


def wrap_unrecoverable(
    code: str,
    *,
    fragment_style: FragmentStyle = "brace",
    file_name: str | None = None,
    export_name: str | None = None,
    target_text: str = "",
) -> str:
    """Minimal file around code that matched no known shape."""
    lines = _preamble(fragment_style, file_name, target_text)
    lines.append(code)
    if export_name and fragment_style == "brace":
        lines.append("")
        if _uses_es_exports(target_text):
            lines.append(f"export {{ {export_name} }};")
        else:
            lines.append(f"module.exports = {{ {export_name} }};")
    return "\n".join(lines) + "\n"


def render_candidate(
    candidate: PatchCandidate,
    *,
    target_text: str = "",
    fragment_style: FragmentStyle = "brace",
    file_name: str | None = None,
) -> str:
    """Return the full replacement text for ``candidate``."""
    if candidate.code is None or candidate.kind is None:
        raise ExtractionFailure("Candidate has no code to render")
    if candidate.kind == "whole-file":
        code = candidate.code
        return code if code.endswith("\n") else code + "\n"

    fallback = find_signature(target_text, fragment_style)
    if candidate.kind == "fragment" and candidate.body is not None:
        signature = candidate.signature or fallback
        if signature is None:
            signature = default_signature(file_name, fragment_style)
            LOGGER.warning("No function signature to wrap fragment in; using %s()", signature.name)
        return synthesize_fragment(
            candidate.body,
            signature,
            fragment_style=fragment_style,
            file_name=file_name,
            target_text=target_text,
        )
    return wrap_unrecoverable(
        candidate.code,
        fragment_style=fragment_style,
        file_name=file_name,
        export_name=fallback.name if fallback else None,
        target_text=target_text,
    )


# ---------------------------------------------------------------------------
# Application


def fragment_style_for(path: Path) -> FragmentStyle:
    return _SUFFIX_STYLES.get(path.suffix, "brace")


def _read_target(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except (OSError, UnicodeDecodeError) as error:
        raise PatchError(f"Unable to read patch target {path}: {error}", details={"path": path.as_posix()}) from error


def prepare_patch(
    file_path: Path | str,
    response: str,
    *,
    fragment_style: FragmentStyle | None = None,
) -> PreparedPatch:
    """Extract, classify, and render ``response`` without touching ``file_path``."""

    path = Path(file_path)
    style = fragment_style or fragment_style_for(path)
    candidate = build_candidate(response, fragment_style=style)
    if candidate.code is None:
        emit_event("patch_extraction_failed", path=path, response_lines=len(response.splitlines()))
        raise ExtractionFailure(
            "No code block found in model response",
            details={"path": path.as_posix()},
        )
    content = render_candidate(
        candidate,
        target_text=_read_target(path),
        fragment_style=style,
        file_name=path.name,
    )
    LOGGER.info("Extracted %s patch from %s", candidate.kind, candidate.source)
    return PreparedPatch(path=path, candidate=candidate, content=content)


def write_patch(prepared: PreparedPatch) -> PatchApplicationResult:
    """Overwrite the target file with the prepared content."""
    candidate = prepared.candidate
    if candidate.kind is None or candidate.source is None:
        raise PatchError("Prepared patch has not been classified", details={"path": prepared.path.as_posix()})
    try:
        prepared.path.write_text(prepared.content, encoding="utf-8")
    except OSError as error:
        emit_event("patch_write_failed", path=prepared.path, error=str(error))
        raise PatchError(
            f"Unable to write patch to {prepared.path}: {error}",
            details={"path": prepared.path.as_posix()},
        ) from error

    result = PatchApplicationResult(
        path=prepared.path,
        kind=candidate.kind,
        source=candidate.source,
        content=prepared.content,
        bytes_written=len(prepared.content.encode("utf-8")),
    )
    emit_event("patch_applied", **result.to_dict())
    return result


def apply_patch(file_path: Path | str, response: str) -> bool:
    """Apply ``response`` to ``file_path``; ``False`` means the file was left untouched."""
    try:
        write_patch(prepare_patch(file_path, response))
    except PatchError as error:
        LOGGER.warning("Patch not applied to %s: %s", file_path, error)
        return False
    return True


__all__ = [
    "BARE_CODE_MIN_LINES",
    "ExtractionFailure",
    "ExtractionTier",
    "FunctionSignature",
    "KNOWN_LANGUAGE_TAGS",
    "PatchApplicationResult",
    "PatchCandidate",
    "PatchError",
    "PatchKind",
    "PreparedPatch",
    "WHOLE_FILE_MIN_LINES",
    "apply_patch",
    "build_candidate",
    "classify_candidate",
    "default_signature",
    "extract_bare_code",
    "extract_code",
    "extract_tagged_fence",
    "extract_untagged_fence",
    "find_signature",
    "fragment_style_for",
    "prepare_patch",
    "render_candidate",
    "synthesize_fragment",
    "wrap_unrecoverable",
    "write_patch",
]

"""Dependency manifest readers used by the architecture and security passes."""

from __future__ import annotations

import json
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

MANIFEST_NAMES: tuple[str, ...] = ("package.json", "pyproject.toml", "requirements.txt")

_REQUIREMENT_RE = re.compile(r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)(?:\[[^\]]*\])?\s*(?P<spec>.*)$")


class ManifestParseError(ValueError):
    """Raised when a dependency manifest cannot be parsed."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class PackageJson(BaseModel):
    """Subset of ``package.json`` the analysis passes care about."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    dependencies: Dict[str, str] = Field(default_factory=dict)
    dev_dependencies: Dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    scripts: Dict[str, str] = Field(default_factory=dict)


@dataclass(slots=True)
class DependencyManifest:
    """Normalised dependency listing for one manifest file."""

    path: Path
    ecosystem: str
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)

    def all_dependencies(self) -> Dict[str, str]:
        """Merge runtime and development dependencies (dev entries win)."""
        merged = dict(self.dependencies)
        merged.update(self.dev_dependencies)
        return merged


def read_package_json(path: Path) -> PackageJson:
    """Load and validate a ``package.json`` file."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as error:
        raise ManifestParseError(f"Unable to read {path}: {error}", path=path) from error
    except json.JSONDecodeError as error:
        raise ManifestParseError(f"Invalid JSON in {path}: {error}", path=path) from error
    if not isinstance(raw, Mapping):
        raise ManifestParseError(f"Expected a JSON object at the top level of {path}", path=path)
    try:
        return PackageJson.model_validate(raw)
    except ValidationError as error:
        raise ManifestParseError(f"Unexpected manifest structure in {path}: {error}", path=path) from error


def _split_requirement(entry: str) -> tuple[str, str] | None:
    match = _REQUIREMENT_RE.match(entry)
    if not match:
        return None
    spec = match.group("spec").split(";", 1)[0].strip()
    return match.group("name").lower(), spec or "*"


def _requirements_from(entries: Any, path: Path) -> Dict[str, str]:
    if entries is None:
        return {}
    if not isinstance(entries, list) or not all(isinstance(item, str) for item in entries):
        raise ManifestParseError(f"Expected a list of requirement strings in {path}", path=path)
    parsed: Dict[str, str] = {}
    for entry in entries:
        split = _split_requirement(entry)
        if split is not None:
            parsed[split[0]] = split[1]
    return parsed


def _load_pyproject(path: Path) -> DependencyManifest:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError as error:
        raise ManifestParseError(f"Unable to read {path}: {error}", path=path) from error
    except tomllib.TOMLDecodeError as error:
        raise ManifestParseError(f"Invalid TOML in {path}: {error}", path=path) from error

    project = data.get("project") or {}
    if not isinstance(project, Mapping):
        raise ManifestParseError(f"[project] must be a table in {path}", path=path)
    runtime = _requirements_from(project.get("dependencies"), path)

    optional = project.get("optional-dependencies") or {}
    if not isinstance(optional, Mapping):
        raise ManifestParseError(f"[project.optional-dependencies] must be a table in {path}", path=path)
    development: Dict[str, str] = {}
    for group in optional.values():
        development.update(_requirements_from(group, path))
    return DependencyManifest(path=path, ecosystem="pypi", dependencies=runtime, dev_dependencies=development)


def _load_requirements(path: Path) -> DependencyManifest:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as error:
        raise ManifestParseError(f"Unable to read {path}: {error}", path=path) from error
    runtime: Dict[str, str] = {}
    for raw_line in lines:
        line = raw_line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        split = _split_requirement(line)
        if split is not None:
            runtime[split[0]] = split[1]
    return DependencyManifest(path=path, ecosystem="pypi", dependencies=runtime)


def load_manifest(path: Path) -> DependencyManifest:
    """Parse the manifest at ``path`` based on its file name."""
    name = path.name
    if name == "package.json":
        package = read_package_json(path)
        return DependencyManifest(
            path=path,
            ecosystem="npm",
            dependencies=dict(package.dependencies),
            dev_dependencies=dict(package.dev_dependencies),
        )
    if name == "pyproject.toml":
        return _load_pyproject(path)
    if name == "requirements.txt":
        return _load_requirements(path)
    raise ManifestParseError(f"Unsupported manifest type: {name}", path=path)


def find_manifests(root: Path) -> List[Path]:
    """Return the known manifest files present directly in ``root``."""
    return [root / name for name in MANIFEST_NAMES if (root / name).is_file()]


__all__ = [
    "DependencyManifest",
    "MANIFEST_NAMES",
    "ManifestParseError",
    "PackageJson",
    "find_manifests",
    "load_manifest",
    "read_package_json",
]

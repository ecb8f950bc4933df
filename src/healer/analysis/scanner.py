"""Project discovery: enumerate candidate source files and tag their language."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from .registry import PatternRegistry

SKIPPED_DIRECTORIES: frozenset[str] = frozenset({"node_modules"})


class FilesystemError(OSError):
    """Raised when the project root cannot be listed."""


@dataclass(slots=True)
class Project:
    """Source files discovered beneath ``root`` for one scan."""

    root: Path
    files: Tuple[Path, ...] = ()
    languages: Mapping[Path, str] = field(default_factory=dict)

    def language_of(self, path: Path) -> str | None:
        return self.languages.get(path)

    def root_files(self) -> Tuple[Path, ...]:
        """Return discovered files that sit directly inside ``root``."""
        return tuple(path for path in self.files if path.parent == self.root)


def _skip_directory(name: str) -> bool:
    return name.startswith(".") or name in SKIPPED_DIRECTORIES


def _list_directory(directory: Path) -> List[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as iterator:
            return sorted(iterator, key=lambda entry: entry.name)
    except OSError as error:
        raise FilesystemError(f"Unable to list {directory}: {error}") from error


def discover(root: Path | str, registry: PatternRegistry) -> List[Path]:
    """Return source files under ``root`` in depth-first, name-sorted order.

    Hidden directories and dependency caches are skipped; a file qualifies
    when its suffix is one of the registry's known extensions.  Any failure to
    list a directory raises :class:`FilesystemError`.
    """

    root_path = Path(root)
    if not root_path.is_dir():
        raise FilesystemError(f"Project root does not exist or is not a directory: {root_path}")

    found: List[Path] = []

    def _walk(directory: Path) -> None:
        for entry in _list_directory(directory):
            path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                if not _skip_directory(entry.name):
                    _walk(path)
            elif entry.is_file() and registry.is_source_file(path):
                found.append(path)

    _walk(root_path)
    return found


def classify(path: Path | str, registry: PatternRegistry) -> str:
    """Return the language tag for ``path`` (baseline language when unknown)."""
    return registry.classify(path)


def scan_project(root: Path | str, registry: PatternRegistry) -> Project:
    """Discover and classify every source file beneath ``root``."""
    root_path = Path(root)
    files = discover(root_path, registry)
    languages: Dict[Path, str] = {path: registry.classify(path) for path in files}
    return Project(root=root_path, files=tuple(files), languages=languages)


__all__ = [
    "FilesystemError",
    "Project",
    "SKIPPED_DIRECTORIES",
    "classify",
    "discover",
    "scan_project",
]

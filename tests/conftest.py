from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


PYTEST_COMMAND = [sys.executable, "-m", "pytest", "-q", "-p", "no:cacheprovider"]

BROKEN_CALC = textwrap.dedent(
    """
    def add(a, b):
        return a - b
    """
).lstrip()

FIXED_CALC_RESPONSE = textwrap.dedent(
    """
    The subtraction should be an addition:

    ```python
    def add(a, b):
        return a + b
    ```
    """
).lstrip()


@dataclass(slots=True)
class CalcProject:
    """Fixture payload for a one-module Python project with a pytest suite."""

    root: Path
    target: Path

    def config(self, **project_overrides: object) -> dict[str, object]:
        project: dict[str, object] = {"root": self.root.as_posix(), "test_command": PYTEST_COMMAND}
        project.update(project_overrides)
        return {"project": project, "repair": {"confirm": "always"}}


@pytest.fixture()
def calc_project(tmp_path: Path) -> CalcProject:
    """Create a project whose only test fails until ``add`` is fixed."""

    root = tmp_path / "calc-project"
    root.mkdir()
    target = root / "calc.py"
    target.write_text(BROKEN_CALC, encoding="utf-8")
    (root / "test_calc.py").write_text(
        textwrap.dedent(
            """
            from calc import add


            def test_add_returns_sum() -> None:
                assert add(2, 3) == 5
            """
        ).lstrip(),
        encoding="utf-8",
    )
    return CalcProject(root=root, target=target)

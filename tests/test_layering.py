"""
tests/test_layering.py
Static import analysis for the package layering:
  core       → may NOT import database, dashboard
  database   → may NOT import core, dashboard
  dashboard  → may NOT import core directly
  utils/data → may NOT import any of the above

main.py is the only place the layers are wired together.

Run: pytest tests/test_layering.py -v
"""

import sys, os, ast
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

FORBIDDEN = {
    "core":      {"database", "dashboard", "main"},
    "database":  {"core", "dashboard", "main"},
    "dashboard": {"core", "main"},
    "utils":     {"core", "database", "dashboard", "main"},
    "data":      {"core", "database", "dashboard", "main", "utils"},
}


def imported_tops(source: str) -> set[str]:
    """Top-level package names a module imports (absolute imports only)."""
    tops = set()
    for node in ast.walk(ast.parse(source)):
        if isinstance(node, ast.Import):
            tops.update(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            tops.add(node.module.split(".")[0])
    return tops


def violations(package: str) -> list[str]:
    pkg_dir = ROOT / package
    found = []
    for pyfile in sorted(pkg_dir.rglob("*.py")):
        bad = imported_tops(pyfile.read_text()) & FORBIDDEN[package]
        found.extend(f"{pyfile.relative_to(ROOT)} imports {name}" for name in sorted(bad))
    return found


class TestLayering:

    @pytest.mark.parametrize("package", sorted(FORBIDDEN))
    def test_package_respects_layering(self, package):
        assert (ROOT / package).is_dir(), f"missing package {package}"
        assert violations(package) == []

    def test_main_wires_the_layers(self):
        tops = imported_tops((ROOT / "main.py").read_text())
        assert {"database", "utils"} <= tops

    def test_detector_sees_function_level_imports(self):
        src = "def f():\n    from database.repository import Repository\n"
        assert "database" in imported_tops(src)

    def test_relative_imports_ignored(self):
        assert imported_tops("from . import models\n") == set()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

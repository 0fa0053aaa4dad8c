"""Repository-level integrity checks."""

from __future__ import annotations

import importlib
import re
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
CONFLICT_PATTERN = re.compile(r"^(<<<<<<<|=======|>>>>>>>)", re.MULTILINE)
IGNORED_PARTS = {".git", "__pycache__", ".mypy_cache", ".pytest_cache", ".venv"}
IGNORED_SUFFIXES = {".db", ".sqlite", ".pyc"}


def _source_files() -> list[Path]:
    files: list[Path] = []
    for path in REPO_ROOT.rglob("*"):
        if not path.is_file() or path.suffix in IGNORED_SUFFIXES:
            continue
        if any(part in IGNORED_PARTS for part in path.parts):
            continue
        files.append(path)
    return files


def test_repository_has_no_merge_conflict_markers() -> None:
    """Ensure no files in the repo still contain git conflict markers."""

    offending_files: list[Path] = []
    for path in _source_files():
        contents = path.read_text(encoding="utf-8", errors="ignore")
        if CONFLICT_PATTERN.search(contents):
            offending_files.append(path.relative_to(REPO_ROOT))

    assert not offending_files, (
        "The following files still contain git conflict markers: "
        + ", ".join(str(path) for path in offending_files)
    )


@pytest.mark.parametrize(
    "module_path",
    sorted(
        str(path.relative_to(REPO_ROOT).with_suffix("")).replace("/", ".")
        for path in (REPO_ROOT / "app").rglob("*.py")
    ),
)
def test_application_modules_import(module_path: str) -> None:
    importlib.import_module(module_path.removesuffix(".__init__"))

"""Shared fixtures for CLI tests."""

from pathlib import Path

import pytest


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Settings file location that does not exist yet."""
    return tmp_path / "config" / "filesystem.toml"


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """Directory with two identical files and one unique file."""
    root = tmp_path / "tree"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("same!")
    (root / "sub" / "b.txt").write_text("same!")
    (root / "c.txt").write_text("unique")
    return root

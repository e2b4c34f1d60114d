"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fsguard.core.config import FilesystemSettings
from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.restrictions import Restrictions
from fsguard.utils.shell import CommandRunner


@pytest.fixture
def settings(tmp_path: Path) -> FilesystemSettings:
    """Settings rooted at the test's temporary directory."""
    return FilesystemSettings(root_directory=str(tmp_path))


@pytest.fixture
def policy(tmp_path: Path, settings: FilesystemSettings) -> FilesystemPolicy:
    """Policy that runs real commands, rooted at tmp_path."""
    return FilesystemPolicy(settings=settings, start_directory=str(tmp_path))


@pytest.fixture
def mock_runner() -> MagicMock:
    """Command runner that records calls and returns no output."""
    runner = MagicMock(spec=CommandRunner)
    runner.run.return_value = []
    return runner


@pytest.fixture
def mock_policy(tmp_path: Path, settings: FilesystemSettings, mock_runner: MagicMock) -> FilesystemPolicy:
    """Policy whose external commands go to mock_runner."""
    return FilesystemPolicy(settings=settings, runner=mock_runner, start_directory=str(tmp_path))


@pytest.fixture
def writable(tmp_path: Path, policy: FilesystemPolicy) -> Restrictions:
    """Write access below tmp_path."""
    return Restrictions.writable(str(tmp_path), "tests", policy=policy)


@pytest.fixture
def readonly(tmp_path: Path, policy: FilesystemPolicy) -> Restrictions:
    """Read access below tmp_path."""
    return Restrictions.readonly(str(tmp_path), "tests", policy=policy)


@pytest.fixture
def mock_writable(tmp_path: Path, mock_policy: FilesystemPolicy) -> Restrictions:
    """Write access below tmp_path, using the mocked command runner."""
    return Restrictions.writable(str(tmp_path), "tests", policy=mock_policy)

"""Unit tests for the filesystem policy."""

from pathlib import Path

import pytest
from fsguard.core.config import SettingsParseError
from fsguard.filesystem.exceptions import FileNotReadableError, FileNotWritableError
from fsguard.filesystem.mounts import NullMountRegistry
from fsguard.filesystem.policy import FilesystemPolicy


class TestCached:
    """Tests for the scoped resolution cache."""

    def test_cache_only_inside_block(self) -> None:
        """The cache exists inside the block and is dropped afterwards."""
        policy = FilesystemPolicy()

        assert policy.cache is None
        with policy.cached() as cache:
            assert policy.cache is cache
        assert policy.cache is None

    def test_nested_blocks_share_cache(self) -> None:
        """Inner blocks reuse the outer cache and do not drop it."""
        policy = FilesystemPolicy()

        with policy.cached() as outer:
            outer.set(("normalize", "/a", None, False), "/a")
            with policy.cached() as inner:
                assert inner is outer
            assert policy.cache is outer
            assert outer.get(("normalize", "/a", None, False)) == "/a"
            assert outer.hits == 1

    def test_cache_dropped_on_error(self) -> None:
        """An exception in the block still drops the cache."""
        policy = FilesystemPolicy()

        with pytest.raises(RuntimeError), policy.cached():
            raise RuntimeError("boom")

        assert policy.cache is None


class TestAccessSwitches:
    """Tests for the global read and write switches."""

    def test_enabled_by_default(self) -> None:
        """Both switches start enabled."""
        policy = FilesystemPolicy()

        policy.check_read_access("/tmp/x")
        policy.check_write_access("/tmp/x")

    def test_read_disabled(self) -> None:
        """Disabling reads fails every read check."""
        policy = FilesystemPolicy(read_enabled=False)

        with pytest.raises(FileNotReadableError, match="read access has been disabled") as exc:
            policy.check_read_access("/tmp/x")
        assert exc.value.path == "/tmp/x"

    def test_write_disabled(self) -> None:
        """Disabling writes fails every write check."""
        policy = FilesystemPolicy(write_enabled=False)

        with pytest.raises(FileNotWritableError, match="write access has been disabled"):
            policy.check_write_access("/tmp/x")


class TestFromSettingsFile:
    """Tests for building a policy from a settings file."""

    def test_loads_settings(self, tmp_path: Path) -> None:
        """Settings from the file are used."""
        settings_file = tmp_path / "filesystem.toml"
        settings_file.write_text(f'root_directory = "{tmp_path}"\ncommand_timeout = 3.5\n')

        policy = FilesystemPolicy.from_settings_file(settings_file)

        assert policy.settings.root_directory == str(tmp_path)
        assert policy.settings.command_timeout == 3.5
        assert isinstance(policy.mounts, NullMountRegistry)

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        """A missing settings file yields default settings."""
        policy = FilesystemPolicy.from_settings_file(tmp_path / "missing.toml")

        assert policy.settings.file_mode == 0o640

    def test_invalid_file(self, tmp_path: Path) -> None:
        """Invalid TOML raises SettingsParseError."""
        settings_file = tmp_path / "filesystem.toml"
        settings_file.write_text("root_directory = \n")

        with pytest.raises(SettingsParseError):
            FilesystemPolicy.from_settings_file(settings_file)

"""Unit tests for FsDirectory."""

import os
import stat
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fsguard.filesystem.directory import LOCK_FILE, FsDirectory, expand_alternation
from fsguard.filesystem.exceptions import (
    DirectoryError,
    DirectoryNotMountedError,
    FilesystemError,
    MountsError,
    OutOfBoundsError,
    PathNotDirectoryError,
    WriteRestrictionsError,
)
from fsguard.filesystem.execute import FsExecute
from fsguard.filesystem.file import FsFile
from fsguard.filesystem.mounts import MOUNTED_SENTINEL, NOT_MOUNTED_SENTINEL
from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.restrictions import Restrictions


def _tree(root: Path) -> None:
    """Create a.txt (3 bytes), b.log (4 bytes) and sub/c.txt (5 bytes)."""
    (root / "sub").mkdir(parents=True, exist_ok=True)
    (root / "a.txt").write_text("aaa")
    (root / "b.log").write_text("bbbb")
    (root / "sub" / "c.txt").write_text("ccccc")


class TestEnsure:
    """Tests for directory creation."""

    def test_ensure_then_empty(self, tmp_path: Path, writable: Restrictions) -> None:
        """A freshly ensured directory is empty."""
        directory = FsDirectory(str(tmp_path / "a" / "b" / "c"), writable)

        directory.ensure()

        assert (tmp_path / "a" / "b" / "c").is_dir()
        assert directory.is_empty()

    def test_ensure_applies_mode(self, tmp_path: Path, writable: Restrictions) -> None:
        """Created directories get the requested mode."""
        FsDirectory(str(tmp_path / "private"), writable).ensure(mode=0o700)

        assert stat.S_IMODE((tmp_path / "private").stat().st_mode) == 0o700

    def test_ensure_default_mode(self, tmp_path: Path, writable: Restrictions) -> None:
        """Without a mode the configured directory mode is used."""
        FsDirectory(str(tmp_path / "x" / "y"), writable).ensure()

        expected = writable.policy.settings.directory_mode
        assert stat.S_IMODE((tmp_path / "x").stat().st_mode) == expected
        assert stat.S_IMODE((tmp_path / "x" / "y").stat().st_mode) == expected

    def test_ensure_existing_is_noop(self, tmp_path: Path, readonly: Restrictions) -> None:
        """An existing directory needs no write access."""
        (tmp_path / "exists").mkdir()
        (tmp_path / "exists" / "file").write_text("x")

        FsDirectory(str(tmp_path / "exists"), readonly).ensure()

        assert (tmp_path / "exists" / "file").exists()

    def test_ensure_needs_write_access(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Creating a directory below a read-only rule is refused."""
        with pytest.raises(WriteRestrictionsError):
            FsDirectory(str(tmp_path / "new"), readonly).ensure()

        assert not (tmp_path / "new").exists()

    def test_ensure_removes_blocking_file(self, tmp_path: Path, writable: Restrictions) -> None:
        """A file in the way of a segment is replaced by a directory."""
        (tmp_path / "a").write_text("in the way")

        FsDirectory(str(tmp_path / "a" / "b"), writable).ensure()

        assert (tmp_path / "a" / "b").is_dir()

    def test_ensure_clear(self, tmp_path: Path, writable: Restrictions) -> None:
        """clear=True empties an existing directory."""
        _tree(tmp_path / "work")
        directory = FsDirectory(str(tmp_path / "work"), writable)

        directory.ensure(clear=True)

        assert (tmp_path / "work").is_dir()
        assert directory.is_empty()

    def test_ensure_writable(self, tmp_path: Path, writable: Restrictions) -> None:
        """ensure_writable creates the directory."""
        FsDirectory(str(tmp_path / "out"), writable).ensure_writable()

        assert (tmp_path / "out").is_dir()

    def test_check_is_directory(self, tmp_path: Path, writable: Restrictions) -> None:
        """A file cannot be treated as a directory."""
        (tmp_path / "file").write_text("x")

        with pytest.raises(PathNotDirectoryError):
            FsDirectory(str(tmp_path / "file"), writable).check_is_directory()


class TestClearDirectory:
    """Tests for clear_directory and can_ascend."""

    def test_can_ascend(self, tmp_path: Path, writable: Restrictions) -> None:
        """A level may be removed only when it and its parent are writable."""
        directory = FsDirectory(str(tmp_path / "a"), writable)

        assert directory.can_ascend(str(tmp_path / "a"))
        assert not directory.can_ascend(str(tmp_path))

    def test_clear_removes_empty_chain(self, tmp_path: Path, writable: Restrictions) -> None:
        """Empty directories are removed from the bottom up."""
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)

        FsDirectory(str(tmp_path / "a" / "b" / "c"), writable).clear_directory()

        assert not (tmp_path / "a").exists()
        assert tmp_path.exists()

    def test_clear_keeps_non_empty(self, tmp_path: Path, writable: Restrictions) -> None:
        """A directory with content is left alone."""
        _tree(tmp_path / "a")

        FsDirectory(str(tmp_path / "a"), writable).clear_directory()

        assert (tmp_path / "a" / "a.txt").exists()


class TestListing:
    """Tests for listings and scans."""

    def test_list(self, tmp_path: Path, readonly: Restrictions) -> None:
        """list returns every entry, typed by kind."""
        _tree(tmp_path)

        entries = FsDirectory(str(tmp_path), readonly).list()

        assert sorted(Path(path).name for path in entries) == ["a.txt", "b.log", "sub"]
        assert isinstance(entries[str(tmp_path / "a.txt")], FsFile)
        assert isinstance(entries[str(tmp_path / "sub")], FsDirectory)

    def test_list_tree_filters(self, tmp_path: Path, readonly: Restrictions) -> None:
        """list_tree keeps files whose names match every filter."""
        _tree(tmp_path)
        directory = FsDirectory(str(tmp_path), readonly)

        assert directory.list_tree(r"\.txt$") == [f"{tmp_path}/a.txt", f"{tmp_path}/sub/c.txt"]
        assert directory.list_tree([r"\.txt$", "^a"]) == [f"{tmp_path}/a.txt"]
        assert directory.list_tree(r"\.txt$", recursive=False) == [f"{tmp_path}/a.txt"]

    def test_scan_alternation_ignores_case(self, tmp_path: Path, readonly: Restrictions) -> None:
        """scan expands one bracket group and matches without case."""
        for name in ("Report2023.csv", "report2024.csv", "report2025.csv", "notes.txt"):
            (tmp_path / name).write_text(name)

        found = FsDirectory(str(tmp_path), readonly).scan("report[2023,2024].csv")

        assert sorted(Path(path).name for path in found) == ["Report2023.csv", "report2024.csv"]

    def test_scan_default_matches_everything(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Without patterns every visible entry is returned."""
        _tree(tmp_path)

        assert len(FsDirectory(str(tmp_path), readonly).scan()) == 3

    def test_expand_alternation(self) -> None:
        """One group expands, more than one is rejected."""
        assert expand_alternation("*.log") == ["*.log"]
        assert expand_alternation("img[1, 2].png") == ["img1.png", "img2.png"]
        with pytest.raises(OutOfBoundsError):
            expand_alternation("[a,b][c,d]")

    def test_scan_regex(self, tmp_path: Path, readonly: Restrictions) -> None:
        """scan_regex filters entry names with a regular expression."""
        _tree(tmp_path)

        found = FsDirectory(str(tmp_path), readonly).scan_regex(r"^[ab]\.")

        assert sorted(Path(path).name for path in found) == ["a.txt", "b.log"]

    def test_each(self, tmp_path: Path, readonly: Restrictions) -> None:
        """each runs the callback for every scanned entry."""
        _tree(tmp_path)
        seen: list[str] = []

        FsDirectory(str(tmp_path), readonly).each(lambda path: seen.append(path.basename))

        assert sorted(seen) == ["a.txt", "b.log", "sub"]

    def test_random(self, tmp_path: Path, readonly: Restrictions) -> None:
        """random picks one of the entries."""
        _tree(tmp_path)

        assert FsDirectory(str(tmp_path), readonly).random().basename in {"a.txt", "b.log", "sub"}

    def test_random_empty(self, tmp_path: Path, readonly: Restrictions) -> None:
        """An empty directory has nothing to pick."""
        with pytest.raises(FilesystemError, match="contains no files"):
            FsDirectory(str(tmp_path), readonly).random()

    def test_has_file_and_contains_files(self, tmp_path: Path, readonly: Restrictions) -> None:
        """has_file looks at one name, contains_files at the whole tree."""
        (tmp_path / "empty" / "nested").mkdir(parents=True)
        _tree(tmp_path / "full")

        assert FsDirectory(str(tmp_path / "full"), readonly).has_file("a.txt")
        assert not FsDirectory(str(tmp_path / "full"), readonly).has_file("z.txt")
        assert FsDirectory(str(tmp_path / "full"), readonly).contains_files()
        assert not FsDirectory(str(tmp_path / "empty"), readonly).contains_files()

    def test_scan_upwards_for_file(self, tmp_path: Path, readonly: Restrictions) -> None:
        """The nearest directory holding the file is returned."""
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)
        (tmp_path / "a" / "fsguard-marker").write_text("x")
        directory = FsDirectory(str(tmp_path / "a" / "b" / "c"), readonly)

        assert directory.scan_upwards_for_file("fsguard-marker") == f"{tmp_path}/a/"
        assert directory.scan_upwards_for_file("fsguard-no-such-marker") is None

    def test_execute(self, tmp_path: Path, readonly: Restrictions) -> None:
        """execute returns a walker over this directory."""
        walker = FsDirectory(str(tmp_path), readonly).execute()

        assert isinstance(walker, FsExecute)
        assert walker.paths == [f"{tmp_path}/"]


class TestSingleEntries:
    """Tests for get_single_file and get_single_directory."""

    def test_single_file(self, tmp_path: Path, readonly: Restrictions) -> None:
        """The only file is returned, sub directories are not counted."""
        (tmp_path / "only.txt").write_text("x")
        (tmp_path / "sub").mkdir()

        single = FsDirectory(str(tmp_path), readonly).get_single_file()

        assert isinstance(single, FsFile)
        assert Path(single) == tmp_path / "only.txt"

    def test_no_file(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Zero matching files raise a no match error."""
        with pytest.raises(FilesystemError, match="matches no files"):
            FsDirectory(str(tmp_path), readonly).get_single_file()

    def test_multiple_files(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Two matching files raise unless multiple matches are allowed."""
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b.txt").write_text("b")
        directory = FsDirectory(str(tmp_path), readonly)

        with pytest.raises(FilesystemError, match="matches 2 files"):
            directory.get_single_file()
        assert Path(directory.get_single_file(allow_multiple=True)) == tmp_path / "a.txt"

    def test_regex_filter(self, tmp_path: Path, readonly: Restrictions) -> None:
        """The regex narrows the candidates."""
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b.log").write_text("b")

        assert Path(FsDirectory(str(tmp_path), readonly).get_single_file(r"\.log$")) == tmp_path / "b.log"

    def test_single_directory(self, tmp_path: Path, readonly: Restrictions) -> None:
        """get_single_directory ignores files."""
        (tmp_path / "file.txt").write_text("x")
        (tmp_path / "only").mkdir()

        single = FsDirectory(str(tmp_path), readonly).get_single_directory()

        assert isinstance(single, FsDirectory)
        assert Path(single) == tmp_path / "only"


class TestSizes:
    """Tests for sizes and counts."""

    def test_tree_file_size_and_count(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Every file below the directory is counted."""
        _tree(tmp_path)
        directory = FsDirectory(str(tmp_path), readonly)

        assert directory.tree_file_size() == 12
        assert directory.tree_file_count() == 3

    def test_dead_symlinks_are_skipped(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Dead symlinks are neither sized nor counted."""
        _tree(tmp_path)
        (tmp_path / "dead").symlink_to(tmp_path / "nowhere")
        directory = FsDirectory(str(tmp_path), readonly)

        assert directory.tree_file_size() == 12
        assert directory.tree_file_count() == 3

    def test_get_count(self, tmp_path: Path, readonly: Restrictions) -> None:
        """get_count counts files and directories."""
        _tree(tmp_path)
        directory = FsDirectory(str(tmp_path), readonly)

        assert directory.get_count() == 4
        assert directory.get_count(recursive=False) == 3

    def test_get_size(self, tmp_path: Path, readonly: Restrictions) -> None:
        """get_size sums the file sizes."""
        _tree(tmp_path)
        directory = FsDirectory(str(tmp_path), readonly)

        assert directory.get_size() == 12
        assert directory.get_size(recursive=False) == 7


class TestCopyAndTargets:
    """Tests for copy, create_target and tar."""

    def test_copy_recursive(self, tmp_path: Path, writable: Restrictions) -> None:
        """The whole tree is copied."""
        _tree(tmp_path / "src")

        copied = FsDirectory(str(tmp_path / "src"), writable).copy(str(tmp_path / "dst"))

        assert isinstance(copied, FsDirectory)
        assert (tmp_path / "dst" / "a.txt").read_text() == "aaa"
        assert (tmp_path / "dst" / "sub" / "c.txt").read_text() == "ccccc"

    def test_copy_not_recursive(self, tmp_path: Path, writable: Restrictions) -> None:
        """Without recursion sub directories are created empty."""
        _tree(tmp_path / "src")

        FsDirectory(str(tmp_path / "src"), writable).copy(str(tmp_path / "dst"), recursive=False)

        assert (tmp_path / "dst" / "a.txt").exists()
        assert (tmp_path / "dst" / "sub").is_dir()
        assert not (tmp_path / "dst" / "sub" / "c.txt").exists()

    def test_create_target_nested(self, tmp_path: Path, writable: Restrictions) -> None:
        """By default every random character is its own directory level."""
        target = FsDirectory(str(tmp_path), writable).create_target(length=3)

        relative = Path(target).relative_to(tmp_path)
        assert target.endswith("/")
        assert len(relative.parts) == 3
        assert all(len(part) == 1 for part in relative.parts)
        assert Path(target).is_dir()

    def test_create_target_single(self, tmp_path: Path, writable: Restrictions) -> None:
        """single=True creates one directory named by the random string."""
        target = FsDirectory(str(tmp_path), writable).create_target(single=True, length=6)

        relative = Path(target).relative_to(tmp_path)
        assert len(relative.parts) == 1
        assert len(relative.name) == 6

    def test_tar(self, tmp_path: Path, mock_writable: Restrictions, mock_runner: MagicMock) -> None:
        """tar archives the directory next to itself."""
        (tmp_path / "data").mkdir()

        archive = FsDirectory(str(tmp_path / "data"), mock_writable).tar()

        assert isinstance(archive, FsFile)
        assert Path(archive) == tmp_path / "data.tar.gz"
        mock_runner.run.assert_called_once_with(
            "tar", ["-czf", f"{tmp_path}/data.tar.gz", "-C", str(tmp_path), "data"], timeout=600
        )


class TestMounts:
    """Tests for mount awareness."""

    def test_is_mounted_sentinels(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Sentinel files decide, without them the answer is unknown."""
        for name in ("mounted", "unmounted", "unknown"):
            (tmp_path / name).mkdir()
        (tmp_path / "mounted" / MOUNTED_SENTINEL).write_text("")
        (tmp_path / "unmounted" / NOT_MOUNTED_SENTINEL).write_text("")

        assert FsDirectory(str(tmp_path / "mounted"), readonly).is_mounted() is True
        assert FsDirectory(str(tmp_path / "unmounted"), readonly).is_mounted() is False
        assert FsDirectory(str(tmp_path / "unknown"), readonly).is_mounted() is None

    def test_is_mounted_checks_source(self, tmp_path: Path, readonly: Restrictions) -> None:
        """With sources the current mount source must be one of them."""
        (tmp_path / MOUNTED_SENTINEL).write_text("")
        readonly.policy.mounts = MagicMock()
        readonly.policy.mounts.current_source.return_value = "/dev/sdb1"
        directory = FsDirectory(str(tmp_path), readonly)

        assert directory.is_mounted("/dev/sdb1") is True
        assert directory.is_mounted(["/dev/sdc1"]) is False
        readonly.policy.mounts.current_source.return_value = None
        assert directory.is_mounted("/dev/sdb1") is None

    def test_check_mounted(self, tmp_path: Path, readonly: Restrictions) -> None:
        """check_mounted raises unless the directory is known to be mounted."""
        with pytest.raises(DirectoryNotMountedError):
            FsDirectory(str(tmp_path), readonly).check_mounted()

    def test_mount_and_unmount(self, tmp_path: Path, writable: Restrictions) -> None:
        """Mounting goes through the policy's mount registry."""
        registry = MagicMock()
        writable.policy.mounts = registry
        directory = FsDirectory(str(tmp_path / "mnt"), writable)

        directory.mount("/dev/sdb1", "ext4", ["ro"])
        directory.bind(str(tmp_path / "src"))
        directory.unbind()

        target = str(tmp_path / "mnt")
        assert (tmp_path / "mnt").is_dir()
        registry.mount.assert_any_call("/dev/sdb1", target, "ext4", ["ro"], timeout=None)
        registry.mount.assert_any_call(str(tmp_path / "src"), target, None, None, bind=True, timeout=None)
        registry.unmount.assert_called_once_with(target, timeout=None)

    def test_mount_without_registry(self, tmp_path: Path, writable: Restrictions) -> None:
        """The default registry refuses to mount."""
        with pytest.raises(MountsError, match="no mount registry configured"):
            FsDirectory(str(tmp_path / "mnt"), writable).mount("/dev/sdb1")


class TestTemporary:
    """Tests for temporary work directories."""

    def test_get_and_remove_temporary(self, tmp_path: Path, policy: FilesystemPolicy) -> None:
        """A temporary directory holds only its lock file until removed."""
        root = tmp_path / "state" / "fsguard" / "tmp"
        with patch.dict(os.environ, {"XDG_STATE_HOME": str(tmp_path / "state")}):
            directory = FsDirectory.get_temporary("job", policy=policy)

            assert Path(directory) == tmp_path.resolve() / "state" / "fsguard" / "tmp" / "job"
            assert [entry.name for entry in (root / "job").iterdir()] == [LOCK_FILE]

            FsDirectory.remove_temporary("job", policy=policy)

        assert not (root / "job").exists()
        assert root.is_dir()

    def test_get_temporary_clears_existing(self, tmp_path: Path, policy: FilesystemPolicy) -> None:
        """An existing temporary directory with the same name is emptied."""
        job = tmp_path / "state" / "fsguard" / "tmp" / "job"
        job.mkdir(parents=True)
        (job / "stale.txt").write_text("old")

        with patch.dict(os.environ, {"XDG_STATE_HOME": str(tmp_path / "state")}):
            FsDirectory.get_temporary("job", policy=policy)

        assert not (job / "stale.txt").exists()
        assert (job / LOCK_FILE).exists()

    def test_get_temporary_root_not_creatable(self, tmp_path: Path, policy: FilesystemPolicy) -> None:
        """A temporary root that cannot be created raises DirectoryError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with (
            patch.dict(os.environ, {"XDG_STATE_HOME": str(blocker)}),
            pytest.raises(DirectoryError, match="Cannot create temporary directory"),
        ):
            FsDirectory.get_temporary("job", policy=policy)

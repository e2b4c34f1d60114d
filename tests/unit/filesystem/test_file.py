"""Unit tests for FsFile."""

import stat
from pathlib import Path

import pytest
from fsguard.filesystem.directory import FsDirectory
from fsguard.filesystem.exceptions import PathNotFileError, WriteRestrictionsError
from fsguard.filesystem.file import FsFile
from fsguard.filesystem.restrictions import Restrictions


class TestCopy:
    """Tests for FsFile.copy."""

    def test_copy_to_file(self, tmp_path: Path, writable: Restrictions) -> None:
        """Contents and mode are copied."""
        (tmp_path / "src.txt").write_text("payload")
        (tmp_path / "src.txt").chmod(0o604)

        copied = FsFile(str(tmp_path / "src.txt"), writable).copy(str(tmp_path / "out" / "dst.txt"))

        assert Path(copied) == tmp_path / "out" / "dst.txt"
        assert (tmp_path / "out" / "dst.txt").read_text() == "payload"
        assert stat.S_IMODE((tmp_path / "out" / "dst.txt").stat().st_mode) == 0o604

    def test_copy_into_directory(self, tmp_path: Path, writable: Restrictions) -> None:
        """A directory target receives the file under its basename."""
        (tmp_path / "src.txt").write_text("payload")
        (tmp_path / "dir").mkdir()

        copied = FsFile(str(tmp_path / "src.txt"), writable).copy(FsDirectory(str(tmp_path / "dir"), writable))

        assert Path(copied) == tmp_path / "dir" / "src.txt"
        assert (tmp_path / "dir" / "src.txt").read_text() == "payload"

    def test_copy_reports_progress(self, tmp_path: Path, writable: Restrictions) -> None:
        """The callback receives the running total for every chunk."""
        (tmp_path / "src.bin").write_bytes(b"x" * 10)
        writable.policy.settings.buffer_size = 4
        progress: list[tuple[int, int]] = []

        FsFile(str(tmp_path / "src.bin"), writable).copy(
            str(tmp_path / "dst.bin"), callback=lambda done, total: progress.append((done, total))
        )

        assert progress == [(4, 10), (8, 10), (10, 10)]

    def test_copy_needs_write_access_to_target(self, tmp_path: Path, writable: Restrictions) -> None:
        """The target's restrictions must allow writing."""
        (tmp_path / "src.txt").write_text("payload")
        target_restrictions = Restrictions.readonly(str(tmp_path), policy=writable.policy)

        with pytest.raises(WriteRestrictionsError):
            FsFile(str(tmp_path / "src.txt"), writable).copy(str(tmp_path / "dst.txt"), target_restrictions)

        assert not (tmp_path / "dst.txt").exists()

    def test_check_is_file(self, tmp_path: Path, writable: Restrictions) -> None:
        """A directory is not a file."""
        with pytest.raises(PathNotFileError):
            FsFile(str(tmp_path), writable).check_is_file()


class TestHash:
    """Tests for FsFile.get_hash."""

    def test_sha1(self, tmp_path: Path, readonly: Restrictions) -> None:
        """The default algorithm is SHA-1."""
        (tmp_path / "abc.txt").write_bytes(b"abc")

        assert FsFile(str(tmp_path / "abc.txt"), readonly).get_hash() == (
            "a9993e364706816aba3e25717850c26c9cd0d89d"
        )

    def test_other_algorithm(self, tmp_path: Path, readonly: Restrictions) -> None:
        """Any hashlib algorithm can be used."""
        (tmp_path / "abc.txt").write_bytes(b"abc")

        assert FsFile(str(tmp_path / "abc.txt"), readonly).get_hash("md5") == "900150983cd24fb0d6963f7d28e17f72"


class TestRandomTargets:
    """Tests for copy_to_target and move_to_target."""

    def test_copy_to_target(self, tmp_path: Path, writable: Restrictions) -> None:
        """The file is copied into a fresh random directory."""
        (tmp_path / "doc.pdf").write_text("pdf")

        copied = FsFile(str(tmp_path / "doc.pdf"), writable).copy_to_target(
            str(tmp_path / "store"), single=True, length=6
        )

        relative = Path(copied).relative_to(tmp_path / "store")
        assert len(relative.parts) == 2
        assert len(relative.parts[0]) == 6
        assert relative.name == "doc.pdf"
        assert (tmp_path / "doc.pdf").exists()

    def test_move_to_target(self, tmp_path: Path, writable: Restrictions) -> None:
        """The file is moved into nested random directories."""
        (tmp_path / "doc.pdf").write_text("pdf")
        source = FsFile(str(tmp_path / "doc.pdf"), writable)

        moved = source.move_to_target(FsDirectory(str(tmp_path / "store"), writable), single=False, length=2)

        relative = Path(moved).relative_to(tmp_path / "store")
        assert len(relative.parts) == 3
        assert Path(moved).read_text() == "pdf"
        assert not source.is_valid

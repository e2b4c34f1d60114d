"""Duplicate file detection.

Files are first grouped by exact size. Only groups with two or more files
are hashed, and only hashes shared by two or more files are reported, so
files that cannot have a duplicate are never read.
"""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from collections.abc import Iterator
from typing import TYPE_CHECKING

from fsguard.filesystem.file import FsFile
from fsguard.filesystem.files import FsFiles
from fsguard.filesystem.resolve import unslash

if TYPE_CHECKING:
    from fsguard.filesystem.directory import FsDirectory

logger = logging.getLogger(__name__)


class FsDuplicates:
    """Mapping of content hash to the files sharing that hash."""

    def __init__(self) -> None:
        self._groups: dict[str, FsFiles] = {}

    def add(self, digest: str, files: FsFiles) -> None:
        self._groups[digest] = files

    def __getitem__(self, digest: str) -> FsFiles:
        return self._groups[digest]

    def __contains__(self, digest: object) -> bool:
        return digest in self._groups

    def __iter__(self) -> Iterator[str]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def items(self) -> list[tuple[str, FsFiles]]:
        return list(self._groups.items())

    def count_files(self) -> int:
        """Number of files across all duplicate groups."""
        return sum(len(files) for files in self._groups.values())

    def total_wasted_bytes(self) -> int:
        """Bytes that removing all but one file of every group would free."""
        wasted = 0
        for files in self._groups.values():
            first = next(iter(files))
            wasted += first.get_size() * (len(files) - 1)
        return wasted


class DuplicateScanner:
    """Finds files with identical content below a directory.

    Args:
        directory: Directory to scan.
        recurse_levels: How many levels of sub directories to descend into.
            0 scans only the directory itself.
        max_size: Files larger than this many bytes are skipped.
        algorithm: hashlib algorithm used to compare contents.
    """

    def __init__(
        self,
        directory: FsDirectory,
        recurse_levels: int = 1_000_000,
        max_size: int = 1_073_741_824,
        algorithm: str = "sha1",
    ) -> None:
        self._directory = directory
        self._recurse_levels = recurse_levels
        self._max_size = max_size
        self._algorithm = algorithm

    def scan(self) -> FsDuplicates:
        """Scan the directory and return the duplicate groups."""
        self._directory.check_restrictions(False)
        self._directory.check_exists()
        logger.info("Scanning path '%s' for duplicate files", self._directory.source)

        sizes = self._sizes_table()
        candidates = {size: paths for size, paths in sizes.items() if len(paths) > 1}
        logger.info(
            "Found %d potential duplicates, hash checking each",
            sum(len(paths) for paths in candidates.values()),
        )

        duplicates = FsDuplicates()
        for paths in candidates.values():
            hashes: dict[str, list[FsFile]] = defaultdict(list)
            for path in paths:
                file = FsFile(path, self._directory.restrictions, policy=self._directory.policy)
                hashes[file.get_hash(self._algorithm)].append(file)

            for digest, files in hashes.items():
                if len(files) > 1:
                    duplicates.add(digest, FsFiles(files, self._directory.restrictions))

        logger.info("Found %d groups of duplicate files", len(duplicates))
        return duplicates

    def _sizes_table(self) -> dict[int, list[str]]:
        sizes: dict[int, list[str]] = defaultdict(list)
        self._collect(unslash(self._directory.source), 0, sizes)
        return sizes

    def _collect(self, directory: str, level: int, sizes: dict[int, list[str]]) -> None:
        with os.scandir(directory) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if level < self._recurse_levels:
                    self._collect(entry.path, level + 1, sizes)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue

            size = entry.stat(follow_symlinks=False).st_size
            if size > self._max_size:
                logger.warning(
                    "Ignoring file '%s' with size %d, it is larger than the maximum of %d bytes",
                    entry.path,
                    size,
                    self._max_size,
                )
                continue
            sizes[size].append(entry.path)

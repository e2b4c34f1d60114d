"""Restricted file paths."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from collections.abc import Callable
from typing import TYPE_CHECKING

from fsguard.filesystem.exceptions import FileActionFailedError, PathNotFileError
from fsguard.filesystem.path import FsPath
from fsguard.filesystem.resolve import unslash
from fsguard.filesystem.restrictions import Restrictions

if TYPE_CHECKING:
    from fsguard.filesystem.directory import FsDirectory

logger = logging.getLogger(__name__)

# Called as callback(bytes_copied, total_bytes) after every copied chunk
CopyCallback = Callable[[int, int], None]


class FsFile(FsPath):
    """A path that must be a leaf entry when it exists."""

    def check_is_file(self) -> FsFile:
        """Raise PathNotFileError if this path is a directory."""
        if os.path.isdir(unslash(self.source)):
            msg = f"The path '{self.source}' must be a file but is a directory"
            raise PathNotFileError(msg, path=self.source)
        return self

    def copy(
        self,
        target: str | FsPath,
        restrictions: Restrictions | None = None,
        callback: CopyCallback | None = None,
    ) -> FsFile:
        """Copy the file contents and mode to target.

        A target that is an existing directory receives the file under its
        current basename.

        Args:
            target: Destination file or directory.
            restrictions: Restrictions for the target. Defaults to the
                target's own restrictions, then to these restrictions.
            callback: Progress callback receiving (bytes_copied, total).

        Returns:
            The copied file.

        Raises:
            RestrictionsError: If reading this file or writing target is not allowed.
            FileActionFailedError: If the copy fails.
        """
        if restrictions is None and isinstance(target, FsPath):
            restrictions = target.restrictions
        destination = self._derive(target, restrictions, cls=FsFile)
        if destination.is_directory():
            destination = destination.append_path(self.basename, cls=FsFile)

        self.check_is_file()
        self.check_restrictions(False)
        destination.check_restrictions(True)
        self.check_readable("source")
        destination.ensure_file_writable()

        total = self.get_size()
        copied = 0
        buffer_size = self.policy.settings.buffer_size
        logger.debug("Copying '%s' to '%s' (%d bytes)", self.source, destination.source, total)

        try:
            with open(unslash(self.source), "rb") as source_handle, open(
                unslash(destination.source), "wb"
            ) as target_handle:
                while chunk := source_handle.read(buffer_size):
                    target_handle.write(chunk)
                    copied += len(chunk)
                    if callback is not None:
                        callback(copied, total)
            shutil.copymode(unslash(self.source), unslash(destination.source))
        except OSError as e:
            msg = f"Failed to copy file '{self.source}' to '{destination.source}': {e}"
            raise FileActionFailedError(msg, path=self.source) from e

        return destination

    def get_hash(self, algorithm: str = "sha1") -> str:
        """Return the hex digest of the file contents.

        Raises:
            ValueError: If the algorithm is not supported by hashlib.
        """
        self.check_restrictions(False)
        self._policy.check_read_access(self.source)
        digest = hashlib.new(algorithm)
        buffer_size = self._policy.settings.buffer_size

        try:
            with open(unslash(self.source), "rb") as handle:
                while chunk := handle.read(buffer_size):
                    digest.update(chunk)
        except OSError as e:
            error = FileActionFailedError(
                f"Failed to calculate {algorithm} hash for file '{self.source}': {e}",
                path=self.source,
            )
            error.__cause__ = e
            self.check_readable(previous=error)
            raise error from e

        return digest.hexdigest()

    def _random_target(self, directory: str | FsDirectory, single: bool | None, length: int) -> FsFile:
        from fsguard.filesystem.directory import FsDirectory

        if isinstance(directory, FsDirectory):
            target_directory = directory
        else:
            target_directory = self._derive(directory, cls=FsDirectory)
        location = target_directory.create_target(single, length)
        return self._derive(f"{location}{self.basename}", target_directory.restrictions, cls=FsFile)

    def copy_to_target(
        self,
        directory: str | FsDirectory,
        single: bool | None = None,
        length: int = 0,
    ) -> FsFile:
        """Copy the file into a fresh random directory below directory."""
        return self.copy(self._random_target(directory, single, length))

    def move_to_target(
        self,
        directory: str | FsDirectory,
        single: bool | None = None,
        length: int = 0,
    ) -> FsFile:
        """Move the file into a fresh random directory below directory."""
        target = self._random_target(directory, single, length)
        return self.move_path(target)

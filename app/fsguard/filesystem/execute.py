"""Tree walking with a per-entry callback.

FsExecute walks one or more directories and invokes a callback for the
entries it finds, honouring a skip list, hidden/symlink filters and
extension white/blacklists. A temporary mode can be applied to each
visited directory for the duration of the walk.
"""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Self

from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.resolve import absolute_path, path_matches_directory, slash, unslash
from fsguard.filesystem.restrictions import Restrictions

if TYPE_CHECKING:
    from fsguard.filesystem.directory import FsDirectory
    from fsguard.filesystem.path import FsPath

logger = logging.getLogger(__name__)

PathCallback = Callable[["FsPath"], object]


def _extension_set(extensions: str | Iterable[str] | None) -> frozenset[str]:
    if extensions is None:
        return frozenset()
    if isinstance(extensions, str):
        extensions = [extensions]
    return frozenset(extension.lower().lstrip(".") for extension in extensions if extension)


class FsExecute:
    """Apply callbacks to the files below one or more directories.

    Setters return self so a walk can be configured fluently:

        count = directory.execute().set_recurse(True).set_whitelist_extensions("log").on_files(print)

    Attributes:
        _paths: Absolute directories to walk.
        _restrictions: Restrictions for every visited path.
        _recurse: Descend into sub directories.
        _mode: Mode applied to each visited directory during the walk.
        _skip: Absolute path prefixes that are never visited.
    """

    def __init__(
        self,
        paths: str | FsPath | Iterable[str | FsPath],
        restrictions: Restrictions | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> None:
        from fsguard.filesystem.path import FsPath

        if isinstance(paths, str | FsPath):
            paths = [paths]
        paths = list(paths)

        if restrictions is None:
            for path in paths:
                if isinstance(path, FsPath):
                    restrictions = path.restrictions
                    break
        if policy is None:
            policy = restrictions.policy if restrictions is not None else FilesystemPolicy()

        self._policy = policy
        if restrictions is None:
            restrictions = Restrictions(label="FsExecute", policy=policy)
        self._restrictions = restrictions
        self._paths = [
            absolute_path(path.source if isinstance(path, FsPath) else path, None, False, policy=policy)
            for path in paths
        ]
        self._recurse = False
        self._mode: str | int | None = None
        self._whitelist: frozenset[str] = frozenset()
        self._blacklist: frozenset[str] = frozenset()
        self._skip: list[str] = []
        self._follow_symlinks = False
        self._follow_hidden = False
        self._ignore_exceptions = False

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    @property
    def restrictions(self) -> Restrictions:
        return self._restrictions

    @property
    def skip_paths(self) -> list[str]:
        return list(self._skip)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_recurse(self, recurse: bool) -> Self:
        self._recurse = recurse
        return self

    def set_mode(self, mode: str | int | None) -> Self:
        self._mode = mode
        return self

    def set_whitelist_extensions(self, extensions: str | Iterable[str] | None) -> Self:
        """Only run the callback for files with one of these extensions."""
        self._whitelist = _extension_set(extensions)
        return self

    def set_blacklist_extensions(self, extensions: str | Iterable[str] | None) -> Self:
        """Never run the callback for files with one of these extensions."""
        self._blacklist = _extension_set(extensions)
        return self

    def clear_skip_paths(self) -> Self:
        self._skip.clear()
        return self

    def set_skip_paths(self, paths: str | Iterable[str]) -> Self:
        return self.clear_skip_paths().add_skip_paths(paths)

    def add_skip_paths(self, paths: str | Iterable[str]) -> Self:
        if isinstance(paths, str):
            paths = [paths]
        for path in paths:
            self.add_skip_path(path)
        return self

    def add_skip_path(self, path: str) -> Self:
        """Skip path and everything below it."""
        if path:
            self._skip.append(unslash(absolute_path(path, None, False, policy=self._policy)))
        return self

    def set_follow_symlinks(self, follow: bool) -> Self:
        self._follow_symlinks = follow
        return self

    def set_follow_hidden(self, follow: bool) -> Self:
        self._follow_hidden = follow
        return self

    def set_ignore_exceptions(self, ignore: bool) -> Self:
        """Log and continue when the callback raises instead of propagating."""
        self._ignore_exceptions = ignore
        return self

    # -------------------------------------------------------------------------
    # Walking
    # -------------------------------------------------------------------------

    def _directory(self, path: str) -> FsDirectory:
        from fsguard.filesystem.directory import FsDirectory

        return FsDirectory(path, self._restrictions, policy=self._policy)

    def skips(self, path: str) -> bool:
        """Check if path is on the skip list, directly or through a parent."""
        return any(path_matches_directory(path, skip) for skip in self._skip)

    def _invoke(self, callback: PathCallback, path: FsPath) -> None:
        logger.debug("Executing callback on '%s'", path.source)
        try:
            callback(path)
        except Exception as e:
            if not self._ignore_exceptions:
                raise
            logger.warning("Path '%s' encountered exception '%s' which will be ignored", path.source, e)

    def _filtered(self, path: str, name: str) -> bool:
        extension = name.rsplit(".", 1)[1].lower() if "." in name.lstrip(".") else ""
        if self._whitelist and extension not in self._whitelist:
            logger.warning("Not executing callback on file '%s', the extension is not whitelisted", path)
            return True
        if self._blacklist and extension in self._blacklist:
            logger.warning("Not executing callback on file '%s', the extension is blacklisted", path)
            return True
        return False

    def on_files(self, callback: PathCallback) -> int:
        """Run callback on every file below the configured paths.

        Returns:
            Number of callback invocations.
        """
        return sum(self._walk(path, callback) for path in self._paths)

    def _walk(self, path: str, callback: PathCallback) -> int:
        from fsguard.filesystem.file import FsFile

        directory = self._directory(path)
        if self.skips(directory.source):
            logger.debug("Skipping '%s', it is on the skip list", directory.source)
            return 0

        directory.check_restrictions(False)
        previous_mode = directory.switch_mode(self._mode)
        count = 0

        try:
            try:
                entries = sorted(os.scandir(unslash(directory.source)), key=lambda entry: entry.name)
            except OSError as e:
                directory.check_readable(previous=e)
                raise

            for entry in entries:
                entry_path = slash(directory.source) + entry.name

                if self.skips(entry_path):
                    logger.debug("Skipping '%s', it is on the skip list", entry_path)
                    continue
                if entry.name.startswith(".") and not self._follow_hidden:
                    logger.warning("Not following path '%s', hidden files are ignored", entry_path)
                    continue
                if entry.is_symlink() and not self._follow_symlinks:
                    logger.warning("Not following path '%s', symlinks are ignored", entry_path)
                    continue

                if entry.is_dir():
                    if self._recurse:
                        count += copy.copy(self)._walk(entry_path, callback)
                    continue

                if not os.path.exists(entry_path):
                    logger.warning(
                        "Not executing callback on file '%s', it does not exist (probably dead symlink)",
                        entry_path,
                    )
                    continue

                if self._filtered(entry_path, entry.name):
                    continue

                self._invoke(callback, FsFile(entry_path, self._restrictions, policy=self._policy))
                count += 1
        finally:
            if previous_mode is not None:
                directory.chmod(previous_mode)

        return count

    def on_path_only(self, callback: PathCallback) -> int:
        """Run callback once for each configured path itself.

        Returns:
            Number of callback invocations.
        """
        from fsguard.filesystem.path import FsPath

        count = 0
        for path in self._paths:
            if self.skips(path):
                logger.debug("Skipping '%s', it is on the skip list", path)
                continue
            target = FsPath(path, self._restrictions, policy=self._policy)
            count += self._run_with_mode(target, callback)
        return count

    def on_directory_only(self, callback: PathCallback) -> int:
        """Run callback once for each configured path that is a directory.

        Returns:
            Number of callback invocations.
        """
        count = 0
        for path in self._paths:
            if self.skips(path):
                logger.debug("Skipping '%s', it is on the skip list", path)
                continue
            directory = self._directory(path)
            if not directory.is_directory():
                logger.warning("Not executing callback on '%s', it is not a directory", path)
                continue
            count += self._run_with_mode(directory, callback)
        return count

    def _run_with_mode(self, path: FsPath, callback: PathCallback) -> int:
        previous_mode = path.switch_mode(self._mode) if path.exists(auto_mount=False) else None
        try:
            self._invoke(callback, path)
        finally:
            if previous_mode is not None:
                path.chmod(previous_mode)
        return 1

    def __copy__(self) -> FsExecute:
        clone = FsExecute.__new__(FsExecute)
        clone.__dict__.update(self.__dict__)
        clone._skip = list(self._skip)
        return clone

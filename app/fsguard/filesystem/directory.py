"""Restricted directory paths.

FsDirectory adds directory-only operations to FsPath: idempotent creation
(ensure), upward pruning of empty parents (clear_directory), listings,
glob and regex scans, recursive size/count, duplicate detection, copying,
mount awareness and temporary work directories.
"""

from __future__ import annotations

import fnmatch
import glob
import logging
import os
import random
import re
import secrets
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Self

from fsguard.core.paths import ensure_temporary_root, get_temporary_root
from fsguard.filesystem.exceptions import (
    DirectoryError,
    DirectoryNotMountedError,
    FilesystemError,
    OutOfBoundsError,
    PathNotDirectoryError,
)
from fsguard.filesystem.file import CopyCallback, FsFile
from fsguard.filesystem.mounts import MOUNTED_SENTINEL, NOT_MOUNTED_SENTINEL
from fsguard.filesystem.path import FsPath
from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.resolve import slash, unslash
from fsguard.filesystem.restrictions import Restrictions

if TYPE_CHECKING:
    from fsguard.filesystem.duplicates import FsDuplicates
    from fsguard.filesystem.execute import FsExecute
    from fsguard.filesystem.files import FsFiles

logger = logging.getLogger(__name__)

LOCK_FILE = ".lock"

_BRACKET_GROUP = re.compile(r"\[([^\[\]]*)\]")


def expand_alternation(pattern: str) -> list[str]:
    """Expand a single "name[a,b].ext" bracket group into plain glob patterns.

    Raises:
        OutOfBoundsError: If the pattern holds more than one bracket group.
    """
    groups = _BRACKET_GROUP.findall(pattern)
    if not groups:
        return [pattern]
    if len(groups) > 1:
        msg = f"Invalid file pattern '{pattern}', only one bracket group is supported"
        raise OutOfBoundsError(msg, data={"pattern": pattern})

    match = _BRACKET_GROUP.search(pattern)
    assert match is not None
    head, tail = pattern[: match.start()], pattern[match.end() :]
    return [f"{head}{option.strip()}{tail}" for option in groups[0].split(",")]


class FsDirectory(FsPath):
    """A path that must be a directory when it exists."""

    def check_is_directory(self) -> Self:
        """Raise PathNotDirectoryError if this path exists and is not a directory."""
        path = unslash(self.source)
        if os.path.lexists(path) and not os.path.isdir(path):
            msg = f"The path '{self.source}' must be a directory but is a {self.get_type_name()}"
            raise PathNotDirectoryError(msg, path=self.source)
        return self

    def _child(self, name: str, cls: type[FsPath] | None = None) -> FsPath:
        return self._derive(slash(self.source) + name.lstrip("/"), cls=cls or FsPath)

    def _entries(self) -> list[os.DirEntry[str]]:
        try:
            with os.scandir(unslash(self.source)) as iterator:
                return sorted(iterator, key=lambda entry: entry.name)
        except OSError as e:
            error = DirectoryError(f"Failed to list directory '{self.source}': {e}", path=self.source)
            error.__cause__ = e
            self.check_readable("directory", previous=error)
            raise error from e

    # -------------------------------------------------------------------------
    # Creation and removal
    # -------------------------------------------------------------------------

    def ensure(self, mode: int | None = None, clear: bool = False, sudo: bool = False) -> Self:
        """Create the directory and any missing parents.

        Segments are created one at a time. An entry blocking a segment (a
        file or a dead symlink) is deleted and the walk starts over. The
        parent of each created segment is made writable for the duration of
        the creation if it is not writable already.

        Args:
            mode: Mode for created directories. Defaults to the configured
                directory mode.
            clear: Delete the directory first, so it is empty afterwards.
            sudo: Create (and clear) with sudo.

        Raises:
            RestrictionsError: If the directory has to be created and writing
                it is not allowed.
            DirectoryError: If a segment cannot be created.
        """
        mode = self._policy.settings.directory_mode if mode is None else mode
        path = unslash(self.source)

        if clear and self.exists(check_dead_symlink=True, auto_mount=False):
            self.delete(clean_path=False, sudo=sudo)

        if os.path.isdir(path):
            return self

        self.check_restrictions(True)
        self._policy.check_write_access(self.source)

        segments = [segment for segment in path.split("/") if segment]
        count = len(segments)

        for index, segment in enumerate(segments):
            parent = "/" + "/".join(segments[:index])
            current = slash(parent) + segment

            if os.path.isdir(current):
                continue

            if os.path.lexists(current):
                levels = count - index - 1
                restrictions = self._restrictions.get_parent(levels) if levels else self._restrictions
                logger.warning(
                    "Path '%s' is in the way of directory '%s', deleting it", current, self.source
                )
                self._derive(current, restrictions, cls=FsPath).delete(clean_path=False, sudo=sudo)
                return self.ensure(mode, clear=False, sudo=sudo)

            self._create_segment(parent, current, mode, sudo, count - index)

        return self

    def _create_segment(self, parent: str, current: str, mode: int, sudo: bool, levels: int) -> None:
        from fsguard.filesystem.execute import FsExecute

        restrictions = self._restrictions.get_parent(levels).get_these_writable()
        restrictions.check(current, True)

        def create(_: FsPath) -> None:
            logger.debug("Creating directory '%s'", current)
            try:
                if sudo:
                    self._policy.runner.run(
                        "mkdir",
                        ["-m", f"{mode:o}", current],
                        sudo=True,
                        timeout=self._policy.settings.command_timeout,
                    )
                else:
                    os.mkdir(current)
                    os.chmod(current, mode)
            except FileExistsError as e:
                if not os.path.isdir(current):
                    msg = f"Failed to create directory '{current}', a non directory appeared in its place"
                    raise DirectoryError(msg, path=current) from e
                logger.warning("Directory '%s' was created by another process", current)
            except OSError as e:
                msg = f"Failed to create directory '{current}': {e}"
                raise DirectoryError(msg, path=current) from e

        execute = FsExecute(parent, restrictions, policy=self._policy)
        if not os.access(parent, os.W_OK):
            execute.set_mode(self._policy.settings.ensure_parent_mode)
        execute.on_directory_only(create)

    def can_ascend(self, path: str) -> bool:
        """Check if clearing may remove path: it and its parent must be writable."""
        path = unslash(path)
        parent = os.path.dirname(path) or "/"
        return self._restrictions.allows(path, True) and self._restrictions.allows(parent, True)

    def clear_directory(self, until: str | FsPath | None = None, sudo: bool = False) -> None:
        """Remove this directory and its parents for as long as they are empty.

        Stops at the first level that is not a directory, is not empty, is
        the until directory, or may not be removed under the restrictions.
        """
        current = unslash(self.source)
        stop = unslash(self._sibling(until).source) if until is not None else None

        while current != "/":
            if stop is not None and current == stop:
                break
            if not self.can_ascend(current):
                logger.debug("Stopped clearing at '%s', restrictions do not allow going further", current)
                break
            if os.path.islink(current) or not os.path.isdir(current):
                break
            with os.scandir(current) as iterator:
                if next(iterator, None) is not None:
                    break

            logger.debug("Removing empty directory '%s'", current)
            try:
                if sudo:
                    self._policy.runner.run(
                        "rmdir", [current], sudo=True, timeout=self._policy.settings.command_timeout
                    )
                else:
                    os.rmdir(current)
            except FileNotFoundError:
                logger.warning("Directory '%s' was already removed", current)
            except OSError as e:
                logger.warning("Not removing directory '%s', it is no longer empty: %s", current, e)
                break

            current = os.path.dirname(current) or "/"

    def ensure_writable(self, mode: str | int = "u+w") -> Self:
        """Create the directory if needed and make sure it can be written."""
        self.ensure()
        if not os.access(unslash(self.source), os.W_OK):
            logger.warning("Directory '%s' is not writable, applying mode '%s'", self.source, mode)
            self.chmod(mode)
        return self

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def is_empty(self) -> bool:
        """Check if the directory has no entries, stopping at the first one found."""
        self.check_restrictions(False)
        self.check_is_directory()
        try:
            with os.scandir(unslash(self.source)) as iterator:
                return next(iterator, None) is None
        except OSError as e:
            error = DirectoryError(f"Failed to open directory '{self.source}': {e}", path=self.source)
            error.__cause__ = e
            self.check_readable("directory", previous=error)
            raise error from e

    def _files(self, sources: Iterable[str | FsPath]) -> FsFiles:
        from fsguard.filesystem.files import FsFiles

        return FsFiles(sources, self._restrictions, parent=self)

    def list(self) -> FsFiles:
        """Return all entries of this directory."""
        self.check_restrictions(False)
        return self._files(slash(self.source) + entry.name for entry in self._entries())

    def _walk_files(self, recursive: bool = True) -> Iterator[str]:
        for entry in self._entries():
            path = slash(self.source) + entry.name
            if entry.is_dir(follow_symlinks=False):
                if recursive:
                    yield from self._child(entry.name, FsDirectory)._walk_files(recursive)
                continue
            yield path

    def list_tree(self, filters: str | Iterable[str] | None = None, recursive: bool = True) -> list[str]:
        """Return the files below this directory whose names match every filter.

        Args:
            filters: Regular expressions; a file is listed only if all match
                its name.
            recursive: Descend into sub directories.
        """
        self.check_restrictions(False)
        self.check_exists()
        if isinstance(filters, str):
            filters = [filters]
        patterns = [re.compile(item) for item in filters or []]

        return [
            path
            for path in self._walk_files(recursive)
            if all(pattern.search(os.path.basename(path)) for pattern in patterns)
        ]

    def scan(self, patterns: str | Iterable[str] | None = None) -> FsFiles:
        """Return the entries whose names match one of the glob patterns.

        Patterns may hold one bracket group of alternatives, such as
        "report[2023,2024].csv". Matching ignores case.

        Raises:
            OutOfBoundsError: If a pattern holds more than one bracket group.
        """
        self.check_restrictions(False)
        self.check_exists()
        if isinstance(patterns, str):
            patterns = [patterns]
        expanded = [item.casefold() for pattern in patterns or ["*"] for item in expand_alternation(pattern)]

        found = glob.glob(slash(glob.escape(unslash(self.source))) + "*")
        return self._files(
            path
            for path in sorted(found)
            if any(fnmatch.fnmatchcase(os.path.basename(path).casefold(), item) for item in expanded)
        )

    def scan_regex(self, pattern: str | None = None) -> FsFiles:
        """Return the entries whose names match the regular expression."""
        self.check_restrictions(False)
        compiled = re.compile(pattern) if pattern else None
        return self._files(
            slash(self.source) + entry.name
            for entry in self._entries()
            if compiled is None or compiled.search(entry.name)
        )

    def each(self, callback: Callable[[FsPath], object]) -> Self:
        """Run callback for every entry of scan()."""
        for path in self.scan():
            callback(path)
        return self

    def execute(self) -> FsExecute:
        """Return a tree walker for this directory."""
        from fsguard.filesystem.execute import FsExecute

        return FsExecute(self, self._restrictions, policy=self._policy)

    def random(self) -> FsPath:
        """Return a randomly picked entry.

        Raises:
            FilesystemError: If the directory is empty.
        """
        self.check_restrictions(False)
        self.check_exists()
        entries = self._entries()
        if not entries:
            msg = f"The specified directory '{self.source}' contains no files"
            raise FilesystemError(msg, path=self.source)
        return self._child(random.choice(entries).name)

    def has_file(self, filename: str) -> bool:
        self.check_restrictions(False)
        return os.path.lexists(slash(self.source) + filename.lstrip("/"))

    def scan_upwards_for_file(self, filename: str) -> str | None:
        """Find the nearest directory, starting here and going up, holding filename.

        Returns:
            The directory (with trailing slash), or None if no directory has it.
        """
        self.check_restrictions(False)
        current = unslash(self.source)
        while True:
            if os.path.exists(slash(current) + filename):
                return slash(current)
            if current == "/":
                return None
            current = os.path.dirname(current) or "/"

    def contains_files(self) -> bool:
        """Check if any file exists anywhere below this directory."""
        self.check_restrictions(False)
        return next(self._walk_files(True), None) is not None

    def add_file(self, name: str | FsPath) -> FsFile:
        """Return the file name below this directory."""
        return self._child(str(name), FsFile)

    def add_directory(self, name: str | FsPath) -> FsDirectory:
        """Return the directory name below this directory."""
        return self._child(str(name), FsDirectory)

    # -------------------------------------------------------------------------
    # Single entries
    # -------------------------------------------------------------------------

    def _get_single(self, regex: str | None, directory: bool, allow_multiple: bool) -> str:
        self.check_restrictions(False)
        self.check_exists()
        compiled = re.compile(regex) if regex else None
        noun, kind = ("directory", "directories") if directory else ("file", "files")

        matches = [
            entry.name
            for entry in self._entries()
            if entry.is_dir() == directory and (compiled is None or compiled.search(entry.name))
        ]
        if not matches:
            msg = f"Cannot get single {noun} from '{self.source}', it matches no {kind}"
            raise FilesystemError(msg, path=self.source, data={"regex": regex})
        if len(matches) > 1 and not allow_multiple:
            msg = f"Cannot get single {noun} from '{self.source}', it matches {len(matches)} {kind}"
            raise FilesystemError(msg, path=self.source, data={"regex": regex, "matches": matches})
        return slash(self.source) + matches[0]

    def get_single_file(self, regex: str | None = None, allow_multiple: bool = False) -> FsFile:
        """Return the only file in this directory.

        Args:
            regex: Only consider files whose name matches.
            allow_multiple: Return the first match instead of failing when
                several files match.

        Raises:
            FilesystemError: If no file, or more than one file, matches.
        """
        return self._derive(self._get_single(regex, False, allow_multiple), cls=FsFile)

    def get_single_directory(self, regex: str | None = None, allow_multiple: bool = False) -> FsDirectory:
        """Return the only sub directory, see get_single_file()."""
        return self._derive(self._get_single(regex, True, allow_multiple), cls=FsDirectory)

    # -------------------------------------------------------------------------
    # Sizes and counts
    # -------------------------------------------------------------------------

    def _tree_files(self) -> Iterator[str]:
        for root, _, filenames in os.walk(unslash(self.source)):
            for filename in filenames:
                path = os.path.join(root, filename)
                if not os.path.exists(path):
                    logger.warning("Ignoring file '%s', it is a dead symlink", path)
                    continue
                yield path

    def tree_file_size(self) -> int:
        """Total size in bytes of every file below this directory."""
        self.check_restrictions(False)
        self.check_exists()
        return sum(os.path.getsize(path) for path in self._tree_files())

    def tree_file_count(self) -> int:
        """Number of files below this directory."""
        self.check_restrictions(False)
        self.check_exists()
        return sum(1 for _ in self._tree_files())

    def get_count(self, recursive: bool = True) -> int:
        """Number of entries (files and directories) in this directory.

        Args:
            recursive: Include the entries of every sub directory.
        """
        self.check_restrictions(False)
        count = 0
        for entry in self._entries():
            count += 1
            if recursive and entry.is_dir(follow_symlinks=False):
                count += self._child(entry.name, FsDirectory).get_count(recursive)
        return count

    def get_size(self, recursive: bool = True) -> int:
        """Size in bytes of the files in this directory.

        Args:
            recursive: Include the files of every sub directory.
        """
        self.check_restrictions(False)
        size = 0
        for entry in self._entries():
            if entry.is_dir(follow_symlinks=False):
                if recursive:
                    size += self._child(entry.name, FsDirectory).get_size(recursive)
                continue
            try:
                size += entry.stat().st_size
            except FileNotFoundError:
                logger.warning("Ignoring file '%s', it is a dead symlink", entry.path)
        return size

    def get_duplicate_files(
        self,
        recurse_levels: int = 1_000_000,
        max_size: int | None = None,
    ) -> FsDuplicates:
        """Find files below this directory with identical content.

        Args:
            recurse_levels: How many levels of sub directories to include.
            max_size: Files larger than this are skipped. Defaults to the
                configured duplicates_max_size.
        """
        from fsguard.filesystem.duplicates import DuplicateScanner

        if max_size is None:
            max_size = self._policy.settings.duplicates_max_size
        return DuplicateScanner(self, recurse_levels, max_size).scan()

    # -------------------------------------------------------------------------
    # Copying and targets
    # -------------------------------------------------------------------------

    def copy(
        self,
        target: str | FsPath,
        restrictions: Restrictions | None = None,
        callback: CopyCallback | None = None,
        recursive: bool = True,
    ) -> FsDirectory:
        """Copy this directory to target.

        Sub directories are always recreated; their contents are copied only
        when recursive is set.

        Returns:
            The target directory.
        """
        if restrictions is None and isinstance(target, FsPath):
            restrictions = target.restrictions
        destination = self._derive(target, restrictions, cls=FsDirectory)

        self.check_restrictions(False)
        self.check_exists()
        destination.ensure()
        logger.info("Copying directory '%s' to '%s'", self.source, destination.source)

        for entry in self._entries():
            if entry.is_dir(follow_symlinks=False):
                child = self._child(entry.name, FsDirectory)
                if recursive:
                    child.copy(destination.add_directory(entry.name), callback=callback)
                else:
                    destination.add_directory(entry.name).ensure()
                continue
            self._child(entry.name, FsFile).copy(destination.add_file(entry.name), callback=callback)

        return destination

    def create_target(self, single: bool | None = None, length: int = 0) -> str:
        """Create a fresh random directory below this one.

        Args:
            single: Use the whole random name as one directory instead of
                one nested directory per character. Defaults to the
                target_directory_single setting.
            length: Number of random characters. Defaults to the
                target_directory_size setting.

        Returns:
            The created directory, with trailing slash.
        """
        settings = self._policy.settings
        single = settings.target_directory_single if single is None else single
        length = length or settings.target_directory_size

        token = secrets.token_hex((length + 1) // 2)[:length]
        relative = token if single else "/".join(token)
        target = self.add_directory(relative)
        target.ensure()
        return slash(target.source)

    def tar(self, target: str | FsPath | None = None, compression: bool = True, timeout: float = 600) -> FsFile:
        """Archive this directory with tar.

        Args:
            target: Archive file. Defaults to this directory's path plus
                ".tar.gz" (or ".tar" without compression).
            compression: Compress with gzip.
            timeout: Seconds tar may run.
        """
        self.check_restrictions(False)
        self.check_exists()
        if target is None:
            target = unslash(self.source) + (".tar.gz" if compression else ".tar")
        archive = self._derive(target, cls=FsFile)
        archive.check_restrictions(True)
        archive.parent_directory().ensure()

        logger.info("Archiving '%s' to '%s'", self.source, archive.source)
        parent = os.path.dirname(unslash(self.source)) or "/"
        self._policy.runner.run(
            "tar",
            ["-czf" if compression else "-cf", unslash(archive.source), "-C", parent, self.basename],
            timeout=timeout,
        )
        return archive

    # -------------------------------------------------------------------------
    # Mounts
    # -------------------------------------------------------------------------

    def is_mounted(self, sources: str | Iterable[str] | None = None) -> bool | None:
        """Report whether this directory is mounted, using its sentinel files.

        Args:
            sources: Accepted mount sources. If given, a mounted directory
                only counts when its current source is one of them.

        Returns:
            True or False from the sentinel files, None when neither
            sentinel exists.
        """
        self.check_restrictions(False)
        directory = slash(self.source)

        if os.path.exists(directory + MOUNTED_SENTINEL):
            mounted = True
        elif os.path.exists(directory + NOT_MOUNTED_SENTINEL):
            mounted = False
        else:
            return None

        if mounted and sources is not None:
            if isinstance(sources, str):
                sources = [sources]
            current = self._policy.mounts.current_source(unslash(self.source))
            if current is None:
                return None
            return unslash(current) in {unslash(source) for source in sources}
        return mounted

    def check_mounted(self, sources: str | Iterable[str] | None = None) -> Self:
        """Raise DirectoryNotMountedError unless is_mounted() reports True."""
        if not self.is_mounted(sources):
            msg = f"The directory '{self.source}' is not mounted"
            raise DirectoryNotMountedError(msg, path=self.source, data={"sources": sources})
        return self

    def ensure_mounted(
        self,
        source: str,
        filesystem: str | None = None,
        options: list[str] | None = None,
    ) -> Self:
        """Mount source here unless it is mounted already."""
        if not self.is_mounted(source):
            self.mount(source, filesystem, options)
        return self

    def mount(
        self,
        source: str,
        filesystem: str | None = None,
        options: list[str] | None = None,
        timeout: float | None = None,
    ) -> Self:
        """Mount source on this directory through the mount registry."""
        self.check_restrictions(True)
        self.ensure()
        self._policy.mounts.mount(source, unslash(self.source), filesystem, options, timeout=timeout)
        return self

    def bind(self, source: str, options: list[str] | None = None, timeout: float | None = None) -> Self:
        """Bind mount source on this directory."""
        self.check_restrictions(True)
        self.ensure()
        self._policy.mounts.mount(source, unslash(self.source), None, options, bind=True, timeout=timeout)
        return self

    def unmount(self, timeout: float | None = None) -> Self:
        self.check_restrictions(True)
        self._policy.mounts.unmount(unslash(self.source), timeout=timeout)
        return self

    def unbind(self, timeout: float | None = None) -> Self:
        return self.unmount(timeout)

    # -------------------------------------------------------------------------
    # Temporary directories
    # -------------------------------------------------------------------------

    @classmethod
    def get_temporary(
        cls,
        identifier: str | None = None,
        restrictions: Restrictions | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> FsDirectory:
        """Create a fresh, empty temporary directory holding a lock file.

        Args:
            identifier: Name of the directory. A random name is used if None.
                An existing directory with this name is emptied first.
            restrictions: Restrictions for the directory. Defaults to write
                access to the temporary root.
            policy: Filesystem policy.
        """
        try:
            root = str(ensure_temporary_root().resolve())
        except RuntimeError as e:
            raise DirectoryError(str(e)) from e
        policy = policy or (restrictions.policy if restrictions is not None else FilesystemPolicy())
        if restrictions is None:
            restrictions = Restrictions.writable(root, "temporary directories", policy=policy)

        name = identifier or secrets.token_hex(8)
        directory = cls(f"{root}/{name}", restrictions, policy=policy)
        directory.ensure(clear=True)
        directory.add_file(LOCK_FILE).touch()
        logger.debug("Created temporary directory '%s'", directory.source)
        return directory

    @classmethod
    def remove_temporary(
        cls,
        identifier: str | None = None,
        restrictions: Restrictions | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> None:
        """Delete one temporary directory, or all of them when identifier is None."""
        root = str(get_temporary_root().resolve())
        policy = policy or (restrictions.policy if restrictions is not None else FilesystemPolicy())
        if restrictions is None:
            restrictions = Restrictions.writable(root, "temporary directories", policy=policy)

        target = f"{root}/{identifier}" if identifier else root
        cls(target, restrictions, policy=policy).delete(clean_path=False)

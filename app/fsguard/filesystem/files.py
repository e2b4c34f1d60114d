"""Ordered collections of restricted paths."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Self

from fsguard.filesystem.exceptions import PathNotDirectoryError
from fsguard.filesystem.path import FsPath
from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.resolve import absolute_path, unslash
from fsguard.filesystem.restrictions import Restrictions

if TYPE_CHECKING:
    from fsguard.filesystem.directory import FsDirectory

logger = logging.getLogger(__name__)

_SKIPPED_NAMES = frozenset({".", ".."})


class FsFiles:
    """Ordered mapping of absolute path to FsFile or FsDirectory.

    Each entry's type is decided when it is added. The optional parent
    directory is used only to resolve relative entries. Bulk operations
    that remove paths from disk also drop them from the collection.

    Attributes:
        _entries: Path (without trailing slash) to path object.
        _restrictions: Restrictions given to entries added as strings.
        _parent: Directory that relative entries resolve against.
    """

    def __init__(
        self,
        sources: Iterable[str | FsPath] | None = None,
        restrictions: Restrictions | None = None,
        *,
        parent: FsDirectory | None = None,
        policy: FilesystemPolicy | None = None,
    ) -> None:
        if restrictions is None and parent is not None:
            restrictions = parent.restrictions
        if policy is None:
            policy = restrictions.policy if restrictions is not None else FilesystemPolicy()

        self._policy = policy
        if restrictions is None:
            restrictions = Restrictions(label="FsFiles", policy=policy)
        self._restrictions = restrictions
        self._parent = parent
        self._entries: dict[str, FsPath] = {}

        for source in sources or []:
            self.add(source)

    @property
    def restrictions(self) -> Restrictions:
        return self._restrictions

    @property
    def parent(self) -> FsDirectory | None:
        return self._parent

    def _key(self, item: str | FsPath) -> str:
        if isinstance(item, FsPath):
            return unslash(item.source)
        if self._parent is not None and not item.startswith(("/", "~", "./")) and item != ".":
            item = f"{unslash(self._parent.source)}/{item}"
        return unslash(absolute_path(item, None, False, policy=self._policy))

    def _resolve(self, item: str | FsPath) -> FsPath:
        from fsguard.filesystem.directory import FsDirectory
        from fsguard.filesystem.file import FsFile

        if isinstance(item, FsFile | FsDirectory):
            return item
        if isinstance(item, FsPath):
            return item.as_directory() if item.is_directory() else item.as_file()

        key = self._key(item)
        cls = FsDirectory if os.path.isdir(key) else FsFile
        return cls(key, self._restrictions, policy=self._policy)

    def add(self, item: str | FsPath) -> Self:
        """Add a path. "." and ".." entries are ignored."""
        name = item if isinstance(item, str) else item.source
        if os.path.basename(unslash(name)) in _SKIPPED_NAMES or name in _SKIPPED_NAMES:
            return self

        path = self._resolve(item)
        self._entries[unslash(path.source)] = path
        return self

    def remove(self, item: str | FsPath) -> Self:
        """Drop a path from the collection, leaving it on disk."""
        self._entries.pop(self._key(item), None)
        return self

    def get(self, item: str | FsPath, default: FsPath | None = None) -> FsPath | None:
        return self._entries.get(self._key(item), default)

    def keys(self) -> list[str]:
        return list(self._entries)

    def sources(self) -> list[str]:
        """Return the source strings of every entry."""
        return [path.source for path in self._entries.values()]

    def values(self) -> list[FsPath]:
        return list(self._entries.values())

    def items(self) -> list[tuple[str, FsPath]]:
        return list(self._entries.items())

    def __getitem__(self, item: str | FsPath) -> FsPath:
        return self._entries[self._key(item)]

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, str | FsPath):
            return False
        return self._key(item) in self._entries

    def __iter__(self) -> Iterator[FsPath]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FsFiles({self.keys()!r})"

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    def _target_directory(self, target: str | FsPath) -> FsDirectory:
        from fsguard.filesystem.directory import FsDirectory

        if isinstance(target, FsDirectory):
            directory = target
        elif isinstance(target, FsPath):
            directory = target.as_directory()
        else:
            directory = FsDirectory(target, self._restrictions, policy=self._policy)

        if directory.exists() and not directory.is_directory():
            msg = f"Cannot place files in '{directory.source}', it is not a directory"
            raise PathNotDirectoryError(msg, path=directory.source)
        return directory.ensure()

    def move(self, target: str | FsPath) -> FsFiles:
        """Move every entry into the target directory.

        Returns:
            A new collection holding the moved paths. Moved entries are
            dropped from this collection.
        """
        directory = self._target_directory(target)
        moved = FsFiles(restrictions=directory.restrictions, policy=self._policy)

        for key, path in list(self._entries.items()):
            moved.add(path.move_path(directory, directory.restrictions))
            del self._entries[key]
        return moved

    def copy(self, target: str | FsPath) -> FsFiles:
        """Copy every entry into the target directory.

        Returns:
            A new collection holding the copies.
        """
        directory = self._target_directory(target)
        copies = FsFiles(restrictions=directory.restrictions, policy=self._policy)

        for path in self._entries.values():
            copies.add(path.copy(directory.append_path(path.basename), directory.restrictions))
        return copies

    def delete(self, clean_path: bool | str = True, sudo: bool = False) -> Self:
        """Delete every entry from disk and from the collection."""
        for key, path in list(self._entries.items()):
            path.delete(clean_path, sudo)
            del self._entries[key]
        return self

    def secure_delete(self, clean_path: bool | str = True, sudo: bool = False) -> Self:
        """Securely delete every entry from disk and from the collection."""
        for key, path in list(self._entries.items()):
            path.secure_delete(clean_path, sudo)
            del self._entries[key]
        return self

    def shred(self, passes: int = 3, randomized: bool = False, block_size: int = 4096) -> Self:
        """Shred every file entry; directory entries are securely deleted instead."""
        from fsguard.filesystem.directory import FsDirectory

        for key, path in list(self._entries.items()):
            if isinstance(path, FsDirectory):
                logger.info("Securely deleting directory '%s' instead of shredding it", path.source)
                path.secure_delete(clean_path=False)
            else:
                path.shred(passes, randomized, block_size)
            del self._entries[key]
        return self

    def chmod(self, mode: str | int, recursive: bool = False, sudo: bool = False) -> Self:
        for path in self._entries.values():
            path.chmod(mode, recursive, sudo)
        return self

    def each(self, callback: Callable[[FsPath], object]) -> Self:
        """Run callback for every entry."""
        for path in self:
            callback(path)
        return self

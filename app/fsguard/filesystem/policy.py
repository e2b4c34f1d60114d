"""Filesystem policy context.

A FilesystemPolicy bundles the process-wide switches and collaborators
every path needs: global read/write enablement, settings, the command
runner, the mount registry and an optional scoped resolution cache.
Paths derived from another path share its policy.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from fsguard.core.config import FilesystemSettings, load_settings
from fsguard.filesystem.exceptions import FileNotReadableError, FileNotWritableError
from fsguard.filesystem.mounts import MountRegistry, NullMountRegistry
from fsguard.utils.shell import CommandRunner

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str | None, bool]


@dataclass(slots=True)
class PathCache:
    """Memoized path resolutions, keyed by (operation, path, prefix, must_exist).

    Attributes:
        entries: Cached results.
        hits: Number of lookups answered from the cache.
    """

    entries: dict[CacheKey, str] = field(default_factory=dict)
    hits: int = 0

    def get(self, key: CacheKey) -> str | None:
        value = self.entries.get(key)
        if value is not None:
            self.hits += 1
        return value

    def set(self, key: CacheKey, value: str) -> str:
        self.entries[key] = value
        return value

    def clear(self) -> None:
        self.entries.clear()


@dataclass(slots=True)
class FilesystemPolicy:
    """Process-wide filesystem switches and collaborators.

    Attributes:
        settings: Filesystem settings (modes, directories, timeouts).
        read_enabled: If False, every read access check fails.
        write_enabled: If False, every write access check fails.
        runner: Executes rm, chmod, chown, shred, df and friends.
        mounts: Registry consulted for auto-mounting.
        start_directory: Directory that "./" paths resolve against.
        cache: Active resolution cache, or None when caching is off.
    """

    settings: FilesystemSettings = field(default_factory=FilesystemSettings)
    read_enabled: bool = True
    write_enabled: bool = True
    runner: CommandRunner = field(default_factory=CommandRunner)
    mounts: MountRegistry = field(default_factory=NullMountRegistry)
    start_directory: str = field(default_factory=os.getcwd)
    cache: PathCache | None = None

    @classmethod
    def from_settings_file(cls, path: Path | None = None) -> "FilesystemPolicy":
        """Build a policy from the settings file.

        Args:
            path: Settings file. If None, uses the default settings path.

        Raises:
            SettingsError: If the settings file is invalid.
        """
        settings = load_settings(path)
        return cls(settings=settings, runner=CommandRunner(settings.command_timeout))

    @contextmanager
    def cached(self) -> Iterator[PathCache]:
        """Enable path resolution caching for the duration of the block.

        Nested blocks share the outer cache. The cache is dropped when the
        outermost block exits.
        """
        if self.cache is not None:
            yield self.cache
            return

        self.cache = PathCache()
        try:
            yield self.cache
        finally:
            logger.debug("Dropping path cache with %d entries", len(self.cache.entries))
            self.cache = None

    def check_read_access(self, path: str) -> None:
        """Raise FileNotReadableError if reading has been disabled."""
        if not self.read_enabled:
            msg = f"Cannot read path '{path}', all read access has been disabled"
            raise FileNotReadableError(msg, path=path)

    def check_write_access(self, path: str) -> None:
        """Raise FileNotWritableError if writing has been disabled."""
        if not self.write_enabled:
            msg = f"Cannot write path '{path}', all write access has been disabled"
            raise FileNotWritableError(msg, path=path)

"""Mount registry for lazy auto-mounting.

A registry knows which mount points are expected (FsMount records) and
how to attach or detach them. Paths consult the registry when they do not
exist, so a missing mount can be attached and the access retried once.
"""

import atexit
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from fsguard.filesystem.exceptions import MountsError
from fsguard.utils.shell import CommandRunner, ProcessFailedError

logger = logging.getLogger(__name__)

MOUNTED_SENTINEL = ".ismounted"
NOT_MOUNTED_SENTINEL = ".isnotmounted"


@dataclass(slots=True)
class FsMount:
    """An expected mount point.

    Attributes:
        source: Device or directory that is mounted.
        target: Absolute mount point.
        filesystem: Filesystem type passed to mount -t, if any.
        options: Mount options passed to mount -o.
        auto_mount: Whether a missing mount may be attached automatically.
        auto_unmount: Whether an auto-mounted mount is detached at exit.
        timeout: Seconds to wait for the mount command.
    """

    source: str
    target: str
    filesystem: str | None = None
    options: list[str] = field(default_factory=list)
    auto_mount: bool = False
    auto_unmount: bool = False
    timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate field values."""
        if not self.target.startswith("/"):
            msg = f"Mount target must be absolute, got '{self.target}'"
            raise ValueError(msg)
        self.target = self.target.rstrip("/") or "/"

    def covers(self, path: str) -> bool:
        """Check if path lies on or below this mount's target."""
        path = path.rstrip("/") or "/"
        if self.target == "/":
            return True
        return path == self.target or path.startswith(self.target + "/")


class MountRegistry(Protocol):
    """Interface the filesystem layer uses to find and attach mounts."""

    def for_path(self, path: str) -> FsMount | None: ...

    def current_source(self, target: str) -> str | None: ...

    def mount(
        self,
        source: str,
        target: str,
        filesystem: str | None = None,
        options: list[str] | None = None,
        *,
        bind: bool = False,
        timeout: float | None = None,
    ) -> None: ...

    def unmount(self, target: str, *, timeout: float | None = None) -> None: ...

    def auto_mount(self, mount: FsMount) -> bool | None: ...


class NullMountRegistry:
    """Registry that knows no mounts and refuses to mount anything."""

    def for_path(self, path: str) -> FsMount | None:
        return None

    def current_source(self, target: str) -> str | None:
        return None

    def mount(
        self,
        source: str,
        target: str,
        filesystem: str | None = None,
        options: list[str] | None = None,
        *,
        bind: bool = False,
        timeout: float | None = None,
    ) -> None:
        msg = f"Cannot mount '{source}' on '{target}', no mount registry configured"
        raise MountsError(msg, path=target)

    def unmount(self, target: str, *, timeout: float | None = None) -> None:
        msg = f"Cannot unmount '{target}', no mount registry configured"
        raise MountsError(msg, path=target)

    def auto_mount(self, mount: FsMount) -> bool | None:
        return False


def _decode_mount_field(value: str) -> str:
    r"""Decode the octal escapes (\040 for space) used in /proc/mounts."""
    return value.encode("latin-1").decode("unicode_escape")


class StaticMountRegistry:
    """In-memory registry of expected mounts, attached via mount/umount.

    Attributes:
        _mounts: Known mount records.
        _runner: Command runner used for mount and umount.
        _mount_table: File listing the currently attached mounts.
    """

    def __init__(
        self,
        mounts: Iterable[FsMount] = (),
        runner: CommandRunner | None = None,
        mount_table: str = "/proc/mounts",
    ) -> None:
        self._mounts: list[FsMount] = list(mounts)
        self._runner = runner or CommandRunner()
        self._mount_table = mount_table

    def add(self, mount: FsMount) -> None:
        """Register an expected mount."""
        self._mounts.append(mount)

    def for_path(self, path: str) -> FsMount | None:
        """Return the most specific mount covering path, if any."""
        matches = [mount for mount in self._mounts if mount.covers(path)]
        if not matches:
            return None
        return max(matches, key=lambda mount: len(mount.target))

    def current_source(self, target: str) -> str | None:
        """Return the source currently mounted on target, or None.

        When several mounts are stacked on target, the topmost one wins.
        """
        target = target.rstrip("/") or "/"
        try:
            lines = Path(self._mount_table).read_text().splitlines()
        except OSError as e:
            msg = f"Failed to read mount table {self._mount_table}: {e}"
            raise MountsError(msg, path=target) from e

        source: str | None = None
        for line in lines:
            parts = line.split()
            if len(parts) < 2:
                continue
            if _decode_mount_field(parts[1]) == target:
                source = _decode_mount_field(parts[0])
        return source

    def mount(
        self,
        source: str,
        target: str,
        filesystem: str | None = None,
        options: list[str] | None = None,
        *,
        bind: bool = False,
        timeout: float | None = None,
    ) -> None:
        """Attach source on target.

        Raises:
            MountsError: If the mount command fails.
        """
        args: list[str] = []
        if bind:
            args.append("--bind")
        if filesystem:
            args.extend(["-t", filesystem])
        if options:
            args.extend(["-o", ",".join(options)])
        args.extend([source, target])

        logger.info("Mounting '%s' on '%s'", source, target)
        try:
            self._runner.run("mount", args, sudo=True, timeout=timeout)
        except ProcessFailedError as e:
            msg = f"Failed to mount '{source}' on '{target}': {e}"
            raise MountsError(msg, path=target) from e

    def unmount(self, target: str, *, timeout: float | None = None) -> None:
        """Detach whatever is mounted on target.

        Raises:
            MountsError: If the umount command fails.
        """
        logger.info("Unmounting '%s'", target)
        try:
            self._runner.run("umount", [target], sudo=True, timeout=timeout)
        except ProcessFailedError as e:
            msg = f"Failed to unmount '{target}': {e}"
            raise MountsError(msg, path=target) from e

    def auto_mount(self, mount: FsMount) -> bool | None:
        """Attach mount if it is missing and allowed to be auto-mounted.

        Returns:
            True if the mount was attached now, False if it is not attached
            and may not be auto-mounted, None if it was already attached.

        Raises:
            MountsError: If the target is attached from a different source.
        """
        current = self.current_source(mount.target)
        if current is not None:
            if current != mount.source:
                msg = (
                    f"The target path '{mount.target}' should be mounted from "
                    f"'{mount.source}' but is mounted from '{current}'"
                )
                raise MountsError(msg, path=mount.target)
            return None

        if not mount.auto_mount:
            return False

        if mount.auto_unmount:
            atexit.register(self._unmount_at_exit, mount)

        logger.info("Automatically mounting '%s' to '%s'", mount.source, mount.target)
        self.mount(
            mount.source,
            mount.target,
            mount.filesystem,
            mount.options,
            timeout=mount.timeout,
        )
        return True

    def _unmount_at_exit(self, mount: FsMount) -> None:
        logger.info("Automatically unmounting '%s' from '%s'", mount.source, mount.target)
        try:
            self.unmount(mount.target, timeout=mount.timeout)
        except MountsError as e:
            logger.warning("Auto-unmount failed: %s", e)

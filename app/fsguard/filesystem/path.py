"""Restricted filesystem path.

FsPath binds a path string to a Restrictions object and checks it before
every operation that reads, writes, deletes or opens. Paths that move
(move_path, rename, follow_link) return a new object and invalidate the
old one; using an invalidated path raises PathInvalidatedError.
"""

from __future__ import annotations

import getpass
import grp
import logging
import mimetypes
import os
import pwd
import secrets
import stat
from typing import TYPE_CHECKING, Any, Self

from fsguard.filesystem.exceptions import (
    FileActionFailedError,
    FileNotExistError,
    FileNotReadableError,
    FileNotSymlinkError,
    FileNotWritableError,
    FileRenameError,
    FilesystemError,
    NotASymlinkError,
    OutOfBoundsError,
    PathExistsError,
    PathInvalidatedError,
    PathNotDirectoryError,
    PathNotFileError,
    RestrictionsError,
    SymlinkBrokenError,
)
from fsguard.filesystem.models import FilesystemInfo, PathKind
from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.resolve import (
    Prefix,
    absolute_path,
    get_domain,
    is_in_directory,
    is_in_domain,
    normalize_path,
    on_domain,
    real_path,
    relative_path,
    unslash,
)
from fsguard.filesystem.restrictions import Restrictions
from fsguard.filesystem.stream import PathStreamMixin
from fsguard.utils.shell import ProcessFailedError

if TYPE_CHECKING:
    from fsguard.filesystem.directory import FsDirectory
    from fsguard.filesystem.file import FsFile
    from fsguard.filesystem.files import FsFiles

logger = logging.getLogger(__name__)

# Non "text/*" mimetypes that still hold text
TEXT_SUBTYPES = frozenset(
    {
        "json",
        "ld+json",
        "svg+xml",
        "x-csh",
        "x-sh",
        "xhtml+xml",
        "xml",
        "vnd.mozilla.xul+xml",
    }
)

DIRECTORY_MIMETYPE = "directory/directory"


class FsPath(PathStreamMixin):
    """A path bound to restrictions and a filesystem policy.

    Attributes:
        target: Destination used by copy-like operations, if any.
        _source: Absolute path (or raw path when created with prefix=False).
        _restrictions: Restrictions checked before every access.
        _policy: Policy shared with every path derived from this one.
    """

    def __init__(
        self,
        source: str | os.PathLike[str] | FsPath | None,
        restrictions: Restrictions | str | list[str] | None = None,
        prefix: Prefix = None,
        must_exist: bool = False,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> None:
        """Create a path.

        Args:
            source: Path string. Relative paths are resolved with prefix.
            restrictions: Restrictions to check. Plain directories are
                turned into read-only restrictions. None means no access.
            prefix: Base for relative paths, False keeps source untouched.
            must_exist: Raise FileNotExistError if the path does not exist.
            policy: Filesystem policy. Defaults to the restrictions' policy.
        """
        if isinstance(source, FsPath):
            source = source.source
        elif source is not None:
            source = os.fspath(source)

        if isinstance(restrictions, Restrictions):
            self._policy = policy or restrictions.policy
        else:
            self._policy = policy or FilesystemPolicy()
            restrictions = Restrictions.ensure(restrictions, policy=self._policy)
            if restrictions is None:
                restrictions = Restrictions(
                    label=f"{type(self).__name__} without restrictions", policy=self._policy
                )

        self._restrictions: Restrictions = restrictions
        self._source: str | None
        if prefix is False:
            self._source = source or ""
        else:
            self._source = absolute_path(source, prefix, must_exist, policy=self._policy)

        self.target: str | None = None
        self._stream = None
        self._open_mode = None
        self._mime: str | None = None
        self._moved_to: str | None = None

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def source(self) -> str:
        """The path string.

        Raises:
            PathInvalidatedError: If the path was moved or renamed.
        """
        if self._source is None:
            msg = f"This path object was moved to '{self._moved_to}' and can no longer be used"
            raise PathInvalidatedError(msg, path=self._moved_to)
        return self._source

    @property
    def restrictions(self) -> Restrictions:
        return self._restrictions

    @property
    def policy(self) -> FilesystemPolicy:
        return self._policy

    @property
    def is_valid(self) -> bool:
        """False once the path has been moved away."""
        return self._source is not None

    def _invalidate(self, moved_to: str) -> None:
        self.close()
        self._moved_to = moved_to
        self._source = None

    def _derive(
        self,
        source: str | os.PathLike[str] | FsPath,
        restrictions: Restrictions | None = None,
        cls: type[FsPath] | None = None,
        prefix: Prefix = None,
    ) -> Any:
        path_class = cls or type(self)
        return path_class(
            source,
            restrictions if restrictions is not None else self._restrictions,
            prefix,
            policy=self._policy,
        )

    def _sibling(self, item: str | os.PathLike[str] | FsPath) -> FsPath:
        if isinstance(item, FsPath):
            return item
        return self._derive(item, cls=FsPath)

    def __str__(self) -> str:
        return self.source

    def __fspath__(self) -> str:
        return unslash(self.source)

    def __repr__(self) -> str:
        source = self._source if self._source is not None else f"<moved to {self._moved_to}>"
        return f"{type(self).__name__}({source!r})"

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    @staticmethod
    def absolute_path(
        path: str | None,
        prefix: Prefix = None,
        must_exist: bool = True,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> str:
        """See fsguard.filesystem.resolve.absolute_path()."""
        return absolute_path(path, prefix, must_exist, policy=policy or FilesystemPolicy())

    @staticmethod
    def normalize_path(
        path: str,
        prefix: Prefix = None,
        must_exist: bool = False,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> str:
        """See fsguard.filesystem.resolve.normalize_path()."""
        return normalize_path(path, prefix, must_exist, policy=policy or FilesystemPolicy())

    @staticmethod
    def real_path(
        path: str,
        prefix: Prefix = None,
        must_exist: bool = False,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> str:
        """See fsguard.filesystem.resolve.real_path()."""
        return real_path(path, prefix, must_exist, policy=policy or FilesystemPolicy())

    def get_absolute_path(self, prefix: Prefix = None, must_exist: bool = True) -> str:
        return absolute_path(self.source, prefix, must_exist, policy=self._policy)

    def get_normalized_path(self, prefix: Prefix = None, must_exist: bool = False) -> str:
        return normalize_path(self.source, prefix, must_exist, policy=self._policy)

    def get_real_path(self, prefix: Prefix = None, must_exist: bool = False) -> str:
        return real_path(self.source, prefix, must_exist, policy=self._policy)

    def absolute(self, prefix: Prefix = None, must_exist: bool = True) -> Self:
        """Return a new path of the same type with the absolute source."""
        return self._derive(self.get_absolute_path(prefix, must_exist), prefix=False)

    def normalized(self, prefix: Prefix = None, must_exist: bool = False) -> Self:
        """Return a new path of the same type with the normalized source."""
        return self._derive(self.get_normalized_path(prefix, must_exist), prefix=False)

    def real(self, prefix: Prefix = None, must_exist: bool = False) -> Self:
        """Return a new path of the same type with the real source."""
        return self._derive(self.get_real_path(prefix, must_exist), prefix=False)

    @property
    def is_absolute(self) -> bool:
        return self.source.startswith("/") or on_domain(self.source)

    @property
    def basename(self) -> str:
        return os.path.basename(unslash(self.source))

    def get_extension(self) -> str:
        """Return the extension without dot, or "" if there is none."""
        name = self.basename
        if "." not in name.lstrip("."):
            return ""
        return name.rsplit(".", 1)[1]

    def has_extension(self, extensions: str | list[str]) -> bool:
        if isinstance(extensions, str):
            extensions = [extensions]
        return self.get_extension().lower() in {extension.lower().lstrip(".") for extension in extensions}

    def parent_directory(self, restrictions: Restrictions | None = None) -> FsDirectory:
        """Return the directory containing this path.

        Args:
            restrictions: Restrictions for the directory. Defaults to these
                restrictions moved up one level.
        """
        from fsguard.filesystem.directory import FsDirectory

        parent = os.path.dirname(unslash(self.source)) or "/"
        if restrictions is None:
            restrictions = self._restrictions.get_parent()
        return self._derive(parent, restrictions, cls=FsDirectory)

    def append_path(self, child: str, cls: type[FsPath] | None = None) -> FsPath:
        """Return a path for child below this path."""
        return self._derive(f"{unslash(self.source)}/{child.lstrip('/')}", cls=cls or FsPath)

    def prepend_path(self, parent: str, cls: type[FsPath] | None = None) -> FsPath:
        """Return a path for this path placed below parent."""
        return self._derive(f"{unslash(parent)}/{self.source.lstrip('/')}", cls=cls or FsPath)

    def get_relative_path_to(self, target: str | FsPath) -> str:
        """Return the relative path leading from this path's directory to target."""
        target_path = self._sibling(target)
        return relative_path(
            unslash(self.get_normalized_path()),
            unslash(target_path.get_normalized_path()),
        )

    # -------------------------------------------------------------------------
    # Domains
    # -------------------------------------------------------------------------

    def is_on_domain(self) -> bool:
        return on_domain(self.source)

    def get_domain(self) -> str:
        return get_domain(self.source)

    def is_in_domain(self, domain: str | FsPath) -> bool:
        return is_in_domain(self.source, str(domain))

    def is_in_directory(self, directory: str | FsPath) -> bool:
        return is_in_directory(self.source, str(directory))

    # -------------------------------------------------------------------------
    # Kind and existence
    # -------------------------------------------------------------------------

    @property
    def kind(self) -> PathKind:
        """Kind of entry at this path, determined without following a final symlink."""
        path = unslash(self.source)
        if os.path.islink(path):
            return PathKind.SYMLINK if os.path.exists(path) else PathKind.DEAD_SYMLINK
        if os.path.isdir(path):
            return PathKind.DIRECTORY
        if os.path.exists(path):
            return PathKind.FILE
        return PathKind.UNKNOWN

    def is_link(self) -> bool:
        return os.path.islink(unslash(self.source))

    def is_directory(self) -> bool:
        return bool(self.source) and os.path.isdir(unslash(self.source))

    def is_file(self) -> bool:
        path = unslash(self.source)
        return os.path.exists(path) and not os.path.isdir(path)

    def as_directory(self) -> FsDirectory:
        """Return this path with directory operations.

        Raises:
            PathNotDirectoryError: If the path exists and is not a directory.
        """
        from fsguard.filesystem.directory import FsDirectory

        if isinstance(self, FsDirectory):
            return self
        path = unslash(self.source)
        if os.path.lexists(path) and not os.path.isdir(path):
            msg = f"The path '{self.source}' is not a directory but a {self.get_type_name()}"
            raise PathNotDirectoryError(msg, path=self.source)
        return self._derive(self.source, cls=FsDirectory, prefix=False)

    def as_file(self) -> FsFile:
        """Return this path with file operations.

        Raises:
            PathNotFileError: If the path is a directory.
        """
        from fsguard.filesystem.file import FsFile

        if isinstance(self, FsFile):
            return self
        if os.path.isdir(unslash(self.source)):
            msg = f"The path '{self.source}' is a directory, not a file"
            raise PathNotFileError(msg, path=self.source)
        return self._derive(self.source, cls=FsFile, prefix=False)

    def exists(self, check_dead_symlink: bool = False, auto_mount: bool = True) -> bool:
        """Check if the path exists.

        Args:
            check_dead_symlink: Count a dangling symlink as existing.
            auto_mount: When missing, try to auto-mount and check once more.
        """
        path = unslash(self.source)
        if os.path.exists(path):
            return True
        if check_dead_symlink and os.path.islink(path):
            return True
        if auto_mount and self.attempt_auto_mount():
            return self.exists(check_dead_symlink, auto_mount=False)
        return False

    def check_exists(self, auto_mount: bool = True) -> Self:
        """Raise FileNotExistError if the path does not exist."""
        if not self.exists(auto_mount=auto_mount):
            msg = f"The path '{self.source}' does not exist"
            raise FileNotExistError(msg, path=self.source)
        return self

    def check_not_exists(self, force: bool = False) -> Self:
        """Raise PathExistsError if the path exists.

        Args:
            force: Delete the existing path instead of raising.
        """
        if self.exists(check_dead_symlink=True, auto_mount=False):
            if not force:
                msg = f"The path '{self.source}' already exists"
                raise PathExistsError(msg, path=self.source)
            self.delete(clean_path=False)
        return self

    def attempt_auto_mount(self) -> bool:
        """Try to attach the mount this path lives on.

        Returns:
            True if a mount was attached, False otherwise.
        """
        if not self._policy.settings.automounts_enabled or self.is_on_domain():
            return False

        mount = self._policy.mounts.for_path(self.source)
        if mount is None:
            return False

        self._restrictions.get_these_writable().check(mount.target, True)
        return bool(self._policy.mounts.auto_mount(mount))

    def mount_if_needed(self, auto_mount: bool = True) -> Self:
        if auto_mount and not os.path.exists(unslash(self.source)):
            self.attempt_auto_mount()
        return self

    # -------------------------------------------------------------------------
    # Access checks
    # -------------------------------------------------------------------------

    def check_restrictions(self, write: bool) -> Self:
        """Check this path against its restrictions.

        Raises:
            RestrictionsError: If the path is relative or not allowed.
        """
        if not self.is_absolute:
            msg = (
                f"Cannot check restrictions for '{self.source}' as it is a relative "
                "path with unknown directory prefix"
            )
            raise RestrictionsError(msg, path=self.source)
        self._restrictions.check(self.source, write)
        return self

    def check_readable(
        self,
        type_name: str | None = None,
        previous: BaseException | None = None,
    ) -> Self:
        """Check that the path exists and can be read.

        When previous is given, the caller already failed an operation and
        wants a better label for it: a precise error is raised if the path is
        missing or unreadable, otherwise previous itself is re-raised.

        Raises:
            FileNotExistError: If the path (or its parent directory) is missing.
            FileNotReadableError: If the path exists but cannot be read.
        """
        self.check_restrictions(False)
        self._policy.check_read_access(self.source)
        label = f"{type_name} " if type_name else ""
        path = unslash(self.source)

        if not self.exists():
            parent = os.path.dirname(path)
            if not os.path.exists(parent):
                msg = (
                    f"The {label}file '{self.source}' cannot be read because the "
                    f"directory '{parent}' does not exist"
                )
                raise FileNotExistError(msg, path=self.source) from previous
            msg = f"The {label}file '{self.source}' cannot be read because it does not exist"
            raise FileNotExistError(msg, path=self.source) from previous

        if not os.access(path, os.R_OK):
            msg = f"The {label}file '{self.source}' cannot be read"
            raise FileNotReadableError(msg, path=self.source) from previous

        if previous is not None:
            raise previous
        return self

    def check_writable(
        self,
        type_name: str | None = None,
        previous: BaseException | None = None,
    ) -> Self:
        """Check that the path can be written, or created when missing.

        Follows the same previous-exception protocol as check_readable().

        Raises:
            FileNotExistError: If neither the path nor its parent exists.
            FileNotWritableError: If the path (or the parent of a missing
                path) cannot be written.
        """
        self.check_restrictions(True)
        self._policy.check_write_access(self.source)
        label = f"{type_name} " if type_name else ""
        path = unslash(self.source)

        if not self.exists():
            parent = os.path.dirname(path) or "/"
            if not os.path.exists(parent):
                msg = (
                    f"The {label}file '{self.source}' cannot be written because it does "
                    f"not exist and neither does the parent directory '{parent}'"
                )
                raise FileNotExistError(msg, path=self.source) from previous
            from fsguard.filesystem.directory import FsDirectory

            self._derive(parent, cls=FsDirectory).check_writable(type_name, previous)

        elif not os.access(path, os.W_OK):
            msg = f"The {label}file '{self.source}' cannot be written"
            raise FileNotWritableError(msg, path=self.source) from previous

        if previous is not None:
            raise previous
        return self

    def ensure_file_readable(self, mode: str | int = "u+r") -> bool:
        """Make an existing file readable, or prepare its parent directory.

        Returns:
            True if the file exists and is readable now, False if it does
            not exist yet (its parent directory has been created).
        """
        if self.exists():
            if os.access(unslash(self.source), os.R_OK):
                return True
            logger.warning("File '%s' is not readable, attempting to apply read mode", self.source)
            self.chmod(mode)
            return True

        self.parent_directory().ensure()
        return False

    def ensure_file_writable(self, mode: str | int = "u+w") -> bool:
        """Make an existing file writable, or prepare its parent directory.

        Returns:
            True if the file exists and is writable now, False if the caller
            still has to create it (its parent directory has been created).
        """
        if self.exists():
            if os.access(unslash(self.source), os.W_OK):
                return True
            logger.warning("File '%s' is not writable, attempting to apply write mode", self.source)
            self.chmod(mode)
            return True

        self.parent_directory().ensure()
        return False

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def delete(self, clean_path: bool | str = True, sudo: bool = False) -> None:
        """Recursively force-remove the path.

        Args:
            clean_path: Afterwards remove parent directories that became
                empty. A string names the directory to stop at.
            sudo: Run rm with sudo.

        Raises:
            RestrictionsError: If writing the path is not allowed.
            ProcessFailedError: If rm fails.
        """
        logger.info("Deleting '%s'", self.source)
        self.check_restrictions(True)
        self._policy.check_write_access(self.source)

        self._policy.runner.run(
            "rm",
            ["-rf", unslash(self.source)],
            sudo=sudo,
            timeout=self._policy.settings.command_timeout,
        )
        self._mime = None

        if clean_path:
            self._clean_upward(clean_path, sudo)

    def secure_delete(self, clean_path: bool | str = True, sudo: bool = False) -> None:
        """Overwrite every file below the path with shred, then remove it."""
        logger.info("Securely deleting '%s'", self.source)
        self.check_restrictions(True)
        self._policy.check_write_access(self.source)
        settings = self._policy.settings

        self._policy.runner.run(
            "find",
            [
                unslash(self.source),
                "-type",
                "f",
                "-exec",
                "shred",
                "--remove=wipe",
                "-f",
                "-n",
                "3",
                "-z",
                "{}",
                ";",
            ],
            sudo=sudo,
            timeout=settings.secure_delete_timeout,
        )
        self._policy.runner.run(
            "rm", ["-rf", unslash(self.source)], sudo=sudo, timeout=settings.command_timeout
        )

        if clean_path:
            self._clean_upward(clean_path, sudo)

    def _clean_upward(self, clean_path: bool | str, sudo: bool) -> None:
        from fsguard.filesystem.directory import FsDirectory

        until = clean_path if isinstance(clean_path, str) else None
        parent = os.path.dirname(unslash(self.source)) or "/"
        self._derive(parent, cls=FsDirectory).clear_directory(until, sudo)

    # -------------------------------------------------------------------------
    # Moving
    # -------------------------------------------------------------------------

    def move_path(self, target: str | FsPath, restrictions: Restrictions | None = None) -> Self:
        """Move this path to target and return the moved path.

        An existing target directory receives this path under its current
        basename. This object is invalidated afterwards.

        Raises:
            PathExistsError: If target exists and is not a directory.
            FileRenameError: If the OS move fails.
        """
        import shutil

        if restrictions is None and isinstance(target, FsPath):
            restrictions = target.restrictions
        self.check_restrictions(True)
        target_path = self._derive(target, restrictions, cls=FsPath)
        destination = unslash(target_path.source)

        target_exists = target_path.exists()
        if target_exists:
            if not os.path.isdir(destination):
                msg = f"Cannot move '{self.source}' to '{destination}', the target exists and is not a directory"
                raise PathExistsError(msg, path=destination)
            destination = f"{destination.rstrip('/')}/{self.basename}"

        target_path.restrictions.check(destination, True)
        if not target_exists:
            target_path.parent_directory().ensure()

        try:
            shutil.move(unslash(self.source), destination)
        except OSError as e:
            msg = f"Failed to move '{self.source}' to '{destination}': {e}"
            raise FileRenameError(msg, path=self.source) from e

        moved = self._derive(destination, target_path.restrictions)
        self._invalidate(moved.source)
        return moved

    def rename(self, to: str | FsPath) -> Self:
        """Rename this path and return the renamed path.

        The target's restrictions are adopted when to is an FsPath. This
        object is invalidated afterwards.

        Raises:
            FileRenameError: If the OS rename fails.
        """
        restrictions = to.restrictions if isinstance(to, FsPath) else self._restrictions
        destination = unslash(to.source if isinstance(to, FsPath) else str(to))
        destination = absolute_path(destination, None, False, policy=self._policy).rstrip("/") or "/"

        self.check_restrictions(True)
        restrictions.check(destination, True)

        try:
            os.rename(unslash(self.source), destination)
        except OSError as e:
            msg = f"Failed to rename file or directory '{self.source}' to '{destination}': {e}"
            raise FileRenameError(msg, path=self.source) from e

        renamed = self._derive(destination, restrictions)
        self._invalidate(renamed.source)
        return renamed

    def replace_with_path(self, replacement: str | FsPath) -> FsPath:
        """Put replacement at this path's location, removing what was there.

        The existing entry is moved aside first, the replacement is renamed
        into place, and only then is the old entry deleted.

        Returns:
            The replacement at its new location.
        """
        replacement_path = self._sibling(replacement)
        location = unslash(self.source)

        if self.exists(check_dead_symlink=True):
            aside = self.rename(f"{location}.{secrets.token_hex(4)}.replaced")
            result = replacement_path.rename(location)
            aside.delete(clean_path=False)
            return result

        self.parent_directory().ensure()
        return replacement_path.rename(location)

    # -------------------------------------------------------------------------
    # Modes and ownership
    # -------------------------------------------------------------------------

    def chmod(self, mode: str | int, recursive: bool = False, sudo: bool = False) -> Self:
        """Change the mode of the path.

        Numeric modes without recursion use os.chmod. Symbolic modes such as
        "u+w", recursion and sudo go through the chmod command.

        Raises:
            OutOfBoundsError: If no mode was given.
        """
        if mode is None or mode == "":
            msg = f"Cannot chmod '{self.source}', no mode specified"
            raise OutOfBoundsError(msg, path=self.source)
        if isinstance(mode, str) and mode.isdigit():
            mode = int(mode, 8)

        self.check_restrictions(True)
        self._policy.check_write_access(self.source)
        path = unslash(self.source)

        if isinstance(mode, int) and not recursive and not sudo:
            try:
                os.chmod(path, mode)
            except OSError as e:
                msg = f"Failed to chmod '{self.source}' to {mode:o}: {e}"
                raise FileActionFailedError(msg, path=self.source) from e
            return self

        mode_argument = f"{mode:o}" if isinstance(mode, int) else mode
        arguments = ["-R"] if recursive else []
        self._policy.runner.run(
            "chmod",
            [*arguments, mode_argument, path],
            sudo=sudo,
            timeout=self._policy.settings.command_timeout,
        )
        return self

    def chown(self, user: str | None = None, group: str | None = None, recursive: bool = False) -> Self:
        """Change owner and group with sudo chown.

        Args:
            user: New owner. Defaults to the current user.
            group: New group. Defaults to the owner's primary group.
            recursive: Apply to everything below the path as well.
        """
        self.check_restrictions(True)
        self._policy.check_write_access(self.source)

        user = user or getpass.getuser()
        if group is None:
            group = grp.getgrgid(pwd.getpwnam(user).pw_gid).gr_name

        arguments = ["-R"] if recursive else []
        self._policy.runner.run(
            "chown",
            [*arguments, f"{user}:{group}", unslash(self.source)],
            sudo=True,
            timeout=self._policy.settings.command_timeout,
        )
        return self

    def switch_mode(self, mode: str | int | None) -> int | None:
        """Apply mode and return the previous permission bits.

        Returns None (and changes nothing) when mode is None.
        """
        if mode is None:
            return None
        previous = self.get_mode() & 0o7777
        self.chmod(mode)
        return previous

    def get_stat(self, follow_symlinks: bool = True) -> os.stat_result:
        self.check_restrictions(False)
        try:
            return os.stat(unslash(self.source), follow_symlinks=follow_symlinks)
        except OSError as e:
            error = FilesystemError(f"Failed to stat '{self.source}': {e}", path=self.source)
            error.__cause__ = e
            self.check_readable(previous=error)
            raise error from e

    def get_mode(self) -> int:
        """Return st_mode including the file type bits."""
        return self.get_stat().st_mode

    def get_octal_mode(self) -> str:
        """Return the permission bits as an octal string, e.g. "750"."""
        return f"{self.get_mode() & 0o7777:o}"

    def get_mode_human_readable(self) -> str:
        """Return the mode in ls -l form, e.g. "drwxr-x---"."""
        return stat.filemode(self.get_stat(follow_symlinks=False).st_mode)

    def get_type_name(self) -> str:
        """Name the kind of entry, for messages."""
        try:
            mode = os.lstat(unslash(self.source)).st_mode
        except FileNotFoundError:
            return "non-existing"
        if stat.S_ISLNK(mode):
            return "symlink"
        if stat.S_ISDIR(mode):
            return "directory"
        if stat.S_ISREG(mode):
            return "regular file"
        if stat.S_ISCHR(mode):
            return "character device"
        if stat.S_ISBLK(mode):
            return "block device"
        if stat.S_ISFIFO(mode):
            return "fifo"
        if stat.S_ISSOCK(mode):
            return "socket"
        return "unknown"

    def get_owner_name(self) -> str:
        return pwd.getpwuid(self.get_stat().st_uid).pw_name

    def get_group_name(self) -> str:
        return grp.getgrgid(self.get_stat().st_gid).gr_name

    def get_size(self) -> int:
        """Size of the file in bytes (of the entry itself for directories)."""
        return self.get_stat().st_size

    # -------------------------------------------------------------------------
    # Content type
    # -------------------------------------------------------------------------

    def get_mimetype(self) -> str:
        """Return the mimetype, guessed from name and content.

        Raises:
            FilesystemError: If the path cannot be inspected.
        """
        self.check_restrictions(False)
        if self._mime is not None:
            return self._mime

        path = unslash(self.source)
        if os.path.isdir(path):
            self._mime = DIRECTORY_MIMETYPE
            return self._mime

        guessed, _ = mimetypes.guess_type(path, strict=False)
        if guessed:
            self._mime = guessed
            return self._mime

        try:
            with open(path, "rb") as handle:
                sample = handle.read(1024)
        except OSError as e:
            error = FilesystemError(
                f"Failed to get mimetype information for file '{self.source}'", path=self.source
            )
            error.__cause__ = e
            self.check_readable(previous=error)
            raise error from e

        if not sample:
            self._mime = "application/x-empty"
        elif b"\0" in sample:
            self._mime = "application/octet-stream"
        else:
            try:
                sample.decode()
                self._mime = "text/plain"
            except UnicodeDecodeError:
                self._mime = "application/octet-stream"
        return self._mime

    def is_binary(self) -> bool:
        primary, _, secondary = self.get_mimetype().partition("/")
        if primary == "text":
            return False
        return secondary not in TEXT_SUBTYPES

    def is_text(self) -> bool:
        return not self.is_binary()

    # -------------------------------------------------------------------------
    # Filesystem information
    # -------------------------------------------------------------------------

    def get_filesystem_info(self) -> FilesystemInfo:
        """Return usage information of the filesystem this path lives on.

        Raises:
            FilesystemError: If df fails or returns unexpected output.
        """
        self.check_restrictions(False)
        try:
            lines = self._policy.runner.run(
                "df",
                ["-B1", "-P", unslash(self.source)],
                timeout=self._policy.settings.command_timeout,
            )
            return FilesystemInfo.from_df_line(lines[1])
        except (ProcessFailedError, IndexError, ValueError) as e:
            msg = f"Failed to get filesystem information for '{self.source}': {e}"
            raise FilesystemError(msg, path=self.source) from e

    def get_files(self) -> FsFiles:
        """Return a collection holding only this path."""
        from fsguard.filesystem.files import FsFiles

        return FsFiles([self], restrictions=self._restrictions)

    # -------------------------------------------------------------------------
    # Symlinks
    # -------------------------------------------------------------------------

    def read_link(self, absolute: bool = False) -> FsPath:
        """Return the content of this symlink as a path.

        Args:
            absolute: Resolve a relative link content against this link's
                directory.

        Raises:
            FilesystemError: If the path is not a symlink.
        """
        path = unslash(self.source)
        if not os.path.islink(path):
            msg = f"Cannot read link '{self.source}', it is not a symlink but a {self.get_type_name()}"
            raise FilesystemError(msg, path=self.source)

        content = os.readlink(path)
        if absolute and not content.startswith("/"):
            content = normalize_path(f"{os.path.dirname(path)}/{content}", policy=self._policy)
            return self._derive(content, cls=FsPath, prefix=False)
        return self._derive(content, cls=FsPath, prefix=False)

    def get_link_target(self, absolute: bool = True) -> FsPath:
        """Alias of read_link() that resolves relative links by default."""
        return self.read_link(absolute)

    def check_symlink(self, target: str | FsPath | None = None) -> Self:
        """Raise unless this path is a symlink (pointing to target, if given).

        Raises:
            FileNotSymlinkError: If the path is not a symlink or points elsewhere.
        """
        if not self.is_link():
            msg = f"The path '{self.source}' must be a symlink but instead is a {self.get_type_name()}"
            raise FileNotSymlinkError(msg, path=self.source)

        if target is not None:
            expected = unslash(self._sibling(target).get_normalized_path())
            current = unslash(self.read_link(True).get_normalized_path())
            if current != expected:
                msg = f"The symlink '{self.source}' must point to '{expected}' but points to '{current}'"
                raise FileNotSymlinkError(msg, path=self.source)
        return self

    def follow_link(self, force: bool = False, all: bool = False) -> FsPath:
        """Return the path this symlink points to.

        This object is invalidated once the link has been followed.

        Args:
            force: Return this path unchanged when it is not a symlink.
            all: Keep following while the target is a symlink too.

        Raises:
            SymlinkBrokenError: If the link target does not exist.
            NotASymlinkError: If this is not a symlink and force is False.
        """
        if not self.is_link():
            if not force:
                msg = f"Cannot follow file '{self.source}', the file is not a symlink"
                raise NotASymlinkError(msg, path=self.source)
            return self

        if not os.path.exists(unslash(self.source)):
            msg = f"Cannot follow symlink '{self.source}', the target does not exist"
            raise SymlinkBrokenError(msg, path=self.source)

        target = self._derive(self.read_link(True).source)
        self._invalidate(target.source)
        if all and target.is_link():
            return target.follow_link(force, all)
        return target

    def _symlink_slot_available(self, link_target: FsPath, calculated: str) -> bool:
        """Check the slot at this path for a new symlink to link_target.

        Returns:
            True if this path already is a link to link_target.

        Raises:
            PathExistsError: If the slot holds a different link or a non-link.
        """
        if self.is_link():
            current = unslash(self.read_link(True).get_normalized_path())
            if current == unslash(link_target.get_normalized_path()):
                return True
            msg = (
                f"Cannot create symlink '{self.get_normalized_path()}' with link "
                f"'{calculated}', the file already exists and points to '{current}' instead"
            )
            raise PathExistsError(msg, path=self.source)

        if self.exists():
            msg = (
                f"Cannot create symlink '{self.get_normalized_path()}' that points to "
                f"'{calculated}', the file already exists as a {self.get_type_name()}"
            )
            raise PathExistsError(msg, path=self.source)
        return False

    def symlink_this_to_target(self, target: str | FsPath, make_relative: bool = True) -> FsPath:
        """Make this path a symlink pointing to target.

        Calling it again with the same target is a no-op.

        Args:
            target: Path the link points to.
            make_relative: Store a relative link instead of an absolute one.

        Returns:
            The target path.

        Raises:
            PathExistsError: If this path exists as another link or a non-link.
        """
        link_target = self._sibling(target)
        if make_relative and link_target.is_absolute:
            calculated = self.get_relative_path_to(link_target)
        else:
            calculated = unslash(link_target.source)

        if self._symlink_slot_available(link_target, calculated):
            return link_target

        self.check_restrictions(True)
        self.parent_directory().ensure()
        try:
            os.symlink(calculated, unslash(self.source))
        except FileExistsError as e:
            msg = f"Cannot symlink '{self.source}' to target '{link_target.source}' because {e}"
            raise PathExistsError(msg, path=self.source) from e
        return link_target

    def symlink_target_from_this(self, target: str | FsPath, make_relative: bool = True) -> FsPath:
        """Make target a symlink pointing to this path.

        Returns:
            The target (the new link).
        """
        link = self._sibling(target)
        link.symlink_this_to_target(self, make_relative)
        return self._derive(link.source, link.restrictions, cls=FsPath)

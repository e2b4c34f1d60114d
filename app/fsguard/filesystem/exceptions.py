"""Exception hierarchy for the filesystem layer.

Every exception carries the offending path (when known) so callers can
tell "does not exist" apart from "exists with the wrong permissions" and
"exists but is the wrong kind of entry".
"""

from typing import Any


class FilesystemError(Exception):
    """Base exception for filesystem errors.

    Attributes:
        path: The path the error is about, if known.
        data: Additional context for diagnostics.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.data: dict[str, Any] = dict(data or {})


class RestrictionsError(FilesystemError):
    """Raised when a path is not covered by any restriction rule."""


class WriteRestrictionsError(RestrictionsError):
    """Raised when only a read-only rule covers a path that must be written."""


class NoRestrictionsSetError(RestrictionsError):
    """Raised when a restriction set without rules is consulted."""


class FileNotExistError(FilesystemError):
    """Raised when a path (or its parent directory) does not exist."""


class FileNotReadableError(FilesystemError):
    """Raised when a path exists but cannot be read."""


class FileNotWritableError(FilesystemError):
    """Raised when a path exists but cannot be written."""


class PathExistsError(FilesystemError):
    """Raised when a path exists where it must not."""


class FileOpenError(FilesystemError):
    """Raised when a stream is in the wrong open/closed state."""


class FileNotOpenError(FileOpenError):
    """Raised when a stream operation is attempted on a closed path."""


class ReadOnlyModeError(FilesystemError):
    """Raised when writing to a stream opened read-only."""


class FileActionFailedError(FilesystemError):
    """Raised when a low-level stream call (seek, tell, truncate) fails."""


class FileReadError(FilesystemError):
    """Raised when a read fails for a reason other than end of file."""


class FileSyncError(FilesystemError):
    """Raised when flushing a stream to disk fails."""


class FileRenameError(FilesystemError):
    """Raised when renaming or moving a path fails."""


class SymlinkBrokenError(FilesystemError):
    """Raised when a symlink points to a path that does not exist."""


class NotASymlinkError(FilesystemError):
    """Raised when following a path that is not a symlink."""


class FileNotSymlinkError(FilesystemError):
    """Raised when a path required to be a symlink is not one."""


class WrongKindError(FilesystemError):
    """Raised when a path is not the kind of entry an operation needs."""


class PathNotDirectoryError(WrongKindError):
    """Raised when a directory is required but the path is something else."""


class PathNotFileError(WrongKindError):
    """Raised when a file is required but the path is a directory."""


class DirectoryError(FilesystemError):
    """Raised when a directory cannot be created or processed."""


class DirectoryNotMountedError(DirectoryError):
    """Raised when a directory is required to be a mount point but is not."""


class MountsError(FilesystemError):
    """Raised when mounting or unmounting fails."""


class OutOfBoundsError(FilesystemError, ValueError):
    """Raised when an argument is outside its allowed range."""


class PathInvalidatedError(FilesystemError):
    """Raised when a path object is used after it was moved or renamed."""

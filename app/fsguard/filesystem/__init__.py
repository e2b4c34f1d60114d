"""Restricted filesystem access.

Every path is bound to a Restrictions object that is checked before the
path is read, written, deleted or opened. This module exports the path
types, the collections built from them and the error hierarchy.
"""

from fsguard.filesystem.exceptions import (
    DirectoryError,
    DirectoryNotMountedError,
    FileActionFailedError,
    FileNotExistError,
    FileNotOpenError,
    FileNotReadableError,
    FileNotSymlinkError,
    FileNotWritableError,
    FileOpenError,
    FileReadError,
    FileRenameError,
    FilesystemError,
    FileSyncError,
    MountsError,
    NoRestrictionsSetError,
    NotASymlinkError,
    OutOfBoundsError,
    PathExistsError,
    PathInvalidatedError,
    PathNotDirectoryError,
    PathNotFileError,
    ReadOnlyModeError,
    RestrictionsError,
    SymlinkBrokenError,
    WriteRestrictionsError,
    WrongKindError,
)
from fsguard.filesystem.models import FilesystemInfo, OpenMode, PathKind
from fsguard.filesystem.mounts import FsMount, MountRegistry, NullMountRegistry, StaticMountRegistry
from fsguard.filesystem.policy import FilesystemPolicy, PathCache
from fsguard.filesystem.restrictions import Restrictions, RestrictionVerdict
from fsguard.filesystem.path import FsPath
from fsguard.filesystem.file import FsFile
from fsguard.filesystem.directory import FsDirectory
from fsguard.filesystem.files import FsFiles
from fsguard.filesystem.duplicates import DuplicateScanner, FsDuplicates
from fsguard.filesystem.execute import FsExecute

__all__ = [
    "DirectoryError",
    "DirectoryNotMountedError",
    "DuplicateScanner",
    "FileActionFailedError",
    "FileNotExistError",
    "FileNotOpenError",
    "FileNotReadableError",
    "FileNotSymlinkError",
    "FileNotWritableError",
    "FileOpenError",
    "FileReadError",
    "FileRenameError",
    "FileSyncError",
    "FilesystemError",
    "FilesystemInfo",
    "FilesystemPolicy",
    "FsDirectory",
    "FsDuplicates",
    "FsExecute",
    "FsFile",
    "FsFiles",
    "FsMount",
    "FsPath",
    "MountRegistry",
    "MountsError",
    "NoRestrictionsSetError",
    "NotASymlinkError",
    "NullMountRegistry",
    "OpenMode",
    "OutOfBoundsError",
    "PathCache",
    "PathExistsError",
    "PathInvalidatedError",
    "PathKind",
    "PathNotDirectoryError",
    "PathNotFileError",
    "ReadOnlyModeError",
    "RestrictionVerdict",
    "Restrictions",
    "RestrictionsError",
    "StaticMountRegistry",
    "SymlinkBrokenError",
    "WriteRestrictionsError",
    "WrongKindError",
]

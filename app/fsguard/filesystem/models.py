"""Filesystem value types.

Path kinds, stream open modes and filesystem usage information.
"""

from dataclasses import dataclass
from enum import Enum


class PathKind(str, Enum):
    """Kind of filesystem entry a path refers to.

    Attributes:
        FILE: Regular file (or any non-directory entry).
        DIRECTORY: Directory.
        SYMLINK: Symbolic link with an existing target.
        DEAD_SYMLINK: Symbolic link whose target does not exist.
        UNKNOWN: Nothing exists at the path.
    """

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    DEAD_SYMLINK = "dead_symlink"
    UNKNOWN = "unknown"


class OpenMode(str, Enum):
    """Stream open modes.

    Values are the Python open() mode strings. All streams are binary.
    """

    READ_ONLY = "rb"
    READ_WRITE_EXISTING = "r+b"
    WRITE_ONLY_TRUNCATE = "wb"
    READ_WRITE_TRUNCATE = "w+b"
    WRITE_ONLY_APPEND = "ab"
    READ_WRITE_APPEND = "a+b"
    WRITE_ONLY_CREATE_ONLY = "xb"
    READ_WRITE_CREATE_ONLY = "x+b"

    @property
    def is_write(self) -> bool:
        """True if the mode allows writing."""
        return self is not OpenMode.READ_ONLY

    @property
    def is_read(self) -> bool:
        """True if the mode allows reading."""
        return self is OpenMode.READ_ONLY or "+" in self.value


@dataclass(frozen=True, slots=True)
class FilesystemInfo:
    """Usage information of the filesystem a path lives on.

    Attributes:
        filesystem: Device or source of the filesystem.
        size: Total size in bytes.
        used: Used bytes.
        available: Available bytes.
        use_percent: Used percentage (0-100).
        mounted_on: Mount point.
    """

    filesystem: str
    size: int
    used: int
    available: int
    use_percent: int
    mounted_on: str

    def __post_init__(self) -> None:
        """Validate field values."""
        if not 0 <= self.use_percent <= 100:
            msg = f"use_percent must be between 0 and 100, got {self.use_percent}"
            raise ValueError(msg)

    @classmethod
    def from_df_line(cls, line: str) -> "FilesystemInfo":
        """Parse one data line of `df -B1 -P` output.

        Args:
            line: Line such as "/dev/sda1 100 40 60 40% /".

        Returns:
            Parsed FilesystemInfo.

        Raises:
            ValueError: If the line does not have the expected columns.
        """
        parts = line.split()
        if len(parts) < 6:
            msg = f"Unexpected df output line: '{line}'"
            raise ValueError(msg)
        return cls(
            filesystem=parts[0],
            size=int(parts[1]),
            used=int(parts[2]),
            available=int(parts[3]),
            use_percent=int(parts[4].rstrip("%")),
            mounted_on=" ".join(parts[5:]),
        )

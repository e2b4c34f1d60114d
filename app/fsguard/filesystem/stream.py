"""Stream handling for paths.

A path is either closed or open in exactly one OpenMode. Every stream
operation first checks that state and fails fast when it is wrong, and OS
failures are relabelled through check_readable()/check_writable() so the
caller learns whether the path is missing, unreadable or unwritable.
"""

from __future__ import annotations

import csv
import io
import logging
import os
import random
import shutil
from collections.abc import Iterable
from typing import IO, TYPE_CHECKING, Literal, NoReturn, Self

from fsguard.filesystem.exceptions import (
    FileActionFailedError,
    FileNotOpenError,
    FileOpenError,
    FileReadError,
    FileSyncError,
    OutOfBoundsError,
    PathExistsError,
    ReadOnlyModeError,
)
from fsguard.filesystem.models import OpenMode
from fsguard.filesystem.resolve import unslash

if TYPE_CHECKING:
    from fsguard.filesystem.path import FsPath

logger = logging.getLogger(__name__)

MAX_SHRED_PASSES = 20


def plan_blocks(size: int, block_size: int) -> list[tuple[int, int]]:
    """Split a file of size bytes into (offset, length) blocks.

    All blocks are block_size long except a final partial block covering
    the remainder.

    Raises:
        OutOfBoundsError: If block_size is not positive.
    """
    if block_size < 1:
        msg = f"Invalid block size {block_size}, must be 1 or higher"
        raise OutOfBoundsError(msg)

    count, rest = divmod(size, block_size)
    blocks = [(index * block_size, block_size) for index in range(count)]
    if rest:
        blocks.append((count * block_size, rest))
    return blocks


class PathStreamMixin:
    """Open/read/write primitives shared by all paths."""

    _stream: IO[bytes] | None
    _open_mode: OpenMode | None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_open(self: FsPath) -> bool:
        return self._stream is not None

    @property
    def open_mode(self: FsPath) -> OpenMode | None:
        return self._open_mode

    def check_open(self: FsPath, method: str | None = None) -> Self:
        """Raise FileNotOpenError if the stream is closed."""
        if self._stream is None:
            action = f"'{method}' on " if method else ""
            msg = f"Cannot execute {action}file '{self.source}', the file is not open"
            raise FileNotOpenError(msg, path=self.source)
        return self

    def check_closed(self: FsPath, method: str | None = None) -> Self:
        """Raise FileOpenError if the stream is open."""
        if self._stream is not None:
            action = f"'{method}' on " if method else ""
            msg = (
                f"Cannot execute {action}file '{self.source}', the file is already "
                f"open in mode '{self._open_mode.name if self._open_mode else '?'}'"
            )
            raise FileOpenError(msg, path=self.source)
        return self

    def check_write_mode(self: FsPath, method: str | None = None) -> Self:
        """Raise unless the stream is open in a mode that allows writing."""
        self.check_open(method)
        if self._open_mode is None or not self._open_mode.is_write:
            msg = f"Cannot write to file '{self.source}', the file is opened in readonly mode"
            raise ReadOnlyModeError(msg, path=self.source)
        return self

    def _check_read_mode(self: FsPath, method: str) -> None:
        self.check_open(method)
        if self._open_mode is None or not self._open_mode.is_read:
            msg = f"Cannot read from file '{self.source}', the file is opened in write-only mode"
            raise FileReadError(msg, path=self.source)

    def _handle(self: FsPath) -> IO[bytes]:
        if self._stream is None:
            self.check_open()
        assert self._stream is not None
        return self._stream

    # -------------------------------------------------------------------------
    # Open / close
    # -------------------------------------------------------------------------

    def open(self: FsPath, mode: OpenMode | str = OpenMode.READ_ONLY) -> Self:
        """Open the stream.

        Args:
            mode: Open mode. Any mode other than READ_ONLY needs write access.

        Returns:
            self, usable as a context manager that closes the stream.

        Raises:
            FileOpenError: If already open or the OS refuses to open the file.
            PathExistsError: If a create-only mode finds an existing file.
            RestrictionsError: If the restrictions do not allow the access.
        """
        mode = OpenMode(mode)
        self.check_restrictions(mode.is_write)
        if mode.is_write:
            self.policy.check_write_access(self.source)
        else:
            self.policy.check_read_access(self.source)
        self.check_closed("open")
        self.mount_if_needed()

        try:
            self._stream = open(unslash(self.source), mode.value)  # noqa: SIM115
        except FileExistsError as e:
            msg = f"Cannot open file '{self.source}' in mode '{mode.name}', it already exists"
            raise PathExistsError(msg, path=self.source) from e
        except OSError as e:
            error = FileOpenError(
                f"Failed to open file '{self.source}' in mode '{mode.name}': {e}",
                path=self.source,
            )
            error.__cause__ = e
            if mode.is_write:
                self.check_writable(previous=error)
            else:
                self.check_readable(previous=error)
            raise error from e

        self._open_mode = mode
        return self

    def close(self: FsPath, force: bool = False) -> Self:
        """Close the stream.

        Args:
            force: Raise FileNotOpenError if the stream is not open.
        """
        if self._stream is None:
            if force:
                msg = f"The file '{self.source}' cannot be closed, it is not open"
                raise FileNotOpenError(msg, path=self.source)
            return self

        try:
            self._stream.close()
        finally:
            self._stream = None
            self._open_mode = None
        return self

    def __enter__(self: FsPath) -> Self:
        return self

    def __exit__(self: FsPath, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _read_failure(self: FsPath, kind: str, e: Exception) -> NoReturn:
        msg = f"Failed to read {kind} from file '{self.source}': {e}"
        raise FileReadError(msg, path=self.source) from e

    def read(self: FsPath, length: int | None = None) -> bytes:
        """Read up to length bytes (default: the configured buffer size).

        Returns b"" at end of file.
        """
        self._check_read_mode("read")
        try:
            return self._handle().read(length or self.policy.settings.buffer_size)
        except (OSError, ValueError) as e:
            self._read_failure("data", e)

    def read_line(self: FsPath, length: int = -1) -> bytes:
        """Read one line including its line ending. Returns b"" at end of file."""
        self._check_read_mode("read_line")
        try:
            return self._handle().readline(length)
        except (OSError, ValueError) as e:
            self._read_failure("line", e)

    def read_character(self: FsPath) -> bytes:
        """Read a single byte. Returns b"" at end of file."""
        self._check_read_mode("read_character")
        try:
            return self._handle().read(1)
        except (OSError, ValueError) as e:
            self._read_failure("character", e)

    def read_csv(
        self: FsPath,
        delimiter: str = ",",
        quotechar: str = '"',
        encoding: str = "utf-8",
    ) -> list[str] | None:
        """Read and parse one CSV line. Returns None at end of file."""
        self._check_read_mode("read_csv")
        try:
            line = self._handle().readline()
        except (OSError, ValueError) as e:
            self._read_failure("CSV line", e)
        if not line:
            return None
        try:
            text = line.decode(encoding)
        except UnicodeDecodeError as e:
            self._read_failure("CSV line", e)
        return next(csv.reader([text], delimiter=delimiter, quotechar=quotechar), [])

    def read_bytes(self: FsPath, length: int, start: int = 0) -> bytes:
        """Read a byte range from a closed file, leaving it closed.

        Raises:
            FileOpenError: If the stream is already open.
        """
        self.check_closed("read_bytes")
        self.open(OpenMode.READ_ONLY)
        try:
            self.seek(start)
            return self._handle().read(length)
        except OSError as e:
            self._read_failure("bytes", e)
        finally:
            self.close()

    # -------------------------------------------------------------------------
    # Positioning
    # -------------------------------------------------------------------------

    def seek(self: FsPath, offset: int, whence: int = io.SEEK_SET) -> Self:
        """Move the stream position.

        Raises:
            FileActionFailedError: If the OS seek fails.
        """
        self.check_open("seek")
        try:
            self._handle().seek(offset, whence)
        except (OSError, ValueError) as e:
            msg = f"Failed to seek in file '{self.source}': {e}"
            raise FileActionFailedError(msg, path=self.source) from e
        return self

    def tell(self: FsPath) -> int:
        """Return the stream position."""
        self.check_open("tell")
        try:
            return self._handle().tell()
        except (OSError, ValueError) as e:
            msg = f"Failed to get the position in file '{self.source}': {e}"
            raise FileActionFailedError(msg, path=self.source) from e

    def rewind(self: FsPath) -> Self:
        """Move the stream position back to the start."""
        return self.seek(0)

    def is_eof(self: FsPath) -> bool:
        """Check if the stream position is at (or past) the end of the file."""
        self.check_open("is_eof")
        try:
            return self.tell() >= os.fstat(self._handle().fileno()).st_size
        except OSError as e:
            msg = f"Failed to determine end of file for '{self.source}': {e}"
            raise FileActionFailedError(msg, path=self.source) from e

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write(self: FsPath, data: bytes | str, length: int | None = None) -> Self:
        """Write data to the open stream.

        Args:
            data: Bytes, or text encoded as UTF-8.
            length: Only write the first length bytes.

        Raises:
            FileNotOpenError: If the stream is closed.
            ReadOnlyModeError: If the stream was opened read-only.
        """
        self.check_write_mode("write")
        if isinstance(data, str):
            data = data.encode()
        if length is not None:
            data = data[:length]

        try:
            self._handle().write(data)
        except OSError as e:
            error = FileActionFailedError(f"Failed to write to file '{self.source}': {e}", path=self.source)
            error.__cause__ = e
            self.check_writable(previous=error)
            raise error from e
        return self

    def truncate(self: FsPath, size: int = 0) -> Self:
        """Truncate the open file to size bytes."""
        self.check_write_mode("truncate")
        try:
            self._handle().truncate(size)
        except OSError as e:
            msg = f"Failed to truncate file '{self.source}' to {size} bytes: {e}"
            raise FileActionFailedError(msg, path=self.source) from e
        return self

    def sync(self: FsPath) -> Self:
        """Flush buffers and fsync data plus metadata."""
        self.check_open("sync")
        try:
            self._handle().flush()
            os.fsync(self._handle().fileno())
        except OSError as e:
            msg = f"Failed to sync file '{self.source}': {e}"
            raise FileSyncError(msg, path=self.source) from e
        return self

    def sync_data(self: FsPath) -> Self:
        """Flush buffers and fdatasync data only."""
        self.check_open("sync_data")
        try:
            self._handle().flush()
            os.fdatasync(self._handle().fileno())
        except OSError as e:
            msg = f"Failed to sync data for file '{self.source}': {e}"
            raise FileSyncError(msg, path=self.source) from e
        return self

    def append_data(self: FsPath, data: bytes | str) -> Self:
        """Append data to the file.

        A closed file is opened in append mode for the write and closed
        again afterwards.
        """
        if self.is_open:
            return self.write(data)

        self.ensure_file_writable()
        self.open(OpenMode.WRITE_ONLY_APPEND)
        try:
            self.write(data)
        finally:
            self.close()
        return self

    def append_files(self: FsPath, sources: Iterable[str | FsPath]) -> Self:
        """Stream the content of several files onto the end of this file.

        Every source is checked against its restrictions before the target
        is touched. If a source cannot be read, the partially written target
        is deleted and the failure is relabelled for the failing source.
        """
        paths = [self._sibling(item) for item in sources]
        for source in paths:
            source.check_restrictions(False)

        self.parent_directory().ensure()
        opened_here = not self.is_open
        if opened_here:
            self.open(OpenMode.WRITE_ONLY_APPEND)
        else:
            self.check_write_mode("append_files")

        buffer_size = self.policy.settings.buffer_size
        for source in paths:
            try:
                with open(unslash(source.source), "rb") as handle:
                    shutil.copyfileobj(handle, self._handle(), buffer_size)
            except OSError as e:
                self.close()
                self.delete(clean_path=False)
                error = FileReadError(
                    f"Failed to append file '{source.source}' to '{self.source}': {e}",
                    path=source.source,
                )
                error.__cause__ = e
                source.check_readable("source", previous=error)
                raise error from e

        if opened_here:
            self.close()
        return self

    # -------------------------------------------------------------------------
    # Whole-file helpers
    # -------------------------------------------------------------------------

    def put_contents(
        self: FsPath,
        data: bytes | str,
        mode: OpenMode = OpenMode.WRITE_ONLY_TRUNCATE,
    ) -> Self:
        """Write data as the complete content of the file."""
        self.check_closed("put_contents")
        self.check_restrictions(True)
        self.ensure_file_writable()
        self.open(mode)
        try:
            self.write(data)
        finally:
            self.close()
        return self

    def get_contents_as_bytes(self: FsPath) -> bytes:
        """Return the complete file content."""
        self.check_closed("get_contents_as_bytes")
        self.open(OpenMode.READ_ONLY)
        try:
            return self._handle().read()
        except OSError as e:
            self._read_failure("contents", e)
        finally:
            self.close()

    def get_contents_as_string(self: FsPath, encoding: str = "utf-8") -> str:
        """Return the complete file content as text."""
        data = self.get_contents_as_bytes()
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            self._read_failure("text", e)

    def get_contents_as_list(self: FsPath, encoding: str = "utf-8") -> list[str]:
        """Return the file content as lines without line endings."""
        return self.get_contents_as_string(encoding).splitlines()

    def create(self: FsPath, force: bool = False) -> Self:
        """Create the file.

        Raises:
            PathExistsError: If the file exists and force is False.
        """
        if self.exists(check_dead_symlink=True) and not force:
            msg = f"Cannot create file '{self.source}', it already exists"
            raise PathExistsError(msg, path=self.source)
        return self.touch()

    def touch(self: FsPath) -> Self:
        """Create the file if missing, update its times if present."""
        self.check_restrictions(True)
        self.policy.check_write_access(self.source)
        target = unslash(self.source)

        if self.exists():
            try:
                os.utime(target)
            except OSError as e:
                error = FileActionFailedError(
                    f"Failed to update times of file '{self.source}': {e}", path=self.source
                )
                error.__cause__ = e
                self.check_writable(previous=error)
                raise error from e
            return self

        self.parent_directory().ensure()
        try:
            with open(target, "ab"):
                pass
            os.chmod(target, self.policy.settings.file_mode)
        except OSError as e:
            error = FileActionFailedError(f"Failed to touch file '{self.source}': {e}", path=self.source)
            error.__cause__ = e
            self.check_writable(previous=error)
            raise error from e
        return self

    # -------------------------------------------------------------------------
    # Block fills
    # -------------------------------------------------------------------------

    def initialize(
        self: FsPath,
        kind: Literal["zero", "random"] = "zero",
        block_size: int = 4096,
        randomized: bool = False,
    ) -> Self:
        """Overwrite the complete file content in place, block by block.

        The first block is always written first; the remaining blocks follow
        sequentially or in random order.

        Args:
            kind: Fill with zero bytes or random bytes.
            block_size: Size of each block.
            randomized: Visit the remaining blocks in random order.
        """
        if kind not in ("zero", "random"):
            msg = f"Unknown initialization kind '{kind}', must be 'zero' or 'random'"
            raise OutOfBoundsError(msg, path=self.source)

        self.check_closed("initialize")
        size = self.get_size()
        blocks = plan_blocks(size, block_size)
        if not blocks:
            return self

        first, rest = blocks[0], blocks[1:]
        if randomized:
            random.SystemRandom().shuffle(rest)

        self.open(OpenMode.READ_WRITE_EXISTING)
        try:
            for offset, length in [first, *rest]:
                self.seek(offset)
                self.write(bytes(length) if kind == "zero" else os.urandom(length))
            self.sync()
        finally:
            self.close()
        return self

    def shred(
        self: FsPath,
        passes: int = 3,
        randomized: bool = False,
        block_size: int = 4096,
    ) -> None:
        """Overwrite the file with random data several times, then delete it.

        Raises:
            OutOfBoundsError: If passes is not between 1 and 20.
        """
        if not 1 <= passes <= MAX_SHRED_PASSES:
            msg = f"Invalid number of passes {passes}, must be between 1 and {MAX_SHRED_PASSES}"
            raise OutOfBoundsError(msg, path=self.source)

        logger.info("Shredding file '%s' with %d passes", self.source, passes)
        for _ in range(passes):
            self.initialize("random", block_size, randomized)
        self.delete(clean_path=False)

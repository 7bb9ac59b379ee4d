"""Random-access, line-oriented view over an append-only CSV file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Union

from .exceptions import FileError, MalformedLineError
from .models import LineRecord

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096


class LineIndexedFile:
    """Byte-position line lookup over a flat file.

    The data region spans from the first byte after the optional header
    line to the separator terminating the last complete line. Both bounds
    are computed once when the file is opened; bytes appended afterwards
    are ignored until the file is opened again.

    Example:
        >>> with LineIndexedFile("speck.csv") as csv_file:
        ...     record = csv_file.last_record()
        ...     lines = csv_file.read_lines(csv_file.min_byte_position(), 100)
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        has_header_row: bool = True,
        separator: str = "\n",
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        encoding: str = "utf-8",
    ) -> None:
        """Open a file and compute its data region.

        Args:
            file_path: Path to the CSV file
            has_header_row: Whether the first line is a header to skip
            separator: Single-byte line separator
            chunk_size: Bytes read per I/O call when scanning or reading lines
            encoding: Text encoding of the file

        Raises:
            FileError: If the file cannot be stat'd or opened
            ValueError: If the separator isn't exactly one byte
        """
        sep = separator.encode(encoding)
        if len(sep) != 1:
            raise ValueError(f"Line separator must be a single byte, got {separator!r}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self._file_path = Path(file_path).resolve()
        self._has_header_row = has_header_row
        self._separator = sep
        self._chunk_size = chunk_size
        self._encoding = encoding
        self._file_handle: IO[bytes] | None = None

        try:
            self._file_size = self._file_path.stat().st_size
            self._file_handle = open(self._file_path, "rb")
        except OSError as e:
            raise FileError(self._file_path, e.strerror or str(e)) from e

        self._min_pos = self._find_min_byte_position()
        self._max_pos = self._find_max_byte_position()

    @classmethod
    def open(
        cls,
        file_path: Union[str, Path],
        has_header_row: bool = True,
        separator: str = "\n",
    ) -> "LineIndexedFile":
        """Alternate constructor mirroring the built-in ``open``."""
        return cls(file_path, has_header_row, separator)

    def _find_min_byte_position(self) -> int:
        if not self._has_header_row:
            return 0
        header_end = self._find_separator(0)
        if header_end == -1:
            # Header never terminated, so there's no data yet
            return self._file_size
        return header_end + 1

    def _find_max_byte_position(self) -> int:
        """Position of the separator ending the last complete line, or -1."""
        if self._file_size == 0:
            return -1
        return self._find_separator(self._file_size - 1, backward=True)

    # ─────────────────────────────────────────────────────────────────────
    # Low-level I/O
    # ─────────────────────────────────────────────────────────────────────

    def _read_at(self, pos: int, length: int) -> bytes:
        if self._file_handle is None:
            raise ValueError(f"I/O operation on closed file: {self._file_path}")
        self._file_handle.seek(pos)
        return self._file_handle.read(length)

    def _decode(self, raw: bytes) -> str:
        try:
            return raw.decode(self._encoding)
        except UnicodeDecodeError as e:
            raise MalformedLineError(raw.decode(self._encoding, errors="replace"), str(e)) from e

    def _find_separator(self, pos: int, backward: bool = False) -> int:
        """Find the nearest separator at or after (or before) ``pos``.

        Scans in buffered chunks, never past the size recorded at open time.

        Returns:
            Byte position of the separator, or -1 if there is none
        """
        if backward:
            end = min(pos + 1, self._file_size)
            while end > 0:
                start = max(0, end - self._chunk_size)
                found = self._read_at(start, end - start).rfind(self._separator)
                if found != -1:
                    return start + found
                end = start
            return -1

        while 0 <= pos < self._file_size:
            buf = self._read_at(pos, min(self._chunk_size, self._file_size - pos))
            if not buf:
                break
            found = buf.find(self._separator)
            if found != -1:
                return pos + found
            pos += len(buf)
        return -1

    # ─────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────

    @property
    def file_path(self) -> Path:
        """Path to the open file."""
        return self._file_path

    @property
    def size_in_bytes(self) -> int:
        """Size of the file in bytes when it was opened."""
        return self._file_size

    @property
    def has_data(self) -> bool:
        """True if the file holds at least one complete data line."""
        return 0 <= self._min_pos <= self._max_pos

    @property
    def closed(self) -> bool:
        return self._file_handle is None

    def min_byte_position(self) -> int:
        """Byte offset of the first data line (just past the header, if any)."""
        return self._min_pos

    def max_byte_position(self) -> int:
        """Byte offset of the separator terminating the last complete line.

        A trailing line with no separator is still being written and is
        excluded. Returns -1 when the file has no complete line at all.
        """
        return self._max_pos

    def line_containing(self, pos: int) -> LineRecord | None:
        """Find the line that contains byte ``pos``.

        A separator byte belongs to the line it terminates.

        Args:
            pos: Byte offset in ``[0, size_in_bytes)``

        Returns:
            The containing line, or None if ``pos`` is out of range or
            falls inside an unterminated trailing line

        Raises:
            MalformedLineError: If the line isn't valid text in the file's encoding
        """
        if pos < 0 or pos >= self._file_size:
            return None

        if self._read_at(pos, 1) == self._separator:
            start_pos = self._find_separator(pos - 1, backward=True) + 1
            end_pos = pos
        else:
            start_pos = self._find_separator(pos, backward=True) + 1
            end_pos = self._find_separator(pos)
            if end_pos == -1:
                return None

        text = self._decode(self._read_at(start_pos, end_pos - start_pos))
        return LineRecord(start_pos=start_pos, end_pos=end_pos, text=text)

    def first_record(self) -> LineRecord | None:
        """First data line, or None if there is none."""
        if not self.has_data:
            return None
        return self.line_containing(self._min_pos)

    def last_record(self) -> LineRecord | None:
        """Last complete data line, or None if there is none."""
        if not self.has_data:
            return None
        return self.line_containing(self._max_pos)

    def read_lines(self, start_pos: int, max_count: int) -> list[str]:
        """Read up to ``max_count`` lines forward from ``start_pos``.

        Reading stops at the end of the data region, so fewer lines come
        back when the region is exhausted.

        Args:
            start_pos: Byte offset to start reading at (normally a line start)
            max_count: Maximum number of lines to return

        Returns:
            Lines in file order with separators stripped; empty if
            ``start_pos`` is outside the data region

        Raises:
            MalformedLineError: If a line isn't valid text in the file's encoding
        """
        lines: list[str] = []
        if max_count < 1 or start_pos < self._min_pos or start_pos > self._max_pos:
            return lines

        pending = b""
        pos = start_pos
        while len(lines) < max_count and pos <= self._max_pos:
            chunk = self._read_at(pos, min(self._chunk_size, self._max_pos - pos + 1))
            if not chunk:
                break
            pos += len(chunk)

            parts = (pending + chunk).split(self._separator)
            # Last piece is partial (or empty); carry it into the next chunk
            pending = parts.pop()
            for part in parts[: max_count - len(lines)]:
                lines.append(self._decode(part))

        return lines

    def close(self) -> bool:
        """Release the file handle.

        Returns:
            True if the handle was closed, False if it was already closed
        """
        if self._file_handle is None:
            logger.error("Attempted to close %s, which is already closed", self._file_path)
            return False
        try:
            self._file_handle.close()
        except OSError as e:
            logger.error("Exception while trying to close %s: %s", self._file_path, e)
            return False
        finally:
            self._file_handle = None
        return True

    def __enter__(self) -> "LineIndexedFile":
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit context manager and close file handle."""
        if self._file_handle is not None:
            self.close()

    def __repr__(self) -> str:
        return (
            f"LineIndexedFile({self._file_path!r}, "
            f"data=[{self._min_pos}, {self._max_pos}], size={self._file_size})"
        )


@dataclass(frozen=True)
class CsvSource:
    """Where and how to open the CSV file for each cycle.

    Attributes:
        file_path: Path to the CSV file
        has_header_row: Whether the first line is a header
        line_separator: Single-character line separator
    """

    file_path: Path
    has_header_row: bool = True
    line_separator: str = "\n"

    def open(self) -> LineIndexedFile:
        """Open a fresh snapshot of the file.

        Raises:
            FileError: If the file can't be opened
        """
        return LineIndexedFile(self.file_path, self.has_header_row, self.line_separator)

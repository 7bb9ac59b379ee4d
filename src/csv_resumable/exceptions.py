"""Custom exceptions for csv-resumable."""

from __future__ import annotations

from pathlib import Path


class CsvResumableError(Exception):
    """Base class for all csv-resumable errors."""


class ConfigError(CsvResumableError):
    """Raised when the uploader configuration is missing or invalid."""


class FileError(CsvResumableError):
    """CSV file could not be opened or inspected.

    Raised when the file is missing, unreadable, or cannot be stat'd.
    No resume decision is possible without the file, so this is fatal
    to the cycle that hit it.

    Attributes:
        file_path: Path to the offending file
        reason: Underlying error description
    """

    def __init__(self, file_path: Path | str, reason: str) -> None:
        self.file_path = Path(file_path)
        self.reason = reason
        super().__init__(f"Cannot open CSV file {self.file_path}: {reason}")


class RemoteError(CsvResumableError):
    """Remote store call failed.

    Covers non-success status codes, malformed or missing response
    payloads, and transport failures. Always recoverable: the scheduler
    backs off and retries.

    Attributes:
        status_code: HTTP status, if a response was received
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MalformedLineError(CsvResumableError):
    """A CSV line doesn't match the configured field layout.

    Attributes:
        line: The raw line text
        reason: What was wrong with it
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed line {line!r}: {reason}")

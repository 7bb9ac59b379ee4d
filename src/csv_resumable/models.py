"""Data models for csv-resumable."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class LineRecord:
    """A single line located in the file.

    Attributes:
        start_pos: Byte offset of the first byte of the line
        end_pos: Byte offset of the line's terminating separator
        text: Line content, separator excluded
    """

    start_pos: int
    end_pos: int
    text: str


@dataclass(frozen=True, slots=True)
class SearchResult:
    """Outcome of a binary search over byte positions.

    Attributes:
        found: True if a line with exactly the target value was hit
        position: Byte position of the match, or the insertion point
    """

    found: bool
    position: int


@dataclass(frozen=True)
class UploadBatch:
    """Rows ready to be pushed to the remote store.

    Each row is ``[timestamp, value_1, ..., value_n]`` aligned with
    ``column_names``.
    """

    column_names: list[str]
    rows: list[list[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def to_json(self) -> dict[str, Any]:
        """Payload shape expected by the feed upload endpoint."""
        return {"channel_names": list(self.column_names), "data": self.rows}


# ─────────────────────────────────────────────────────────────────────
# Resume positions
# ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class StartAt:
    """Upload should resume reading at ``position``."""

    position: int


@dataclass(frozen=True, slots=True)
class NothingToDo:
    """Everything in the file is already stored remotely."""


ResumePosition = Union[StartAt, NothingToDo]


# ─────────────────────────────────────────────────────────────────────
# Cycle outcomes
# ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class NoData:
    """The cycle found nothing new to upload."""


@dataclass(frozen=True, slots=True)
class Uploaded:
    """The cycle pushed ``count`` rows to the remote store."""

    count: int


@dataclass(frozen=True, slots=True)
class Failed:
    """The cycle aborted with ``error``."""

    error: Exception


CycleOutcome = Union[NoData, Uploaded, Failed]

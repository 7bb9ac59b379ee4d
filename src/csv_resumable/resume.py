"""Resume-point resolution: where in the file unsent data begins."""

from __future__ import annotations

import logging
from typing import Callable

from .exceptions import FileError
from .index import LineIndexedFile
from .models import LineRecord, NothingToDo, ResumePosition, SearchResult, StartAt

logger = logging.getLogger(__name__)


def binary_search(low: int, high: int, compare: Callable[[int], int]) -> SearchResult:
    """Search the inclusive range ``[low, high]`` for a zero comparison.

    Args:
        low: First candidate position
        high: Last candidate position
        compare: Returns <0 if the value at a position is below the target,
            >0 if above, 0 on an exact match

    Returns:
        ``SearchResult(True, pos)`` for a match, otherwise
        ``SearchResult(False, insertion_point)``
    """
    while low <= high:
        mid = low + (high - low) // 2
        cmp = compare(mid)
        if cmp < 0:
            low = mid + 1
        elif cmp > 0:
            high = mid - 1
        else:
            return SearchResult(found=True, position=mid)
    return SearchResult(found=False, position=low)


def _require_line(csv_file: LineIndexedFile, pos: int) -> LineRecord:
    record = csv_file.line_containing(pos)
    if record is None:
        raise FileError(csv_file.file_path, f"no complete line at byte {pos}")
    return record


def resolve_resume_position(
    csv_file: LineIndexedFile,
    extract_timestamp: Callable[[str], float],
    remote_max_timestamp: float | None,
) -> ResumePosition:
    """Find the byte position where unsent data starts.

    Lines are assumed to be in non-decreasing timestamp order. A line whose
    timestamp equals ``remote_max_timestamp`` is treated as already uploaded.

    Args:
        csv_file: Open file snapshot
        extract_timestamp: Returns the timestamp of a raw line
        remote_max_timestamp: Latest timestamp in the remote store, or None
            if the store holds no data yet

    Returns:
        ``StartAt(pos)`` or ``NothingToDo()``

    Raises:
        MalformedLineError: If a line visited by the search has no parseable timestamp
    """
    if not csv_file.has_data:
        logger.debug("%s has no complete data lines", csv_file.file_path)
        return NothingToDo()

    min_pos = csv_file.min_byte_position()
    max_pos = csv_file.max_byte_position()

    if remote_max_timestamp is None:
        logger.debug("Remote store is empty, starting at the first data line")
        return StartAt(min_pos)

    first = csv_file.first_record()
    last = csv_file.last_record()
    if first is None or last is None:
        return NothingToDo()

    if remote_max_timestamp < extract_timestamp(first.text):
        logger.debug("Entire file is newer than the remote store")
        return StartAt(min_pos)
    if remote_max_timestamp >= extract_timestamp(last.text):
        logger.debug("Entire file is already in the remote store")
        return NothingToDo()

    def compare(pos: int) -> int:
        timestamp = extract_timestamp(_require_line(csv_file, pos).text)
        if timestamp < remote_max_timestamp:
            return -1
        if timestamp > remote_max_timestamp:
            return 1
        return 0

    result = binary_search(min_pos, max_pos, compare)
    if result.found:
        # Skip past the line that's already stored
        start_pos = _require_line(csv_file, result.position).end_pos + 1
        logger.debug("Timestamp %r found, resuming at byte %d", remote_max_timestamp, start_pos)
    else:
        start_pos = _require_line(csv_file, result.position).start_pos
        logger.debug("Timestamp %r not found, resuming at byte %d", remote_max_timestamp, start_pos)

    if start_pos >= max_pos:
        return NothingToDo()
    return StartAt(start_pos)

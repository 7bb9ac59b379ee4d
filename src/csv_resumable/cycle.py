"""A single resume + read + upload pass."""

from __future__ import annotations

import logging

from .exceptions import FileError, MalformedLineError, RemoteError
from .index import CsvSource
from .layout import FieldLayout, build_batch
from .models import CycleOutcome, Failed, NoData, NothingToDo, Uploaded
from .remote import RemoteStore
from .resume import resolve_resume_position

logger = logging.getLogger(__name__)


async def run_cycle(
    source: CsvSource,
    layout: FieldLayout,
    store: RemoteStore,
    max_batch_size: int,
) -> CycleOutcome:
    """Upload the next batch of unsent lines.

    Opens a fresh snapshot of the file, asks the store for its latest
    timestamp, resolves where unsent data begins, and pushes at most
    ``max_batch_size`` rows.

    Args:
        source: The CSV file to read
        layout: Field layout for timestamp extraction and row conversion
        store: Remote store to query and upload to
        max_batch_size: Maximum rows per upload

    Returns:
        ``Uploaded(count)``, ``NoData()``, or ``Failed(error)`` for file,
        remote, and malformed-line errors
    """
    try:
        csv_file = source.open()
    except FileError as e:
        logger.error("Could not open CSV file (check configuration): %s", e)
        return Failed(e)

    with csv_file:
        try:
            max_timestamp = await store.get_max_timestamp()
        except RemoteError as e:
            logger.warning("Failed to fetch latest timestamp from remote store: %s", e)
            return Failed(e)
        logger.debug("Remote max timestamp = %r", max_timestamp)

        try:
            resume = resolve_resume_position(csv_file, layout.timestamp_of, max_timestamp)
        except (FileError, MalformedLineError) as e:
            logger.error("Could not resolve resume position in %s: %s", csv_file.file_path, e)
            return Failed(e)

        if isinstance(resume, NothingToDo):
            logger.debug("Nothing to upload")
            return NoData()

        try:
            lines = csv_file.read_lines(resume.position, max_batch_size)
        except MalformedLineError as e:
            logger.error("Could not read lines from %s: %s", csv_file.file_path, e)
            return Failed(e)

    if not lines:
        return NoData()

    try:
        batch = build_batch(lines, layout)
    except MalformedLineError as e:
        logger.error("Aborting batch: %s", e)
        return Failed(e)

    try:
        await store.put_batch(batch)
    except RemoteError as e:
        logger.warning("Upload of %d rows failed: %s", len(batch), e)
        return Failed(e)

    logger.info("Uploaded %d rows", len(batch))
    return Uploaded(len(batch))

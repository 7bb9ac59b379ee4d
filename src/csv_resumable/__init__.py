"""csv-resumable: incremental, restart-safe uploads of an append-only CSV file.

Each upload cycle asks the remote store for its latest timestamp, binary
searches the CSV by byte position for the first unsent line, and pushes a
bounded batch from there.

Example:
    >>> from pathlib import Path
    >>> from csv_resumable import CsvSource, FieldLayout, FieldSpec, LineIndexedFile, run_cycle
    >>> source = CsvSource(Path("speck.csv"))
    >>> layout = FieldLayout(fields={"humidity": FieldSpec(1, int)})
    >>>
    >>> # One pass
    >>> outcome = await run_cycle(source, layout, store, max_batch_size=5000)
    >>>
    >>> # Random access
    >>> with LineIndexedFile("speck.csv") as csv_file:
    ...     last = csv_file.last_record()
    ...     lines = csv_file.read_lines(csv_file.min_byte_position(), 100)
"""

from .config import UploaderConfig, load_config, parse_config
from .cycle import run_cycle
from .exceptions import (
    ConfigError,
    CsvResumableError,
    FileError,
    MalformedLineError,
    RemoteError,
)
from .index import CsvSource, LineIndexedFile
from .layout import FieldLayout, FieldSpec, build_batch, extract_timestamp, line_to_row
from .models import (
    CycleOutcome,
    Failed,
    LineRecord,
    NoData,
    NothingToDo,
    ResumePosition,
    SearchResult,
    StartAt,
    UploadBatch,
    Uploaded,
)
from .remote import EsdrFeedStore, RemoteStore
from .resume import binary_search, resolve_resume_position
from .scheduler import ScheduleSettings, Scheduler

__version__ = "0.1.0"
__all__ = [
    # Core
    "LineIndexedFile",
    "CsvSource",
    "LineRecord",
    "resolve_resume_position",
    "binary_search",
    "SearchResult",
    "StartAt",
    "NothingToDo",
    "ResumePosition",
    # Layout
    "FieldLayout",
    "FieldSpec",
    "extract_timestamp",
    "line_to_row",
    "build_batch",
    "UploadBatch",
    # Upload loop
    "run_cycle",
    "CycleOutcome",
    "NoData",
    "Uploaded",
    "Failed",
    "Scheduler",
    "ScheduleSettings",
    "RemoteStore",
    "EsdrFeedStore",
    # Configuration
    "UploaderConfig",
    "load_config",
    "parse_config",
    # Exceptions
    "CsvResumableError",
    "ConfigError",
    "FileError",
    "RemoteError",
    "MalformedLineError",
]

"""CSV field layout: timestamp extraction and line-to-row conversion."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from .exceptions import ConfigError, MalformedLineError
from .models import UploadBatch

ValueParser = Callable[[str], Any]
TimestampParser = Callable[[str], float]


def _parse_iso8601(value: str) -> float:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


VALUE_PARSERS: dict[str, ValueParser] = {
    "str": str,
    "int": int,
    "float": float,
}

TIMESTAMP_PARSERS: dict[str, TimestampParser] = {
    "float": float,
    "iso8601": _parse_iso8601,
}


def get_value_parser(name: str | None) -> ValueParser | None:
    """Look up a field value parser by name (None means pass-through)."""
    if name is None:
        return None
    try:
        return VALUE_PARSERS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown field parser {name!r} (expected one of {sorted(VALUE_PARSERS)})"
        ) from None


def get_timestamp_parser(name: str | None) -> TimestampParser:
    """Look up a timestamp parser by name (None means float)."""
    if name is None:
        return float
    try:
        return TIMESTAMP_PARSERS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown timestamp parser {name!r} (expected one of {sorted(TIMESTAMP_PARSERS)})"
        ) from None


@dataclass(frozen=True)
class FieldSpec:
    """Where an output column comes from in the CSV.

    Attributes:
        index: 0-indexed field position in a CSV line
        parser: Converts the raw string; None passes it through unchanged
    """

    index: int
    parser: ValueParser | None = None


@dataclass(frozen=True)
class FieldLayout:
    """How to pull a timestamp and output columns out of a CSV line.

    Attributes:
        fields: Output column name -> FieldSpec, in upload order
        timestamp_index: Field position of the timestamp
        timestamp_parser: Converts the raw timestamp to seconds
        delimiter: Field delimiter
    """

    fields: dict[str, FieldSpec] = field(default_factory=dict)
    timestamp_index: int = 0
    timestamp_parser: TimestampParser = float
    delimiter: str = ","

    @property
    def column_names(self) -> list[str]:
        return list(self.fields)

    def split(self, line: str) -> list[str]:
        return line.strip("\r\n").split(self.delimiter)

    def timestamp_of(self, line: str) -> float:
        """Bound form of :func:`extract_timestamp` for this layout."""
        return extract_timestamp(line, self)


def _field(fields: list[str], index: int, line: str) -> str:
    if index >= len(fields):
        raise MalformedLineError(
            line, f"expected at least {index + 1} fields, found {len(fields)}"
        )
    return fields[index]


def _parse_timestamp(fields: list[str], line: str, layout: FieldLayout) -> float:
    raw = _field(fields, layout.timestamp_index, line)
    try:
        timestamp = float(layout.timestamp_parser(raw))
    except (TypeError, ValueError) as e:
        raise MalformedLineError(line, f"bad timestamp {raw!r}: {e}") from e
    if not math.isfinite(timestamp):
        raise MalformedLineError(line, f"timestamp {raw!r} is not a finite number")
    return timestamp


def extract_timestamp(line: str, layout: FieldLayout) -> float:
    """Return the numeric timestamp of a raw CSV line.

    Raises:
        MalformedLineError: If the timestamp field is missing or unparseable
    """
    return _parse_timestamp(layout.split(line), line, layout)


def line_to_row(line: str, layout: FieldLayout) -> list[Any]:
    """Convert a CSV line into ``[timestamp, value_1, ..., value_n]``.

    Raises:
        MalformedLineError: If any configured field is missing or unparseable
    """
    fields = layout.split(line)
    row: list[Any] = [_parse_timestamp(fields, line, layout)]
    for name, spec in layout.fields.items():
        raw = _field(fields, spec.index, line)
        if spec.parser is None:
            row.append(raw)
            continue
        try:
            row.append(spec.parser(raw))
        except (TypeError, ValueError) as e:
            raise MalformedLineError(line, f"bad value {raw!r} for {name!r}: {e}") from e
    return row


def build_batch(lines: Iterable[str], layout: FieldLayout) -> UploadBatch:
    """Convert lines into an upload batch, preserving file order.

    Raises:
        MalformedLineError: On the first malformed line; no partial batch
            is returned
    """
    return UploadBatch(
        column_names=layout.column_names,
        rows=[line_to_row(line, layout) for line in lines],
    )

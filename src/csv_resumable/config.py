"""Uploader configuration (load and validate the JSON config file)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union

from .exceptions import ConfigError
from .index import CsvSource
from .layout import FieldLayout, FieldSpec, get_timestamp_parser, get_value_parser
from .scheduler import ScheduleSettings

ENV_FEED_ID = "CSV_RESUMABLE_FEED_ID"
ENV_API_ROOT_URL = "CSV_RESUMABLE_API_ROOT_URL"

DEFAULT_API_ROOT_URL = "https://esdr.cmucreatelab.org/api/v1"


@dataclass(frozen=True)
class UploaderConfig:
    """Everything needed to run the uploader.

    Attributes:
        source: CSV file location and line format
        layout: Field layout of each line
        api_root_url: Remote store API root
        feed_id: Read-write feed API key
        schedule: Upload loop settings
    """

    source: CsvSource
    layout: FieldLayout
    api_root_url: str
    feed_id: str
    schedule: ScheduleSettings


def _section(data: Mapping[str, Any], key: str, where: str) -> Mapping[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{where}{key}' must be an object")
    return value


def _required(data: Mapping[str, Any], key: str, where: str) -> Any:
    if data.get(key) in (None, ""):
        raise ConfigError(f"Missing required setting '{where}{key}'")
    return data[key]


def _int(data: Mapping[str, Any], key: str, default: int, where: str, minimum: int = 0) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"'{where}{key}' must be an integer >= {minimum}, got {value!r}")
    return value


def _single_char(data: Mapping[str, Any], key: str, default: str, where: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or len(value) != 1:
        raise ConfigError(f"'{where}{key}' must be a single character, got {value!r}")
    return value


def _parse_fields(raw_fields: Any) -> dict[str, FieldSpec]:
    if not isinstance(raw_fields, dict) or not raw_fields:
        raise ConfigError("'csv.data.fields' must be a non-empty object")

    fields: dict[str, FieldSpec] = {}
    for name, spec in raw_fields.items():
        where = f"csv.data.fields.{name}."
        if not isinstance(spec, dict):
            raise ConfigError(f"'csv.data.fields.{name}' must be an object")
        if "index" not in spec:
            raise ConfigError(f"Missing required setting '{where}index'")
        fields[name] = FieldSpec(
            index=_int(spec, "index", 0, where),
            parser=get_value_parser(spec.get("parser")),
        )
    return fields


def parse_config(
    data: Mapping[str, Any],
    base_dir: Union[str, Path, None] = None,
    env: Mapping[str, str] | None = None,
) -> UploaderConfig:
    """Build an UploaderConfig from a parsed config tree.

    Args:
        data: Parsed JSON config
        base_dir: Directory relative CSV paths are resolved against
        env: Environment overrides (defaults to ``os.environ``)

    Raises:
        ConfigError: If a required setting is missing or invalid
    """
    env = os.environ if env is None else env

    csv_section = _section(data, "csv", "")
    data_section = _section(csv_section, "data", "csv.")
    esdr_section = _section(data, "esdr", "")
    upload_section = _section(data, "upload", "")

    file_path = Path(_required(csv_section, "file", "csv."))
    if not file_path.is_absolute() and base_dir is not None:
        file_path = Path(base_dir) / file_path

    has_header_row = csv_section.get("hasHeaderRow", True)
    if not isinstance(has_header_row, bool):
        raise ConfigError(f"'csv.hasHeaderRow' must be true or false, got {has_header_row!r}")

    source = CsvSource(
        file_path=file_path,
        has_header_row=has_header_row,
        line_separator=_single_char(csv_section, "lineSeparator", "\n", "csv."),
    )

    layout = FieldLayout(
        fields=_parse_fields(data_section.get("fields")),
        timestamp_index=_int(data_section, "timestampIndex", 0, "csv.data."),
        timestamp_parser=get_timestamp_parser(data_section.get("timestampParser")),
        delimiter=_single_char(data_section, "fieldDelimiter", ",", "csv.data."),
    )

    api_root_url = env.get(ENV_API_ROOT_URL) or esdr_section.get("apiRootUrl") or DEFAULT_API_ROOT_URL
    feed_id = env.get(ENV_FEED_ID) or esdr_section.get("feedId")
    if not feed_id:
        raise ConfigError(f"Missing required setting 'esdr.feedId' (or ${ENV_FEED_ID})")

    loop = upload_section.get("loop", True)
    if not isinstance(loop, bool):
        raise ConfigError(f"'upload.loop' must be true or false, got {loop!r}")

    defaults = ScheduleSettings()
    schedule = ScheduleSettings(
        max_batch_size=_int(upload_section, "maxRecords", defaults.max_batch_size, "upload.", 1),
        loop=loop,
        record_count_threshold=_int(
            upload_section,
            "uploadIntervalRecordCountThreshold",
            defaults.record_count_threshold,
            "upload.",
        ),
        fast_interval_millis=_int(
            upload_section, "fastUploadIntervalMillis", defaults.fast_interval_millis, "upload."
        ),
        normal_interval_millis=_int(
            upload_section, "normalUploadIntervalMillis", defaults.normal_interval_millis, "upload."
        ),
        error_interval_millis=_int(
            upload_section, "errorUploadIntervalMillis", defaults.error_interval_millis, "upload."
        ),
    )

    return UploaderConfig(
        source=source,
        layout=layout,
        api_root_url=str(api_root_url),
        feed_id=str(feed_id),
        schedule=schedule,
    )


def load_config(
    config_path: Union[str, Path],
    env: Mapping[str, str] | None = None,
) -> UploaderConfig:
    """Load and validate a JSON config file.

    Relative ``csv.file`` paths are resolved against the config file's
    directory.

    Raises:
        ConfigError: If the file can't be read or parsed, or is invalid
    """
    path = Path(config_path).resolve()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e.strerror or e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return parse_config(data, base_dir=path.parent, env=env)

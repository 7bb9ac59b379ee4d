"""Tests for field layout and row conversion."""

import pytest

from csv_resumable import (
    ConfigError,
    FieldLayout,
    FieldSpec,
    MalformedLineError,
    build_batch,
    extract_timestamp,
    line_to_row,
)
from csv_resumable.layout import get_timestamp_parser, get_value_parser


@pytest.fixture
def layout() -> FieldLayout:
    """Speck-style layout: timestamp, humidity, raw particles, concentration."""
    return FieldLayout(
        fields={
            "humidity": FieldSpec(1, int),
            "raw_particles": FieldSpec(2, int),
            "particle_concentration": FieldSpec(3, float),
        },
    )


class TestExtractTimestamp:
    """Tests for extract_timestamp()."""

    def test_default_float(self, layout: FieldLayout):
        """Timestamp is parsed as a float by default."""
        assert extract_timestamp("1400000000.25,40,12,3.5", layout) == 1400000000.25

    def test_timestamp_index(self):
        """Timestamp may live in any field."""
        layout = FieldLayout(timestamp_index=2)
        assert extract_timestamp("a,b,17", layout) == 17.0

    def test_iso8601_parser(self):
        """Named iso8601 parser converts to epoch seconds (UTC if naive)."""
        layout = FieldLayout(timestamp_parser=get_timestamp_parser("iso8601"))
        assert extract_timestamp("1970-01-01T00:01:00,1", layout) == 60.0
        assert extract_timestamp("1970-01-01T01:00:00+01:00,1", layout) == 0.0

    def test_strips_carriage_return(self, layout: FieldLayout):
        """CRLF files parse cleanly."""
        assert layout.timestamp_of("5,1,2,3\r") == 5.0

    def test_missing_field(self):
        """Too few fields raises MalformedLineError."""
        with pytest.raises(MalformedLineError):
            extract_timestamp("1,2", FieldLayout(timestamp_index=5))

    def test_unparseable(self, layout: FieldLayout):
        """Non-numeric timestamp raises MalformedLineError."""
        with pytest.raises(MalformedLineError) as exc_info:
            extract_timestamp("soon,1,2,3", layout)
        assert exc_info.value.line == "soon,1,2,3"

    @pytest.mark.parametrize("value", ["nan", "NaN", "inf", "-Infinity"])
    def test_non_finite(self, layout: FieldLayout, value: str):
        """Timestamps must be finite numbers."""
        with pytest.raises(MalformedLineError, match="finite"):
            extract_timestamp(f"{value},1,2,3", layout)


class TestLineToRow:
    """Tests for line_to_row() and build_batch()."""

    def test_typed_row(self, layout: FieldLayout):
        """Fields are picked by index and parsed."""
        assert line_to_row("10.5,41,120,3.25", layout) == [10.5, 41, 120, 3.25]

    def test_raw_string_without_parser(self):
        """Fields with no parser pass through as strings."""
        layout = FieldLayout(fields={"label": FieldSpec(2), "n": FieldSpec(1, int)})
        assert line_to_row("1,7,hello", layout) == [1.0, "hello", 7]

    def test_custom_delimiter(self):
        """Tab-delimited lines are split on tabs."""
        layout = FieldLayout(fields={"v": FieldSpec(1, float)}, delimiter="\t")
        assert line_to_row("3\t4.5", layout) == [3.0, 4.5]

    def test_bad_value(self, layout: FieldLayout):
        """Parser failures raise MalformedLineError."""
        with pytest.raises(MalformedLineError, match="humidity"):
            line_to_row("10,wet,1,2", layout)

    def test_build_batch(self, layout: FieldLayout):
        """Batch keeps column order and file order."""
        batch = build_batch(["1,10,100,1.5", "2,20,200,2.5"], layout)
        assert batch.column_names == ["humidity", "raw_particles", "particle_concentration"]
        assert batch.rows == [[1.0, 10, 100, 1.5], [2.0, 20, 200, 2.5]]
        assert len(batch) == 2
        assert batch.to_json() == {
            "channel_names": ["humidity", "raw_particles", "particle_concentration"],
            "data": [[1.0, 10, 100, 1.5], [2.0, 20, 200, 2.5]],
        }

    def test_build_batch_is_strict(self, layout: FieldLayout):
        """One malformed line fails the whole batch."""
        with pytest.raises(MalformedLineError):
            build_batch(["1,10,100,1.5", "2,20"], layout)


class TestParserLookup:
    """Tests for named parser lookup."""

    def test_known_parsers(self):
        assert get_value_parser("int") is int
        assert get_value_parser(None) is None
        assert get_timestamp_parser(None) is float

    def test_unknown_parser(self):
        with pytest.raises(ConfigError):
            get_value_parser("decimal")
        with pytest.raises(ConfigError):
            get_timestamp_parser("int")

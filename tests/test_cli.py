"""Tests for CLI interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from csv_resumable import UploadBatch
from csv_resumable import cli
from csv_resumable.cli import main

SCENARIO_CSV = "t,h\n1.0,10\n2.0,20\n3.0,30\n"


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Create a scenario CSV and a config pointing at it."""
    (tmp_path / "data.csv").write_text(SCENARIO_CSV)
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "csv": {
                    "file": "data.csv",
                    "data": {"fields": {"h": {"index": 1, "parser": "int"}}},
                },
                "esdr": {"apiRootUrl": "https://esdr.example.org/api/v1", "feedId": "k"},
                "upload": {"loop": True},
            }
        )
    )
    return path


class StubStore:
    """Stands in for EsdrFeedStore inside the CLI."""

    max_timestamp: float | None = None
    fail_fetch = False
    batches: list[UploadBatch] = []

    def __init__(self, api_root_url: str, feed_api_key: str) -> None:
        self.api_root_url = api_root_url
        self.feed_api_key = feed_api_key

    async def get_max_timestamp(self) -> float | None:
        if StubStore.fail_fetch:
            from csv_resumable import RemoteError

            raise RemoteError("Unexpected response status [503]", 503)
        return StubStore.max_timestamp

    async def put_batch(self, batch: UploadBatch) -> None:
        StubStore.batches.append(batch)

    async def __aenter__(self) -> "StubStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


@pytest.fixture
def stub_store(monkeypatch: pytest.MonkeyPatch) -> type[StubStore]:
    StubStore.max_timestamp = None
    StubStore.fail_fetch = False
    StubStore.batches = []
    monkeypatch.setattr(cli, "EsdrFeedStore", StubStore)
    return StubStore


def run_cli(args: list[str]) -> tuple[int, str, str]:
    """Run CLI via main() and capture output."""
    import io
    from contextlib import redirect_stderr, redirect_stdout

    stdout = io.StringIO()
    stderr = io.StringIO()

    try:
        with redirect_stdout(stdout), redirect_stderr(stderr):
            main(args)
        exit_code = 0
    except SystemExit as e:
        exit_code = e.code if isinstance(e.code, int) else 0

    return exit_code, stdout.getvalue(), stderr.getvalue()


class TestRunCommand:
    """Tests for 'run' subcommand."""

    def test_run_once_uploads(self, config_path: Path, stub_store):
        """--once uploads one batch and exits 0."""
        stub_store.max_timestamp = 2.0
        exit_code, stdout, stderr = run_cli(["-q", "run", "--once", str(config_path)])

        assert exit_code == 0
        assert stub_store.batches == [UploadBatch(["h"], [[3.0, 30]])]

    def test_run_once_failure_exits_nonzero(self, config_path: Path, stub_store):
        stub_store.fail_fetch = True
        exit_code, stdout, stderr = run_cli(["-q", "run", "--once", str(config_path)])

        assert exit_code == 1
        assert "503" in stderr
        assert stub_store.batches == []

    def test_run_bad_config(self, tmp_path: Path, stub_store):
        exit_code, stdout, stderr = run_cli(["run", str(tmp_path / "missing.json")])

        assert exit_code == 1
        assert "Error" in stderr


class TestInfoCommand:
    """Tests for 'info' subcommand."""

    def test_info_basic(self, config_path: Path):
        """info shows the data region and records."""
        exit_code, stdout, stderr = run_cli(["info", str(config_path)])

        assert exit_code == 0
        assert "Size: 25 B" in stdout
        assert "Data region: bytes 4-24" in stdout
        assert "Last record: 3.0,30 (t=3.0)" in stdout

    def test_info_json_output(self, config_path: Path):
        """info --json outputs JSON."""
        exit_code, stdout, stderr = run_cli(["info", "--json", str(config_path)])

        assert exit_code == 0
        data = json.loads(stdout)
        assert data["min_byte_position"] == 4
        assert data["max_byte_position"] == 24
        assert data["first_timestamp"] == 1.0
        assert data["last_timestamp"] == 3.0

    def test_info_missing_csv(self, config_path: Path):
        """info returns error when the CSV is missing."""
        (config_path.parent / "data.csv").unlink()
        exit_code, stdout, stderr = run_cli(["info", str(config_path)])

        assert exit_code == 1
        assert "Error" in stderr

    def test_info_header_only(self, config_path: Path):
        (config_path.parent / "data.csv").write_text("t,h\n")
        exit_code, stdout, stderr = run_cli(["info", str(config_path)])

        assert exit_code == 0
        assert "Data: none" in stdout


class TestResumePointCommand:
    """Tests for 'resume-point' subcommand."""

    def test_resume_after_timestamp(self, config_path: Path):
        exit_code, stdout, stderr = run_cli(
            ["resume-point", str(config_path), "--after", "2.0", "--json"]
        )

        assert exit_code == 0
        data = json.loads(stdout)
        assert data["position"] == 18
        assert data["next_line"] == "3.0,30"

    def test_resume_empty_store(self, config_path: Path):
        exit_code, stdout, stderr = run_cli(["resume-point", str(config_path)])

        assert exit_code == 0
        assert "Resume at byte 4" in stdout
        assert "Next line: 1.0,10" in stdout

    def test_nothing_to_upload(self, config_path: Path):
        exit_code, stdout, stderr = run_cli(
            ["resume-point", str(config_path), "--after", "10"]
        )

        assert exit_code == 0
        assert "Nothing to upload" in stdout


class TestFormatSize:
    """Tests for human-readable size formatting."""

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1536, "1.5 KB"), (1024**3, "1.0 GB")],
    )
    def test_format(self, size: int, expected: str):
        assert cli._format_size(size) == expected

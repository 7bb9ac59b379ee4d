"""Command-line interface for csv-resumable."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import replace
from typing import NoReturn

from .config import UploaderConfig, load_config
from .exceptions import ConfigError, FileError, MalformedLineError
from .models import Failed, StartAt
from .remote import EsdrFeedStore
from .resume import resolve_resume_position
from .scheduler import ScheduleSettings, Scheduler

logger = logging.getLogger("csv_resumable")


def _load(config_path: str) -> UploaderConfig | None:
    try:
        return load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' subcommand."""
    config = _load(args.config)
    if config is None:
        return 1

    schedule = config.schedule
    if args.once:
        schedule = replace(schedule, loop=False)
    return asyncio.run(_run_uploader(config, schedule))


async def _run_uploader(config: UploaderConfig, schedule: ScheduleSettings) -> int:
    async with EsdrFeedStore(config.api_root_url, config.feed_id) as store:
        scheduler = Scheduler(config.source, config.layout, store, schedule)
        _install_signal_handlers(scheduler)
        outcome = await scheduler.run()

    if not schedule.loop and isinstance(outcome, Failed):
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1
    return 0


def _install_signal_handlers(scheduler: Scheduler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.request_stop)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform/thread; Ctrl+C still raises KeyboardInterrupt
            logger.debug("Cannot install handler for %s", sig)


def cmd_info(args: argparse.Namespace) -> int:
    """Handle the 'info' subcommand."""
    config = _load(args.config)
    if config is None:
        return 1

    try:
        csv_file = config.source.open()
    except FileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with csv_file:
        first = csv_file.first_record()
        last = csv_file.last_record()
        try:
            first_ts = config.layout.timestamp_of(first.text) if first else None
            last_ts = config.layout.timestamp_of(last.text) if last else None
        except MalformedLineError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if args.json:
            info = {
                "file": str(csv_file.file_path),
                "size_bytes": csv_file.size_in_bytes,
                "min_byte_position": csv_file.min_byte_position(),
                "max_byte_position": csv_file.max_byte_position(),
                "has_data": csv_file.has_data,
                "first_timestamp": first_ts,
                "last_timestamp": last_ts,
            }
            print(json.dumps(info, indent=2))
        else:
            print(f"File: {csv_file.file_path}")
            print(f"Size: {_format_size(csv_file.size_in_bytes)}")
            if not csv_file.has_data:
                print("Data: none")
                return 0
            print(
                f"Data region: bytes {csv_file.min_byte_position():,}"
                f"-{csv_file.max_byte_position():,}"
            )
            print(f"First record: {first.text if first else ''} (t={first_ts})")
            print(f"Last record: {last.text if last else ''} (t={last_ts})")

    return 0


def cmd_resume_point(args: argparse.Namespace) -> int:
    """Handle the 'resume-point' subcommand."""
    config = _load(args.config)
    if config is None:
        return 1

    try:
        with config.source.open() as csv_file:
            resume = resolve_resume_position(csv_file, config.layout.timestamp_of, args.after)
            next_line = (
                csv_file.line_containing(resume.position) if isinstance(resume, StartAt) else None
            )
    except (FileError, MalformedLineError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    position = resume.position if isinstance(resume, StartAt) else None
    if args.json:
        print(
            json.dumps(
                {
                    "after": args.after,
                    "position": position,
                    "next_line": next_line.text if next_line else None,
                },
                indent=2,
            )
        )
    elif position is None:
        print("Nothing to upload")
    else:
        print(f"Resume at byte {position:,}")
        if next_line:
            print(f"Next line: {next_line.text}")
    return 0


def _format_size(size_bytes: int) -> str:
    """Format byte size in human-readable form."""
    size: float = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


def _configure_logging(verbosity: int) -> None:
    level = {-1: logging.WARNING, 0: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="csv-upload",
        description="Incrementally upload rows appended to a CSV file to a time-series store",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", dest="verbosity", action="store_const", const=1, default=0,
        help="Enable debug logging",
    )
    verbosity.add_argument(
        "-q", "--quiet", dest="verbosity", action="store_const", const=-1,
        help="Only log warnings and errors",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run subcommand
    run_parser = subparsers.add_parser(
        "run",
        help="Upload new rows",
        description="Upload rows newer than the store's latest timestamp, repeatedly or once",
    )
    run_parser.add_argument("config", help="Path to JSON config file")
    run_parser.add_argument(
        "--once", action="store_true", help="Upload a single batch and exit"
    )
    run_parser.set_defaults(func=cmd_run)

    # info subcommand
    info_parser = subparsers.add_parser(
        "info",
        help="Show CSV file information",
        description="Display file size, data region, and first/last records",
    )
    info_parser.add_argument("config", help="Path to JSON config file")
    info_parser.add_argument(
        "--json", action="store_true", help="Output as JSON for scripting"
    )
    info_parser.set_defaults(func=cmd_info)

    # resume-point subcommand
    resume_parser = subparsers.add_parser(
        "resume-point",
        help="Show where an upload would resume",
        description="Resolve the resume byte position for a given latest stored timestamp",
    )
    resume_parser.add_argument("config", help="Path to JSON config file")
    resume_parser.add_argument(
        "--after",
        type=float,
        default=None,
        help="Latest timestamp already stored (omit if the store is empty)",
    )
    resume_parser.add_argument(
        "--json", action="store_true", help="Output as JSON for scripting"
    )
    resume_parser.set_defaults(func=cmd_resume_point)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbosity)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
